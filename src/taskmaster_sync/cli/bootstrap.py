# src/taskmaster_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the JSON task file, mapping store and file adapters into a SyncService.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..connectors.json_task_source import JsonTaskSource
from ..connectors.local_adapters import FileCalendarAdapter, FileNotificationAdapter
from ..core.state import AppState
from ..sync.mapping_store import MappingStore
from ..sync.sync_service import SyncService
from ..timeutil import resolve_tz

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.mapping_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)
    settings.calendar_path.parent.mkdir(parents=True, exist_ok=True)
    settings.notifications_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_source = JsonTaskSource(settings.tasks_path, tz=resolve_tz(settings.timezone))
    mapping_store = MappingStore(settings.mapping_db_path)
    calendar = FileCalendarAdapter(settings.calendar_path, calendar_name=settings.app_name)
    notifier = FileNotificationAdapter(settings.notifications_path)

    service = SyncService(
        task_source=task_source,
        mapping_store=mapping_store,
        calendar=calendar,
        notifier=notifier,
        config=settings.sync_config(),
        debounce_seconds=settings.debounce_seconds,
    )
    logger.debug("State wired tasks=%s mapping=%s", settings.tasks_path, settings.mapping_db_path)

    return AppState(
        settings=settings,
        task_source=task_source,
        mapping_store=mapping_store,
        calendar=calendar,
        notifier=notifier,
        service=service,
    )
