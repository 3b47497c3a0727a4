# src/taskmaster_sync/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..connectors.json_task_source import JsonTaskSource
from ..connectors.local_adapters import FileCalendarAdapter, FileNotificationAdapter
from ..sync.mapping_store import MappingStore
from ..sync.sync_service import SyncService


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Settings

    task_source: JsonTaskSource
    mapping_store: MappingStore
    calendar: FileCalendarAdapter
    notifier: FileNotificationAdapter
    service: SyncService
