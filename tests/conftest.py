# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from taskmaster_sync.sync.mapping_store import MappingStore
from taskmaster_sync.sync.sync_models import SyncConfig
from taskmaster_sync.sync.sync_service import SyncService
from taskmaster_sync.tasks.task_models import ReminderLead

from .fakes import FakeCalendar, FakeNotifier, FakeTaskSource

# Fixed "now" well before the due dates used in tests, so reminders are in the future.
NOW = datetime(2024, 2, 1, 8, 0, tzinfo=UTC)
DUE = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture()
def config() -> SyncConfig:
    return SyncConfig(
        calendar_sync_enabled=True,
        reminder_lead_minutes=ReminderLead.MINUTES_30,
        notifications_enabled=True,
        call_timeout_seconds=1.0,
    )


@pytest.fixture()
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def task_source() -> FakeTaskSource:
    return FakeTaskSource()


@pytest.fixture()
def mapping_store(tmp_path: Path) -> MappingStore:
    """Real SQLite store: its atomic replace is part of what we test."""
    return MappingStore(tmp_path / "sync_map.sqlite3")


@pytest.fixture()
def service(task_source, mapping_store, calendar, notifier, config) -> SyncService:
    return SyncService(
        task_source=task_source,
        mapping_store=mapping_store,
        calendar=calendar,
        notifier=notifier,
        config=config,
        debounce_seconds=0.01,
        clock=lambda: NOW,
    )
