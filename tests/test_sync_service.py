# tests/test_sync_service.py

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from taskmaster_sync.core.errors import ValidationError
from taskmaster_sync.recurrence import RecurrenceRule, RecurrenceType
from taskmaster_sync.sync.sync_service import (
    CALENDAR_PERMISSION_NOTICE,
    NOTIFICATION_PERMISSION_NOTICE,
    SyncService,
    run_sync_loop,
)
from taskmaster_sync.tasks.task_models import Task, TaskChange, TaskChangeKind

from .conftest import DUE, NOW


def make_task(task_id: str, **kw) -> Task:
    kw.setdefault("title", f"Task {task_id}")
    kw.setdefault("due_date", DUE)
    return Task(id=task_id, **kw)


@pytest.mark.asyncio
async def test_pass_commits_mapping_and_reminders(service, task_source, mapping_store, notifier) -> None:
    task_source.put(make_task("a", reminder_enabled=True))
    task_source.put(make_task("b"))

    result = await service.run_pass()

    assert sorted(result.created) == ["a", "b"]
    assert set(mapping_store.load()) == {"a", "b"}
    stored = task_source.tasks["a"]
    assert stored.notification_id in notifier.scheduled
    assert stored.reminder_time is not None

    again = await service.run_pass()
    assert again.adapter_calls == 0


@pytest.mark.asyncio
async def test_disabled_sync_runs_nothing(service, task_source, calendar, notifier, mapping_store) -> None:
    await service.set_sync_enabled(False)
    task_source.put(make_task("a", reminder_enabled=True))
    task_source.emit(TaskChange(TaskChangeKind.CREATED, task_source.tasks["a"]))

    assert await service.run_pass() is None
    service.request_pass()
    await service.wait_idle()

    assert calendar.calls == []
    assert notifier.log == []
    assert mapping_store.load() == {}


@pytest.mark.asyncio
async def test_trigger_during_pass_queues_one_follow_up(service, task_source, calendar) -> None:
    task_source.put(make_task("a"))
    calendar.gate = asyncio.Event()

    first = asyncio.create_task(service.run_pass())
    await asyncio.sleep(0)
    assert service.in_flight

    task_source.put(make_task("b"))
    assert await service.run_pass() is None
    assert await service.run_pass() is None

    calendar.gate.set()
    result = await first

    assert service.passes_run == 2
    assert result.created == ["b"]
    assert calendar.max_active == 1
    assert len(calendar.calls_for("create", "a")) == 1


@pytest.mark.asyncio
async def test_rapid_triggers_coalesce(service, task_source) -> None:
    service.start()
    for i in range(5):
        task = make_task(str(i))
        task_source.put(task)
        task_source.emit(TaskChange(TaskChangeKind.CREATED, task))

    await service.wait_idle()

    assert service.passes_run == 1
    assert sorted(service.last_result.created) == ["0", "1", "2", "3", "4"]
    service.stop()


@pytest.mark.asyncio
async def test_disabling_mid_pass_lets_it_finish_without_follow_up(service, task_source, calendar) -> None:
    task_source.put(make_task("a"))
    calendar.gate = asyncio.Event()

    first = asyncio.create_task(service.run_pass())
    await asyncio.sleep(0)
    await service.run_pass()  # queued follow-up
    await service.set_sync_enabled(False)

    calendar.gate.set()
    result = await first

    assert result.created == ["a"]
    assert service.passes_run == 1


@pytest.mark.asyncio
async def test_enabling_sync_without_permission_returns_notice(service, calendar, task_source) -> None:
    await service.set_sync_enabled(False)
    calendar.access_granted = False
    task_source.put(make_task("a"))

    notice = await service.set_sync_enabled(True)

    assert notice == CALENDAR_PERMISSION_NOTICE
    assert service.config.calendar_sync_enabled is False
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_enabling_sync_runs_first_pass_and_reports_failures(service, calendar, task_source) -> None:
    await service.set_sync_enabled(False)
    task_source.put(make_task("a"))
    task_source.put(make_task("b"))
    calendar.fail["create"].add("b")

    notice = await service.set_sync_enabled(True)

    assert service.config.calendar_sync_enabled is True
    assert notice is not None
    assert "1 task could not be synced" in notice.message
    assert calendar.events_for("a")


@pytest.mark.asyncio
async def test_task_saved_validates_before_scheduling(service, notifier, calendar) -> None:
    bad = make_task("a", due_date=None, recurrence=RecurrenceRule(type=RecurrenceType.WEEKLY))
    with pytest.raises(ValidationError):
        await service.on_task_saved(bad)

    empty_custom = make_task("b", recurrence=RecurrenceRule(type=RecurrenceType.CUSTOM), reminder_enabled=True)
    with pytest.raises(ValidationError):
        await service.on_task_saved(empty_custom)

    assert notifier.log == []
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_task_saved_schedules_reminder_or_returns_notice(service, task_source, notifier) -> None:
    task = make_task("a", reminder_enabled=True)
    task_source.put(task)

    assert await service.on_task_saved(task) is None
    assert task_source.tasks["a"].notification_id in notifier.scheduled

    other = make_task("b", reminder_enabled=True)
    task_source.put(other)
    notifier.fail_schedule.add("b")
    notice = await service.on_task_saved(other)
    assert notice is not None and notice.title == "Reminder"
    assert task_source.tasks["b"].notification_id is None
    await service.wait_idle()


@pytest.mark.asyncio
async def test_deleting_a_task_cancels_its_reminder(service, task_source, notifier) -> None:
    service.start()
    task = make_task("a", reminder_enabled=True)
    task_source.put(task)
    await service.run_pass()
    stored = task_source.tasks.pop("a")

    task_source.emit(TaskChange(TaskChangeKind.DELETED, stored))
    await service.wait_idle()

    assert ("cancel", stored.notification_id) in notifier.log
    assert notifier.scheduled == {}
    assert service.last_result.removed == ["a"]
    service.stop()


class _BrokenStore:
    def __init__(self) -> None:
        self.saved = 0

    def load(self):
        return {}

    def save(self, mapping) -> None:
        self.saved += 1
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_failed_commit_does_not_raise(task_source, calendar, notifier, config) -> None:
    store = _BrokenStore()
    service = SyncService(
        task_source=task_source,
        mapping_store=store,
        calendar=calendar,
        notifier=notifier,
        config=config,
        clock=lambda: NOW,
    )
    task_source.put(make_task("a"))

    result = await service.run_pass()

    assert result.created == ["a"]
    assert store.saved == 1


@pytest.mark.asyncio
async def test_sync_loop_retries_failed_create(service, task_source, calendar) -> None:
    task_source.put(make_task("a"))
    calendar.fail["create"].add("a")

    runner = asyncio.create_task(run_sync_loop(service, interval_seconds=0.01))
    await asyncio.sleep(0.05)
    calendar.fail["create"].clear()
    await asyncio.sleep(1.2)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert len(calendar.events_for("a")) == 1
    assert service.passes_run >= 2


@pytest.mark.asyncio
async def test_reminder_lead_change_reschedules_on_next_pass(service, task_source, notifier) -> None:
    task_source.put(make_task("a", reminder_enabled=True))
    await service.run_pass()
    first_id = task_source.tasks["a"].notification_id

    service.set_reminder_lead(1440)
    await service.wait_idle()

    stored = task_source.tasks["a"]
    assert stored.notification_id != first_id
    assert stored.reminder_time == DUE - timedelta(days=1)
    assert notifier.scheduled[stored.notification_id] == ("a", DUE - timedelta(days=1))
    assert first_id not in notifier.scheduled


@pytest.mark.asyncio
async def test_notification_switch_works_without_calendar_sync(service, task_source, notifier, calendar) -> None:
    await service.set_sync_enabled(False)
    task = make_task("a", reminder_enabled=True)
    task_source.put(task)
    await service.on_task_saved(task)
    assert len(notifier.scheduled) == 1

    assert await service.set_notifications_enabled(False) is None
    assert notifier.scheduled == {}
    assert task_source.tasks["a"].notification_id is None

    assert await service.set_notifications_enabled(True) is None
    stored = task_source.tasks["a"]
    assert notifier.scheduled == {stored.notification_id: ("a", DUE - timedelta(minutes=30))}
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_lead_change_moves_reminders_without_calendar_sync(service, task_source, notifier) -> None:
    await service.set_sync_enabled(False)
    task = make_task("a", reminder_enabled=True)
    task_source.put(task)
    await service.on_task_saved(task)
    first_id = task_source.tasks["a"].notification_id

    service.set_reminder_lead(1440)
    await service.wait_idle()

    stored = task_source.tasks["a"]
    assert stored.reminder_time == DUE - timedelta(days=1)
    assert notifier.log[-2:] == [("cancel", first_id), ("schedule", "a")]
    assert list(notifier.scheduled) == [stored.notification_id]


@pytest.mark.asyncio
async def test_denied_notification_permission_returns_notice(service, notifier) -> None:
    await service.set_notifications_enabled(False)
    notifier.permission_granted = False

    notice = await service.set_notifications_enabled(True)

    assert notice == NOTIFICATION_PERMISSION_NOTICE
    assert service.config.notifications_enabled is False
    await service.wait_idle()
