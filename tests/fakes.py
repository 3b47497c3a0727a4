# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from taskmaster_sync.core.errors import AdapterError
from taskmaster_sync.tasks.task_models import ReminderUpdate, Task, TaskChange


class FakeCalendar:
    """
    Recording CalendarAdapter.

    - calls: every attempted call as (op, task_id)
    - events: event_id -> task_id for events that currently exist
    - fail: op -> task ids whose calls raise AdapterError
    - gate: when set, create_event waits on it (in-flight tests)
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.events: dict[str, str] = {}
        self.titles: dict[str, str] = {}
        self.fail: dict[str, set[str]] = {"create": set(), "update": set(), "remove": set()}
        self.delay = 0.0
        self.gate: asyncio.Event | None = None
        self.access_granted = True
        self.return_empty_id = False
        self.active = 0
        self.max_active = 0
        self._seq = 0

    def calls_for(self, op: str, task_id: str | None = None) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] == op and (task_id is None or c[1] == task_id)]

    def events_for(self, task_id: str) -> list[str]:
        return [eid for eid, tid in self.events.items() if tid == task_id]

    def seed(self, task_id: str) -> str:
        self._seq += 1
        event_id = f"evt-{self._seq}"
        self.events[event_id] = task_id
        return event_id

    async def _enter(self, op: str, task_id: str) -> None:
        self.calls.append((op, task_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if task_id in self.fail[op]:
            raise AdapterError(f"{op} refused for {task_id}")

    async def request_access(self) -> bool:
        return self.access_granted

    async def create_event(self, task: Task) -> str:
        await self._enter("create", task.id)
        if self.return_empty_id:
            return ""
        event_id = self.seed(task.id)
        self.titles[event_id] = task.title
        return event_id

    async def update_event(self, event_id: str, task: Task) -> None:
        await self._enter("update", task.id)
        self.titles[event_id] = task.title

    async def remove_event(self, event_id: str) -> None:
        await self._enter("remove", self.events.get(event_id, event_id))
        self.events.pop(event_id, None)


class FakeNotifier:
    """Recording NotificationAdapter; log keeps call order across schedule/cancel."""

    def __init__(self) -> None:
        self.log: list[tuple[str, str]] = []
        self.scheduled: dict[str, tuple[str, datetime]] = {}
        self.fail_schedule: set[str] = set()
        self.fail_cancel: set[str] = set()
        self.permission_granted = True
        self._seq = 0

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def schedule(self, task: Task, fire_at: datetime) -> str:
        self.log.append(("schedule", task.id))
        if task.id in self.fail_schedule:
            raise AdapterError("notifications unavailable")
        self._seq += 1
        notification_id = f"ntf-{self._seq}"
        self.scheduled[notification_id] = (task.id, fire_at)
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        self.log.append(("cancel", notification_id))
        if notification_id in self.fail_cancel:
            raise AdapterError("cancel failed")
        self.scheduled.pop(notification_id, None)


class FakeTaskSource:
    """In-memory TaskSource; emit() plays the role of the task store's change feed."""

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self.tasks: dict[str, Task] = {t.id: t for t in tasks or []}
        self.listeners: list[Callable[[TaskChange], None]] = []
        self.reminder_updates: list[ReminderUpdate] = []

    def list_tasks(self) -> list[Task]:
        return list(self.tasks.values())

    def put(self, task: Task) -> None:
        self.tasks[task.id] = task

    def subscribe(self, listener: Callable[[TaskChange], None]) -> Callable[[], None]:
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def emit(self, change: TaskChange) -> None:
        for listener in list(self.listeners):
            listener(change)

    def update_reminder(self, update: ReminderUpdate) -> None:
        self.reminder_updates.append(update)
        task = self.tasks.get(update.task_id)
        if task is not None:
            self.tasks[task.id] = replace(
                task, notification_id=update.notification_id, reminder_time=update.reminder_time
            )


def apply_reminder_updates(tasks: list[Task], updates: list[ReminderUpdate]) -> list[Task]:
    by_id = {u.task_id: u for u in updates}
    out = []
    for t in tasks:
        u = by_id.get(t.id)
        out.append(t if u is None else replace(t, notification_id=u.notification_id, reminder_time=u.reminder_time))
    return out
