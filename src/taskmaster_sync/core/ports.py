# src/taskmaster_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reconciler depends on Protocols instead of concrete implementations.
This keeps the device calendar / notification scheduler / task store swappable
and makes testing easier.
"""

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Protocol

if TYPE_CHECKING:
    from ..sync.mapping_store import MappingEntry
    from ..tasks.task_models import ReminderUpdate, Task, TaskChange

TaskListener = Callable[["TaskChange"], None]


class CalendarAdapter(Protocol):
    """
    Device calendar.

    create_event should be idempotent per task id where the platform allows it:
    after a crash between create and mapping commit, the next pass creates again.
    """

    def create_event(self, task: Task) -> Awaitable[str]: ...
    def update_event(self, event_id: str, task: Task) -> Awaitable[None]: ...
    def remove_event(self, event_id: str) -> Awaitable[None]: ...

    # Explicit user action (enabling sync); False means access was denied.
    def request_access(self) -> Awaitable[bool]: ...


class NotificationAdapter(Protocol):
    """Local notification scheduler."""

    def schedule(self, task: Task, fire_at: datetime) -> Awaitable[str]: ...
    def cancel(self, notification_id: str) -> Awaitable[None]: ...
    def request_permission(self) -> Awaitable[bool]: ...


class TaskSource(Protocol):
    """
    Task store side (owned elsewhere): snapshot + change notifications.

    update_reminder persists reminder state produced by a pass
    (notification id and the fire time it was scheduled for).
    """

    def list_tasks(self) -> list[Task]: ...
    def subscribe(self, listener: TaskListener) -> Callable[[], None]: ...
    def update_reminder(self, update: ReminderUpdate) -> None: ...


class MappingRepo(Protocol):
    def load(self) -> dict[str, MappingEntry]: ...
    def save(self, mapping: dict[str, MappingEntry]) -> None: ...
