# src/taskmaster_sync/tasks/task_models.py

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from enum import IntEnum, StrEnum
from typing import Any

from ..core.errors import ValidationError
from ..recurrence import RecurrenceRule
from ..timeutil import format_instant, parse_instant


class ReminderLead(IntEnum):
    """Minutes before the due date a reminder fires."""

    MINUTES_15 = 15
    MINUTES_30 = 30
    HOUR_1 = 60
    DAY_1 = 1440

    @classmethod
    def parse(cls, raw: int | str | None, default: ReminderLead | None = None) -> ReminderLead:
        try:
            return cls(int(raw))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            if default is not None:
                return default
            allowed = ", ".join(str(m.value) for m in cls)
            raise ValidationError(f"reminder lead must be one of {allowed}, got {raw!r}") from None


DEFAULT_REMINDER_LEAD = ReminderLead.HOUR_1


@dataclass(slots=True)
class Task:
    """
    Snapshot of a task as the task store sees it.

    The reconciler never mutates tasks; reminder changes flow back to the
    store as ReminderUpdate values.
    """

    id: str
    title: str
    due_date: datetime | None = None
    completed: bool = False
    recurrence: RecurrenceRule = field(default_factory=RecurrenceRule)
    reminder_enabled: bool = False
    # Fire time the current notification_id was scheduled for.
    reminder_time: datetime | None = None
    notification_id: str | None = None
    notes: str = ""

    @property
    def is_active(self) -> bool:
        """Active tasks are mirrored into the calendar."""
        return not self.completed and self.due_date is not None

    def fingerprint(self) -> str:
        """Digest of the fields copied into the calendar event."""
        raw = "\x1f".join((self.title, format_instant(self.due_date) or "", self.notes))
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dueDate": format_instant(self.due_date),
            "completed": self.completed,
            "recurrence": self.recurrence.to_dict(),
            "reminderEnabled": self.reminder_enabled,
            "reminderTime": format_instant(self.reminder_time),
            "notificationId": self.notification_id,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, tz: tzinfo = UTC) -> Task:
        task_id = str(data.get("id") or "").strip()
        if not task_id:
            raise ValidationError("task id is required", field="id")
        try:
            due_date = parse_instant(data.get("dueDate"), tz)
            reminder_time = parse_instant(data.get("reminderTime"), tz)
        except ValueError as e:
            raise ValidationError(f"task {task_id}: invalid date ({e})", field="dueDate") from None

        return cls(
            id=task_id,
            title=str(data.get("title") or ""),
            due_date=due_date,
            completed=bool(data.get("completed", False)),
            recurrence=RecurrenceRule.from_dict(data.get("recurrence"), tz=tz),
            reminder_enabled=bool(data.get("reminderEnabled", False)),
            reminder_time=reminder_time,
            notification_id=data.get("notificationId") or None,
            notes=str(data.get("notes") or ""),
        )


def validate_task(task: Task) -> Task:
    """
    Editor-time validation: run before saving or scheduling anything.

    - the recurrence rule itself must be well formed
    - repeating tasks and reminders both need a due date
    """
    if not task.title.strip():
        raise ValidationError("title is required", field="title")
    task.recurrence.validate()
    if task.recurrence.repeats and task.due_date is None:
        raise ValidationError("a recurring task needs a due date", field="dueDate")
    if task.reminder_enabled and task.due_date is None:
        raise ValidationError("a reminder needs a due date", field="dueDate")
    return task


class TaskChangeKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    TOGGLED = "toggled"


@dataclass(slots=True, frozen=True)
class TaskChange:
    """Change notification emitted by a TaskSource."""

    kind: TaskChangeKind
    task: Task
    previous: Task | None = None


@dataclass(slots=True, frozen=True)
class ReminderUpdate:
    """New reminder state for a task, written back to the task store."""

    task_id: str
    notification_id: str | None
    reminder_time: datetime | None
