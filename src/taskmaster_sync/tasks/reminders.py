# src/taskmaster_sync/tasks/reminders.py

from __future__ import annotations

"""
Reminder (local notification) glue.

A task's reminder fires `reminder_lead_minutes` before its due date. The task
remembers which notification is scheduled (notification_id) and for when
(reminder_time), so a later pass can tell when the due date or lead changed:
the old notification is cancelled first, then a new one is scheduled.

A failed schedule persists nothing; the next pass sees the missing id and
tries again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..core.calls import call_adapter
from ..core.errors import AdapterError
from ..core.ports import NotificationAdapter
from ..sync.sync_models import OperationKind, SyncConfig, SyncFailure, SyncOperation
from .task_models import ReminderLead, ReminderUpdate, Task

logger = logging.getLogger(__name__)


def describe_lead(minutes: int) -> str:
    """Settings-screen wording: "15 minutes before", "1 hour before", "1 day before"."""
    minutes = int(minutes)
    if minutes < 60:
        return f"{minutes} minutes before"
    if minutes < 1440:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours > 1 else ''} before"
    days = minutes // 1440
    return f"{days} day{'s' if days > 1 else ''} before"


def reminder_fire_at(due_date: datetime, lead: ReminderLead | int) -> datetime:
    return due_date - timedelta(minutes=int(lead))


def wanted_fire_at(task: Task, config: SyncConfig) -> datetime | None:
    """When this task's reminder should fire, or None if it should have none."""
    if not config.notifications_enabled:
        return None
    if not task.reminder_enabled or task.completed or task.due_date is None:
        return None
    return reminder_fire_at(task.due_date, config.reminder_lead_minutes)


@dataclass(slots=True)
class ReminderOutcome:
    update: ReminderUpdate | None = None
    operations: list[SyncOperation] = field(default_factory=list)
    failure: SyncFailure | None = None


async def sync_task_reminder(
    task: Task,
    notifier: NotificationAdapter,
    config: SyncConfig,
    *,
    now: datetime,
) -> ReminderOutcome:
    """
    Bring one task's notification in line with its current state.

    Never raises AdapterError: a failed call is returned in outcome.failure.
    """
    out = ReminderOutcome()
    fire_at = wanted_fire_at(task, config)
    notification_id = task.notification_id
    reminder_time = task.reminder_time

    if notification_id is not None and (fire_at is None or reminder_time != fire_at):
        try:
            await call_adapter(
                notifier.cancel,
                notification_id,
                timeout=config.call_timeout_seconds,
                operation=OperationKind.CANCEL.value,
                task_id=task.id,
            )
        except AdapterError as e:
            # Keep the old id: rescheduling now could leave two live notifications.
            logger.warning("Reminder cancel failed task_id=%s: %s", task.id, e)
            out.failure = SyncFailure(OperationKind.CANCEL, task.id, e)
            return out
        out.operations.append(SyncOperation(OperationKind.CANCEL, task.id, notification_id))
        notification_id = None
        reminder_time = None

    if fire_at is not None and notification_id is None and fire_at > now:
        try:
            new_id = await call_adapter(
                notifier.schedule,
                task,
                fire_at,
                timeout=config.call_timeout_seconds,
                operation=OperationKind.SCHEDULE.value,
                task_id=task.id,
            )
            if not new_id:
                raise AdapterError("schedule returned no notification id", operation="schedule", task_id=task.id)
        except AdapterError as e:
            logger.warning("Reminder schedule failed task_id=%s: %s", task.id, e)
            out.failure = SyncFailure(OperationKind.SCHEDULE, task.id, e)
        else:
            out.operations.append(SyncOperation(OperationKind.SCHEDULE, task.id, new_id))
            notification_id = str(new_id)
            reminder_time = fire_at
            logger.debug("Reminder scheduled task_id=%s fire_at=%s", task.id, fire_at.isoformat())

    if notification_id != task.notification_id or reminder_time != task.reminder_time:
        out.update = ReminderUpdate(task.id, notification_id, reminder_time)
    return out
