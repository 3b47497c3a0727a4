# src/taskmaster_sync/connectors/json_task_source.py

from __future__ import annotations

"""
TaskSource over a JSON file.

Stands in for the app's task store on the command line. The file holds either
a list of task objects or {"tasks": [...]}; keys follow the mobile app
(dueDate, reminderEnabled, notificationId, ...).

Change notifications are produced by poll_changes(), which diffs the file
against the last snapshot it saw.
"""

import logging
from collections.abc import Callable
from datetime import UTC, tzinfo
from pathlib import Path
from typing import Any

from ..core.errors import ValidationError
from ..core.ports import TaskListener
from ..tasks.task_models import ReminderUpdate, Task, TaskChange, TaskChangeKind
from ..timeutil import format_instant
from .json_document import JsonDocument

logger = logging.getLogger(__name__)


class JsonTaskSource:
    def __init__(self, path: str | Path, *, tz: tzinfo = UTC) -> None:
        self._doc = JsonDocument(path)
        self._tz = tz
        self._listeners: list[TaskListener] = []
        self._snapshot: dict[str, Task] = {}
        self._seen_mtime: float | None = None

    # ---- raw document ----

    def _read_items(self) -> tuple[Any, list[dict[str, Any]]]:
        raw = self._doc.read()
        if raw is None:
            return [], []
        items = raw.get("tasks") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise ValidationError(f"{self._doc.path}: expected a list of tasks")
        return raw, [i for i in items if isinstance(i, dict)]

    # ---- TaskSource ----

    def list_tasks(self) -> list[Task]:
        """
        Parse every task in the file.

        A malformed task fails the whole read: silently dropping it would make
        the reconciler treat it as deleted and remove its calendar event.
        """
        _, items = self._read_items()
        return [Task.from_dict(item, tz=self._tz) for item in items]

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update_reminder(self, update: ReminderUpdate) -> None:
        """
        Persist reminder state without emitting a change notification.

        Our own write is only marked as seen when the file had no unpolled
        edits before it; otherwise the next poll still diffs and reports them.
        """
        unpolled = self._doc.mtime() != self._seen_mtime
        raw, items = self._read_items()
        for item in items:
            if str(item.get("id")) == update.task_id:
                item["notificationId"] = update.notification_id
                item["reminderTime"] = format_instant(update.reminder_time)
                break
        else:
            logger.debug("Reminder update for unknown task %s ignored", update.task_id)
            return
        self._doc.write(raw)
        if not unpolled:
            self._seen_mtime = self._doc.mtime()

        known = self._snapshot.get(update.task_id)
        if known is not None:
            known.notification_id = update.notification_id
            known.reminder_time = update.reminder_time

    # ---- change feed ----

    def _emit(self, change: TaskChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Task listener failed")

    def poll_changes(self) -> list[TaskChange]:
        """Diff the file against the previous snapshot and notify listeners."""
        mtime = self._doc.mtime()
        if mtime is not None and mtime == self._seen_mtime:
            return []
        self._seen_mtime = mtime

        current = {t.id: t for t in self.list_tasks()}
        changes: list[TaskChange] = []

        for task_id, task in current.items():
            before = self._snapshot.get(task_id)
            if before is None:
                changes.append(TaskChange(TaskChangeKind.CREATED, task))
            elif before.completed != task.completed:
                changes.append(TaskChange(TaskChangeKind.TOGGLED, task, before))
            elif before.to_dict() != task.to_dict():
                changes.append(TaskChange(TaskChangeKind.UPDATED, task, before))

        for task_id in sorted(self._snapshot.keys() - current.keys()):
            changes.append(TaskChange(TaskChangeKind.DELETED, self._snapshot[task_id]))

        self._snapshot = current
        for change in changes:
            self._emit(change)
        return changes
