# src/taskmaster_sync/connectors/local_adapters.py

from __future__ import annotations

"""
File-backed calendar and notification adapters.

Used for local runs of the CLI: events and scheduled notifications are written
to JSON documents instead of a device calendar / notification center.
"""

import json
import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import AdapterError
from ..tasks.task_models import Task
from ..timeutil import format_instant
from .json_document import JsonDocument

logger = logging.getLogger(__name__)


def _load(doc: JsonDocument, key: str) -> dict[str, Any]:
    try:
        raw = doc.read() or {}
    except (OSError, json.JSONDecodeError) as e:
        raise AdapterError(f"cannot read {doc.path}: {e}") from e
    if not isinstance(raw, dict):
        raise AdapterError(f"{doc.path}: expected a JSON object")
    raw.setdefault(key, {})
    return raw


def _store(doc: JsonDocument, data: dict[str, Any]) -> None:
    try:
        doc.write(data)
    except OSError as e:
        raise AdapterError(f"cannot write {doc.path}: {e}") from e


def _writable(path: Path) -> bool:
    parent = path.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(parent, os.W_OK)


class FileCalendarAdapter:
    """
    Calendar events in a JSON document:
      {"events": {event_id: {...}}, "byTask": {task_id: event_id}}

    create_event is idempotent per task id: creating again for a task that
    already has an event overwrites and returns that event.
    """

    def __init__(self, path: str | Path, *, calendar_name: str = "Taskmaster") -> None:
        self._doc = JsonDocument(path)
        self._calendar_name = calendar_name

    def _event_body(self, task: Task) -> dict[str, Any]:
        return {
            "taskId": task.id,
            "calendar": self._calendar_name,
            "title": task.title,
            "start": format_instant(task.due_date),
            "notes": task.notes,
        }

    async def request_access(self) -> bool:
        return _writable(self._doc.path)

    async def create_event(self, task: Task) -> str:
        data = _load(self._doc, "events")
        by_task = data.setdefault("byTask", {})

        event_id = by_task.get(task.id)
        if event_id not in data["events"]:
            event_id = uuid.uuid4().hex
        data["events"][event_id] = self._event_body(task)
        by_task[task.id] = event_id
        _store(self._doc, data)
        logger.debug("Calendar event %s written for task %s", event_id, task.id)
        return event_id

    async def update_event(self, event_id: str, task: Task) -> None:
        data = _load(self._doc, "events")
        if event_id not in data["events"]:
            raise AdapterError(f"no calendar event {event_id}")
        data["events"][event_id] = self._event_body(task)
        data.setdefault("byTask", {})[task.id] = event_id
        _store(self._doc, data)

    async def remove_event(self, event_id: str) -> None:
        data = _load(self._doc, "events")
        body = data["events"].pop(event_id, None)
        by_task = data.setdefault("byTask", {})
        if body is not None and by_task.get(body.get("taskId")) == event_id:
            del by_task[body["taskId"]]
        _store(self._doc, data)


class FileNotificationAdapter:
    """Scheduled notifications in a JSON document: {"notifications": {id: {...}}}."""

    def __init__(self, path: str | Path) -> None:
        self._doc = JsonDocument(path)

    async def request_permission(self) -> bool:
        return _writable(self._doc.path)

    async def schedule(self, task: Task, fire_at: datetime) -> str:
        data = _load(self._doc, "notifications")
        notification_id = uuid.uuid4().hex
        data["notifications"][notification_id] = {
            "taskId": task.id,
            "title": "Task Reminder",
            "body": task.title,
            "fireAt": format_instant(fire_at),
        }
        _store(self._doc, data)
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        data = _load(self._doc, "notifications")
        if data["notifications"].pop(notification_id, None) is not None:
            _store(self._doc, data)
