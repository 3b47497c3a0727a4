# src/taskmaster_sync/core/errors.py

from __future__ import annotations


class SyncError(Exception):
    """Base class for errors raised by this package."""


class ValidationError(SyncError, ValueError):
    """
    Malformed task or recurrence rule.

    Raised synchronously when a task is edited, before anything is scheduled
    or persisted. The caller (task editor) shows it to the user.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class AdapterError(SyncError):
    """
    A calendar or notification call failed (permission revoked, I/O, timeout...).

    Caught per task during a pass; the next pass re-attempts the operation.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        task_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.task_id = task_id


class ConsistencyError(SyncError):
    """A mapping entry references a task that no longer exists."""

    def __init__(self, task_id: str, event_id: str) -> None:
        super().__init__(f"mapping entry for missing task {task_id} (event {event_id})")
        self.task_id = task_id
        self.event_id = event_id
