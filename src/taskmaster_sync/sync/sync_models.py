# src/taskmaster_sync/sync/sync_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from ..core.errors import AdapterError, ConsistencyError
from ..tasks.task_models import DEFAULT_REMINDER_LEAD, ReminderLead, ReminderUpdate
from .mapping_store import MappingEntry


class OperationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"
    SCHEDULE = "schedule"
    CANCEL = "cancel"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """
    Settings a pass depends on, passed explicitly instead of read from globals.

    calendar_sync_enabled gates the whole pass (reminders included).
    """

    calendar_sync_enabled: bool = False
    reminder_lead_minutes: ReminderLead = DEFAULT_REMINDER_LEAD
    notifications_enabled: bool = True
    call_timeout_seconds: float = 10.0


@dataclass(frozen=True, slots=True)
class SyncOperation:
    """A successful adapter call. ref is the event/notification id involved."""

    kind: OperationKind
    task_id: str
    ref: str | None = None


@dataclass(frozen=True, slots=True)
class SyncFailure:
    kind: OperationKind
    task_id: str
    error: AdapterError


@dataclass(slots=True)
class PassResult:
    new_mapping: dict[str, MappingEntry]
    operations: list[SyncOperation] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)
    reminder_updates: list[ReminderUpdate] = field(default_factory=list)
    inconsistencies: list[ConsistencyError] = field(default_factory=list)
    skipped: bool = False

    def _ids(self, kind: OperationKind) -> list[str]:
        return [op.task_id for op in self.operations if op.kind is kind]

    @property
    def created(self) -> list[str]:
        return self._ids(OperationKind.CREATE)

    @property
    def updated(self) -> list[str]:
        return self._ids(OperationKind.UPDATE)

    @property
    def removed(self) -> list[str]:
        return self._ids(OperationKind.REMOVE)

    @property
    def scheduled(self) -> list[str]:
        return self._ids(OperationKind.SCHEDULE)

    @property
    def cancelled(self) -> list[str]:
        return self._ids(OperationKind.CANCEL)

    @property
    def failed(self) -> list[str]:
        return [f.task_id for f in self.failures]

    @property
    def adapter_calls(self) -> int:
        """Adapter calls attempted in this pass (successful and failed)."""
        return len(self.operations) + len(self.failures)

    def summary(self) -> str:
        if self.skipped:
            return "skipped (calendar sync disabled)"
        return (
            f"created={len(self.created)} updated={len(self.updated)} removed={len(self.removed)} "
            f"scheduled={len(self.scheduled)} cancelled={len(self.cancelled)} failed={len(self.failures)}"
        )


@dataclass(frozen=True, slots=True)
class SyncNotice:
    """One-time failure notice for an explicit user action."""

    title: str
    message: str
