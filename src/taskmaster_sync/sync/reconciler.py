# src/taskmaster_sync/sync/reconciler.py

from __future__ import annotations

"""
One reconciliation pass: local tasks vs. device calendar + notifications.

Per task:
- completed / no due date  -> remove its event (if mapped), drop the entry
- active, not mapped       -> create an event, map it on success
- active, mapped           -> overwrite the event when title/due date/notes changed
- mapped, task gone        -> remove the event, drop the entry

Failure isolation: every task is handled on its own and a failed call leaves
that task's entry exactly as it was. There is no retry inside a pass; the
next pass sees the same difference and tries again.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from ..core.calls import call_adapter
from ..core.errors import AdapterError, ConsistencyError
from ..core.ports import CalendarAdapter, NotificationAdapter
from ..tasks.reminders import sync_task_reminder
from ..tasks.task_models import Task
from .mapping_store import MappingEntry
from .sync_models import OperationKind, PassResult, SyncConfig, SyncFailure, SyncOperation

logger = logging.getLogger(__name__)


class _Pass:
    """Mutable state of a single pass."""

    def __init__(
        self,
        previous: dict[str, MappingEntry],
        config: SyncConfig,
        calendar: CalendarAdapter,
        notifier: NotificationAdapter | None,
        now: datetime,
    ) -> None:
        self.config = config
        self.calendar = calendar
        self.notifier = notifier
        self.now = now
        self.mapping = dict(previous)
        self.result = PassResult(new_mapping=self.mapping)

    def _ok(self, kind: OperationKind, task_id: str, ref: str | None) -> None:
        self.result.operations.append(SyncOperation(kind, task_id, ref))

    def _fail(self, kind: OperationKind, task_id: str, error: AdapterError) -> None:
        logger.warning("Calendar %s failed task_id=%s: %s", kind.value, task_id, error)
        self.result.failures.append(SyncFailure(kind, task_id, error))

    async def _call(self, kind: OperationKind, task_id: str, fn, *args):
        return await call_adapter(
            fn,
            *args,
            timeout=self.config.call_timeout_seconds,
            operation=kind.value,
            task_id=task_id,
        )

    async def remove(self, task_id: str, entry: MappingEntry) -> None:
        try:
            await self._call(OperationKind.REMOVE, task_id, self.calendar.remove_event, entry.event_id)
        except AdapterError as e:
            self._fail(OperationKind.REMOVE, task_id, e)
            return
        self.mapping.pop(task_id, None)
        self._ok(OperationKind.REMOVE, task_id, entry.event_id)

    async def create(self, task: Task) -> None:
        try:
            event_id = await self._call(OperationKind.CREATE, task.id, self.calendar.create_event, task)
            if not event_id:
                raise AdapterError("create returned no event id", operation="create", task_id=task.id)
        except AdapterError as e:
            self._fail(OperationKind.CREATE, task.id, e)
            return
        self.mapping[task.id] = MappingEntry(event_id=str(event_id), fingerprint=task.fingerprint())
        self._ok(OperationKind.CREATE, task.id, str(event_id))

    async def update(self, task: Task, entry: MappingEntry) -> None:
        fingerprint = task.fingerprint()
        if entry.fingerprint == fingerprint:
            return
        try:
            await self._call(OperationKind.UPDATE, task.id, self.calendar.update_event, entry.event_id, task)
        except AdapterError as e:
            self._fail(OperationKind.UPDATE, task.id, e)
            return
        self.mapping[task.id] = MappingEntry(event_id=entry.event_id, fingerprint=fingerprint)
        self._ok(OperationKind.UPDATE, task.id, entry.event_id)

    async def sync_calendar(self, task: Task) -> None:
        entry = self.mapping.get(task.id)
        if not task.is_active:
            if entry is not None:
                await self.remove(task.id, entry)
        elif entry is None:
            await self.create(task)
        else:
            await self.update(task, entry)

    async def sync_reminder(self, task: Task) -> None:
        if self.notifier is None:
            return
        outcome = await sync_task_reminder(task, self.notifier, self.config, now=self.now)
        self.result.operations.extend(outcome.operations)
        if outcome.failure is not None:
            self.result.failures.append(outcome.failure)
        if outcome.update is not None:
            self.result.reminder_updates.append(outcome.update)


async def reconcile(
    tasks: Iterable[Task],
    previous_mapping: dict[str, MappingEntry],
    config: SyncConfig,
    *,
    calendar: CalendarAdapter,
    notifier: NotificationAdapter | None = None,
    now: datetime | None = None,
) -> PassResult:
    """
    Run one pass and return its outcome; never raises for adapter failures.

    previous_mapping is not modified. All adapter calls have resolved by the
    time this returns, so result.new_mapping is safe to persist.
    """
    if not config.calendar_sync_enabled:
        return PassResult(new_mapping=dict(previous_mapping), skipped=True)

    if now is None:
        now = datetime.now(UTC)

    current: dict[str, Task] = {}
    for task in tasks:
        if task.id in current:
            logger.warning("Duplicate task id in snapshot: %s (last one wins)", task.id)
        current[task.id] = task

    run = _Pass(previous_mapping, config, calendar, notifier, now)

    for task in current.values():
        await run.sync_calendar(task)
        await run.sync_reminder(task)

    for task_id in sorted(set(previous_mapping) - set(current)):
        entry = previous_mapping[task_id]
        problem = ConsistencyError(task_id, entry.event_id)
        logger.debug("%s; removing event", problem)
        run.result.inconsistencies.append(problem)
        await run.remove(task_id, entry)

    result = run.result
    if result.adapter_calls:
        logger.info("Sync pass done: %s", result.summary())
    return result
