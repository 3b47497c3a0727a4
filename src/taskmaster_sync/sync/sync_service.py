# src/taskmaster_sync/sync/sync_service.py

from __future__ import annotations

"""
Sync service.

Owns the lifecycle around reconcile():
- serializes passes (one in flight; triggers arriving mid-pass queue one follow-up pass),
- coalesces bursts of task changes into one pass (debounce),
- loads the mapping before a pass and commits it after every call resolved,
- writes reminder updates back to the task source,
- turns failures of explicit user actions into one-time notices.

Scheduling is cooperative (asyncio, single thread).
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from ..core.calls import call_adapter
from ..core.errors import AdapterError
from ..core.ports import CalendarAdapter, MappingRepo, NotificationAdapter, TaskSource
from ..tasks.reminders import sync_task_reminder
from ..tasks.task_models import ReminderLead, Task, TaskChange, TaskChangeKind, validate_task
from .reconciler import reconcile
from .sync_models import PassResult, SyncConfig, SyncNotice

logger = logging.getLogger(__name__)

CALENDAR_PERMISSION_NOTICE = SyncNotice(
    "Permission Required",
    "Please enable calendar access in your device settings to use this feature.",
)
NOTIFICATION_PERMISSION_NOTICE = SyncNotice(
    "Permission Required",
    "Please enable notifications in your device settings to use this feature.",
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncService:
    def __init__(
        self,
        *,
        task_source: TaskSource,
        mapping_store: MappingRepo,
        calendar: CalendarAdapter,
        notifier: NotificationAdapter | None,
        config: SyncConfig,
        debounce_seconds: float = 0.5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._tasks = task_source
        self._mapping_store = mapping_store
        self._calendar = calendar
        self._notifier = notifier
        self._config = config
        self._debounce_s = max(0.0, float(debounce_seconds))
        self._clock = clock

        self._in_flight = False
        self._rerun_requested = False
        # Held while reminder state is read and written (passes and editor saves).
        self._state_lock = asyncio.Lock()
        self._timer: asyncio.TimerHandle | None = None
        self._background: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        self.last_result: PassResult | None = None
        self.passes_run = 0

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ---- lifecycle ----

    def start(self) -> None:
        """Subscribe to task changes. Call from inside the running event loop."""
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = self._tasks.subscribe(self._on_task_change)
        logger.info("SyncService started (calendar_sync_enabled=%s)", self._config.calendar_sync_enabled)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_timer()

    async def wait_idle(self) -> None:
        """Wait until no pass is pending or running (tests, shutdown)."""
        while True:
            if self._timer is not None:
                await asyncio.sleep(self._debounce_s or 0)
                continue
            pending = [t for t in self._background if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ---- triggers ----

    def request_pass(self) -> None:
        """Schedule a pass after the debounce window; repeated calls restart the window."""
        if not self._config.calendar_sync_enabled:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._cancel_timer()
        self._timer = loop.call_later(self._debounce_s, self._fire_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire_timer(self) -> None:
        self._timer = None
        self._spawn(self.run_pass())

    def _spawn(self, coro) -> None:
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_task_change(self, change: TaskChange) -> None:
        logger.debug("Task change kind=%s task_id=%s", change.kind.value, change.task.id)
        if change.kind is TaskChangeKind.DELETED and change.task.notification_id:
            # The task leaves the snapshot, so a pass can no longer see its reminder.
            self._spawn(self._cancel_notification(change.task))
        self.request_pass()

    async def _cancel_notification(self, task: Task) -> None:
        if self._notifier is None or not task.notification_id:
            return
        try:
            await call_adapter(
                self._notifier.cancel,
                task.notification_id,
                timeout=self._config.call_timeout_seconds,
                operation="cancel",
                task_id=task.id,
            )
        except AdapterError as e:
            logger.warning("Could not cancel reminder of deleted task %s: %s", task.id, e)

    # ---- passes ----

    async def run_pass(self) -> PassResult | None:
        """
        Run a pass now, unless one is already running.

        Returns the result of the last pass run by this call, or None when the
        pass was skipped (sync disabled, already in flight, storage unreadable).
        """
        if not self._config.calendar_sync_enabled:
            return None
        if self._in_flight:
            logger.debug("Pass already in flight; queueing a follow-up")
            self._rerun_requested = True
            return None

        self._in_flight = True
        try:
            result: PassResult | None = None
            while True:
                self._rerun_requested = False
                result = await self._run_once()
                # Disabling sync mid-pass lets that pass finish but starts nothing new.
                if not self._rerun_requested or not self._config.calendar_sync_enabled:
                    return result
        finally:
            self._in_flight = False

    async def _run_once(self) -> PassResult | None:
        async with self._state_lock:
            return await self._run_locked()

    async def _run_locked(self) -> PassResult | None:
        config = self._config
        try:
            previous = self._mapping_store.load()
            tasks = self._tasks.list_tasks()
        except Exception:
            logger.exception("Could not read tasks or mapping; skipping pass")
            return None

        result = await reconcile(
            tasks,
            previous,
            config,
            calendar=self._calendar,
            notifier=self._notifier,
            now=self._clock(),
        )
        self.passes_run += 1
        self.last_result = result

        try:
            self._mapping_store.save(result.new_mapping)
        except Exception:
            # Previous mapping stays; the next pass re-applies this pass's changes.
            logger.exception("Could not save sync mapping")

        self._apply_reminder_updates(result)
        return result

    def _apply_reminder_updates(self, result: PassResult) -> None:
        for update in result.reminder_updates:
            try:
                self._tasks.update_reminder(update)
            except Exception:
                logger.exception("Could not store reminder state task_id=%s", update.task_id)

    # ---- explicit user actions ----

    async def set_sync_enabled(self, enabled: bool) -> SyncNotice | None:
        """
        Toggle calendar sync.

        Enabling asks for calendar access and runs a first pass right away; a
        denied permission or failed first pass yields a notice for the user.
        """
        if not enabled:
            self._config = replace(self._config, calendar_sync_enabled=False)
            self._cancel_timer()
            logger.info("Calendar sync disabled")
            return None

        if self._config.calendar_sync_enabled:
            return None

        try:
            granted = await call_adapter(
                self._calendar.request_access,
                timeout=self._config.call_timeout_seconds,
                operation="request_access",
            )
        except AdapterError as e:
            logger.warning("Calendar access request failed: %s", e)
            granted = False
        if not granted:
            return CALENDAR_PERMISSION_NOTICE

        self._config = replace(self._config, calendar_sync_enabled=True)
        logger.info("Calendar sync enabled")

        result = await self.run_pass()
        if result is not None and result.failures:
            n = len(set(result.failed))
            return SyncNotice(
                "Calendar Sync",
                f"{n} task{'s' if n != 1 else ''} could not be synced yet. They will be retried automatically.",
            )
        return None

    async def set_notifications_enabled(self, enabled: bool) -> SyncNotice | None:
        if enabled and self._notifier is not None:
            try:
                granted = await call_adapter(
                    self._notifier.request_permission,
                    timeout=self._config.call_timeout_seconds,
                    operation="request_permission",
                )
            except AdapterError as e:
                logger.warning("Notification permission request failed: %s", e)
                granted = False
            if not granted:
                return NOTIFICATION_PERMISSION_NOTICE

        self._config = replace(self._config, notifications_enabled=bool(enabled))
        if self._config.calendar_sync_enabled:
            self.request_pass()
        else:
            await self._sync_reminders()
        return None

    def set_reminder_lead(self, minutes: int | ReminderLead) -> ReminderLead:
        """
        Change the lead time. Existing reminders move with the next pass, or
        right away in the background while calendar sync is off.
        """
        lead = ReminderLead.parse(minutes)
        self._config = replace(self._config, reminder_lead_minutes=lead)
        if self._config.calendar_sync_enabled:
            self.request_pass()
        else:
            self._spawn(self._sync_reminders())
        return lead

    async def _sync_reminders(self) -> int:
        """
        Reminder half of a pass, used while calendar sync is off: notifications
        still follow the notification switch and lead time. Returns the number
        of tasks whose reminder could not be brought in line.
        """
        if self._notifier is None:
            return 0
        async with self._state_lock:
            try:
                tasks = self._tasks.list_tasks()
            except Exception:
                logger.exception("Could not read tasks; reminders left as they are")
                return 0

            now = self._clock()
            failed = 0
            for task in tasks:
                outcome = await sync_task_reminder(task, self._notifier, self._config, now=now)
                if outcome.failure is not None:
                    failed += 1
                if outcome.update is not None:
                    try:
                        self._tasks.update_reminder(outcome.update)
                    except Exception:
                        logger.exception("Could not store reminder state task_id=%s", task.id)
        if failed:
            logger.info("Reminder refresh left %d failure(s)", failed)
        return failed

    def _find_task(self, task_id: str) -> Task | None:
        try:
            tasks = self._tasks.list_tasks()
        except Exception:
            logger.exception("Could not read tasks")
            return None
        return next((t for t in tasks if t.id == task_id), None)

    async def on_task_saved(self, task: Task) -> SyncNotice | None:
        """
        Editor hook after a task is created or edited.

        Validates first (ValidationError goes back to the editor), then
        schedules or moves the reminder immediately so the user learns about a
        failure once. The calendar side follows in the next pass.
        """
        validate_task(task)

        notice: SyncNotice | None = None
        if self._notifier is not None:
            async with self._state_lock:
                # A pass may have scheduled this reminder while we waited.
                current = self._find_task(task.id) or task
                outcome = await sync_task_reminder(current, self._notifier, self._config, now=self._clock())
                if outcome.update is not None:
                    try:
                        self._tasks.update_reminder(outcome.update)
                    except Exception:
                        logger.exception("Could not store reminder state task_id=%s", task.id)
            if outcome.failure is not None and task.reminder_enabled:
                notice = SyncNotice(
                    "Reminder",
                    f'Could not schedule a reminder for "{task.title}". It will be retried automatically.',
                )

        self.request_pass()
        return notice


async def run_sync_loop(service: SyncService, *, interval_seconds: float = 300.0) -> None:
    """
    Periodic re-evaluation.

    Failed operations are not retried explicitly: every interval_seconds a
    pass compares the world again and re-attempts whatever is still off.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))
    while True:
        try:
            result = await service.run_pass()
            if result is not None and result.failures:
                logger.info("Sync pass left %d failure(s); retrying in %.0fs", len(result.failures), sleep_s)
        except Exception:
            logger.exception("Sync pass crashed")
        await asyncio.sleep(sleep_s)
