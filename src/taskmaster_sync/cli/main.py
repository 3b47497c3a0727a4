# src/taskmaster_sync/cli/main.py

"""
CLI entrypoint.

Subcommands:
- describe: print the label of a recurrence rule
- next:     print upcoming occurrences of a rule from a due date
- sync:     run one reconciliation pass over the task file
- watch:    keep syncing: react to task file changes + periodic re-evaluation
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from dataclasses import replace

from ..config import get_settings
from ..core.errors import ValidationError
from ..logging_setup import setup_logging
from ..recurrence import RecurrenceRule, RecurrenceType, describe, upcoming_occurrences, validate_rule
from ..sync.sync_service import run_sync_loop
from ..tasks.reminders import describe_lead
from ..timeutil import parse_instant, resolve_tz
from .bootstrap import create_initial_state

logger = logging.getLogger(__name__)


def _rule_from_args(args: argparse.Namespace) -> RecurrenceRule:
    tz = resolve_tz(getattr(args, "tz", None))
    days: frozenset[int] = frozenset()
    if args.days:
        try:
            days = frozenset(int(d) for d in args.days.split(",") if d.strip())
        except ValueError:
            raise ValidationError(f"--days must be comma-separated integers, got {args.days!r}") from None
    rule = RecurrenceRule(
        type=RecurrenceType.parse(args.type),
        interval=args.interval,
        days_of_week=days if args.type == "custom" else frozenset(),
        end_date=parse_instant(args.end, tz, end_of_day=True),
    )
    return validate_rule(rule)


def _add_rule_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--type", choices=[t.value for t in RecurrenceType], default="none")
    p.add_argument("--interval", type=int, default=1)
    p.add_argument("--days", default="", help="custom weekdays, 0=Sun..6=Sat, e.g. 1,3,5")
    p.add_argument("--end", default=None, help="end date (ISO), inclusive")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskmaster-sync")
    sub = parser.add_subparsers(dest="command", required=True)

    p_describe = sub.add_parser("describe", help="describe a recurrence rule")
    _add_rule_args(p_describe)

    p_next = sub.add_parser("next", help="list upcoming occurrences")
    _add_rule_args(p_next)
    p_next.add_argument("--due", required=True, help="current due date (ISO)")
    p_next.add_argument("--count", type=int, default=5)
    p_next.add_argument("--tz", default="UTC")

    p_sync = sub.add_parser("sync", help="run one sync pass over the task file")
    p_sync.add_argument("--enable", action="store_true", help="force calendar sync on for this run")

    p_watch = sub.add_parser("watch", help="sync continuously")
    p_watch.add_argument("--enable", action="store_true", help="force calendar sync on for this run")
    p_watch.add_argument("--poll", type=float, default=1.0, help="task file poll interval (seconds)")

    return parser


def _cmd_describe(args: argparse.Namespace) -> int:
    print(describe(_rule_from_args(args)))
    return 0


def _cmd_next(args: argparse.Namespace) -> int:
    rule = _rule_from_args(args)
    due = parse_instant(args.due, resolve_tz(args.tz))
    if due is None:
        raise ValidationError("--due is required")
    occurrences = upcoming_occurrences(due, rule, args.count)
    print(f"{describe(rule)} from {due.isoformat()}:")
    for dt in occurrences:
        print(f"  {dt.isoformat()}")
    if not occurrences:
        print("  (no further occurrences)")
    return 0


def _load_state(args: argparse.Namespace):
    settings = get_settings()
    if args.enable:
        settings = replace(settings, calendar_sync_enabled=True)
    return create_initial_state(settings=settings)


async def _cmd_sync(args: argparse.Namespace) -> int:
    state = _load_state(args)
    result = await state.service.run_pass()
    if result is None:
        print("Calendar sync is disabled (set TASKMASTER_CALENDAR_SYNC_ENABLED=1 or pass --enable).")
        return 0
    print(result.summary())
    for failure in result.failures:
        print(f"  failed {failure.kind.value} task={failure.task_id}: {failure.error}")
    return 1 if result.failures else 0


async def _cmd_watch(args: argparse.Namespace) -> int:
    state = _load_state(args)
    service = state.service
    service.start()
    logger.info(
        "Watching %s (reminders %s)",
        state.settings.tasks_path,
        describe_lead(int(state.settings.reminder_lead_minutes)),
    )

    loop_task = asyncio.create_task(
        run_sync_loop(service, interval_seconds=state.settings.sync_interval_seconds)
    )
    poll_s = max(0.1, float(args.poll))
    try:
        while True:
            try:
                state.task_source.poll_changes()
            except Exception:
                logger.exception("Could not read task file")
            await asyncio.sleep(poll_s)
    finally:
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task
        service.stop()
        await service.wait_idle()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    try:
        if args.command == "describe":
            return _cmd_describe(args)
        if args.command == "next":
            return _cmd_next(args)
        if args.command == "sync":
            return asyncio.run(_cmd_sync(args))
        if args.command == "watch":
            return asyncio.run(_cmd_watch(args))
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Bye.")
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
