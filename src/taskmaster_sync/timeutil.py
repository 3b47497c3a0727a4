# src/taskmaster_sync/timeutil.py

"""Instant parsing shared by the task file and recurrence rules."""

from __future__ import annotations

import re
from datetime import UTC, datetime, time, tzinfo
from zoneinfo import ZoneInfo

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_tz(name: str | None) -> tzinfo:
    name = (name or "").strip()
    if not name or name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def parse_instant(value: str | datetime | None, tz: tzinfo = UTC, *, end_of_day: bool = False) -> datetime | None:
    """
    Parse an ISO-8601 date or datetime into an aware datetime.

    - naive values are interpreted in tz
    - a bare date (YYYY-MM-DD) means midnight, or the last instant of that day
      when end_of_day is set (used for recurrence end dates)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if not raw:
            return None
        dt = datetime.fromisoformat(raw)
        if end_of_day and _ISO_DATE.match(raw):
            dt = datetime.combine(dt.date(), time.max)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def format_instant(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
