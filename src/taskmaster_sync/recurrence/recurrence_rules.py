# src/taskmaster_sync/recurrence/recurrence_rules.py

from __future__ import annotations

"""
Derivations over RecurrenceRule.

Everything here is pure: no clock reads, no I/O. Datetimes keep their tzinfo
and wall-clock time of day across steps.
"""

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from .recurrence_models import WEEKDAY_ABBREVIATIONS, RecurrenceRule, RecurrenceType

_UNITS = {
    RecurrenceType.DAILY: ("Daily", "days"),
    RecurrenceType.WEEKLY: ("Weekly", "weeks"),
    RecurrenceType.MONTHLY: ("Monthly", "months"),
}


def describe(rule: RecurrenceRule) -> str:
    """Human label for a rule: "Weekly", "Every 3 days", "Mon, Wed, Fri"..."""
    if rule.type is RecurrenceType.NONE:
        return "Never"

    if rule.type is RecurrenceType.CUSTOM:
        if not rule.days_of_week:
            return "Custom"
        return ", ".join(WEEKDAY_ABBREVIATIONS[d] for d in sorted(rule.days_of_week))

    bare, unit = _UNITS[rule.type]
    if rule.interval == 1:
        return bare
    return f"Every {rule.interval} {unit}"


def weekday_index(dt: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def _past_end(candidate: datetime, end_date: datetime | None) -> bool:
    if end_date is None:
        return False
    if end_date.tzinfo is None and candidate.tzinfo is not None:
        end_date = end_date.replace(tzinfo=candidate.tzinfo)
    return candidate > end_date


def next_occurrence(due_date: datetime, rule: RecurrenceRule) -> datetime | None:
    """
    Next due date after due_date, or None when the rule does not repeat
    or the candidate falls after rule.end_date.
    """
    rtype = rule.type
    if rtype is RecurrenceType.NONE:
        return None

    if rtype is RecurrenceType.DAILY:
        candidate = due_date + timedelta(days=rule.interval)
    elif rtype is RecurrenceType.WEEKLY:
        candidate = due_date + timedelta(weeks=rule.interval)
    elif rtype is RecurrenceType.MONTHLY:
        candidate = due_date + relativedelta(months=rule.interval)
    else:
        if not rule.days_of_week:
            return None
        candidate = due_date + timedelta(days=1)
        for _ in range(7):
            if weekday_index(candidate) in rule.days_of_week:
                break
            candidate += timedelta(days=1)
        else:
            return None

    if _past_end(candidate, rule.end_date):
        return None
    return candidate


def upcoming_occurrences(due_date: datetime, rule: RecurrenceRule, count: int = 5) -> list[datetime]:
    """
    The next `count` occurrences after due_date.

    Monthly rules step from the original due date (not from the clamped
    previous occurrence), so Jan 31 gives Feb 28, Mar 31, Apr 30...
    """
    out: list[datetime] = []
    if count <= 0:
        return out

    if rule.type is RecurrenceType.MONTHLY:
        step = 1
        while len(out) < count:
            candidate = due_date + relativedelta(months=rule.interval * step)
            if _past_end(candidate, rule.end_date):
                break
            out.append(candidate)
            step += 1
        return out

    current: datetime | None = due_date
    while len(out) < count:
        current = next_occurrence(current, rule)
        if current is None:
            break
        out.append(current)
    return out
