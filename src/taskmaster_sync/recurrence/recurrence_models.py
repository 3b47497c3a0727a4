# src/taskmaster_sync/recurrence/recurrence_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError
from ..timeutil import format_instant, parse_instant

# 0 = Sunday ... 6 = Saturday (natural week order of the task editor).
WEEKDAY_ABBREVIATIONS: tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


class RecurrenceType(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, raw: str | None) -> RecurrenceType:
        if not raw:
            return cls.NONE
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValidationError(f"unknown recurrence type: {raw!r}", field="type") from None


@dataclass(frozen=True, slots=True)
class RecurrenceRule:
    """
    How a task's due date repeats.

    Notes:
    - interval counts days/weeks/months; custom rules ignore it.
    - days_of_week only matters for custom rules.
    - end_date is inclusive: an occurrence exactly on it is still produced.
    """

    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    days_of_week: frozenset[int] = field(default_factory=frozenset)
    end_date: datetime | None = None

    @classmethod
    def never(cls) -> RecurrenceRule:
        return cls()

    @classmethod
    def custom(cls, days: Iterable[int], end_date: datetime | None = None) -> RecurrenceRule:
        return cls(type=RecurrenceType.CUSTOM, days_of_week=frozenset(days), end_date=end_date)

    @property
    def repeats(self) -> bool:
        return self.type is not RecurrenceType.NONE

    def validate(self) -> RecurrenceRule:
        """Raise ValidationError for a malformed rule; return self otherwise."""
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise ValidationError("interval must be an integer", field="interval")
        if self.interval < 1:
            raise ValidationError(f"interval must be >= 1, got {self.interval}", field="interval")

        bad = sorted(d for d in self.days_of_week if not (isinstance(d, int) and 0 <= d <= 6))
        if bad:
            raise ValidationError(f"days of week must be in 0..6, got {bad}", field="daysOfWeek")

        if self.type is RecurrenceType.CUSTOM and not self.days_of_week:
            raise ValidationError("custom recurrence needs at least one weekday", field="daysOfWeek")
        return self

    # ---- JSON shape used by the task file ----

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value, "interval": self.interval}
        if self.type is RecurrenceType.CUSTOM:
            out["daysOfWeek"] = sorted(self.days_of_week)
        if self.end_date is not None:
            out["endDate"] = format_instant(self.end_date)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, *, tz: tzinfo = UTC) -> RecurrenceRule:
        if not data:
            return cls.never()

        rtype = RecurrenceType.parse(data.get("type"))
        raw_interval = data.get("interval", 1)
        try:
            interval = int(raw_interval) if raw_interval is not None else 1
        except (TypeError, ValueError):
            raise ValidationError(f"interval must be an integer, got {raw_interval!r}", field="interval") from None

        days: frozenset[int] = frozenset()
        if rtype is RecurrenceType.CUSTOM:
            try:
                days = frozenset(int(d) for d in (data.get("daysOfWeek") or []))
            except (TypeError, ValueError):
                raise ValidationError("daysOfWeek must be a list of integers", field="daysOfWeek") from None

        try:
            end_date = parse_instant(data.get("endDate"), tz, end_of_day=True)
        except ValueError:
            raise ValidationError(f"invalid endDate: {data.get('endDate')!r}", field="endDate") from None

        return cls(type=rtype, interval=interval, days_of_week=days, end_date=end_date).validate()


def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    return rule.validate()
