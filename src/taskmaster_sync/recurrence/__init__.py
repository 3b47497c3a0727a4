"""
Recurrence subsystem.

Components:
- recurrence_models.py: RecurrenceRule / RecurrenceType + validation
- recurrence_rules.py: describe, next_occurrence, upcoming_occurrences
"""

from .recurrence_models import WEEKDAY_ABBREVIATIONS, RecurrenceRule, RecurrenceType, validate_rule
from .recurrence_rules import describe, next_occurrence, upcoming_occurrences

__all__ = [
    "WEEKDAY_ABBREVIATIONS",
    "RecurrenceRule",
    "RecurrenceType",
    "describe",
    "next_occurrence",
    "upcoming_occurrences",
    "validate_rule",
]
