"""Recurrence rules and calendar/reminder reconciliation for task lists."""

__version__ = "0.1.0"
