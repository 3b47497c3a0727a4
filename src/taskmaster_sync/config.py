# src/taskmaster_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is read from the environment at import time except .env loading.
- A pass never reads Settings directly: Settings.sync_config() is threaded in.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from .sync.sync_models import SyncConfig
from .tasks.task_models import DEFAULT_REMINDER_LEAD, ReminderLead

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKMASTER"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Sync switches ----
    calendar_sync_enabled: bool
    notifications_enabled: bool
    reminder_lead_minutes: ReminderLead

    # ---- Timing ----
    call_timeout_seconds: float
    debounce_seconds: float
    sync_interval_seconds: float
    timezone: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    mapping_db_path: Path
    tasks_path: Path
    calendar_path: Path
    notifications_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskmaster-sync")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        raw_lead = _env_int(_k("REMINDER_LEAD_MINUTES"), int(DEFAULT_REMINDER_LEAD))
        reminder_lead = ReminderLead.parse(raw_lead, default=DEFAULT_REMINDER_LEAD)
        if int(reminder_lead) != raw_lead:
            logger.warning("Unsupported reminder lead %s; using %s minutes", raw_lead, int(reminder_lead))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskmaster"))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            calendar_sync_enabled=_env_bool(_k("CALENDAR_SYNC_ENABLED"), False),
            notifications_enabled=_env_bool(_k("NOTIFICATIONS_ENABLED"), True),
            reminder_lead_minutes=reminder_lead,
            call_timeout_seconds=max(0.1, _env_float(_k("CALL_TIMEOUT_SECONDS"), 10.0)),
            debounce_seconds=max(0.0, _env_float(_k("DEBOUNCE_SECONDS"), 0.5)),
            sync_interval_seconds=max(1.0, _env_float(_k("SYNC_INTERVAL_SECONDS"), 300.0)),
            timezone=_env(_k("TIMEZONE"), "UTC"),
            data_dir=data_dir,
            mapping_db_path=_env_path(_k("MAPPING_DB_PATH"), data_dir / "sync_map.sqlite3"),
            tasks_path=_env_path(_k("TASKS_PATH"), data_dir / "tasks.json"),
            calendar_path=_env_path(_k("CALENDAR_PATH"), data_dir / "calendar.json"),
            notifications_path=_env_path(_k("NOTIFICATIONS_PATH"), data_dir / "notifications.json"),
        )

    def sync_config(self) -> SyncConfig:
        return SyncConfig(
            calendar_sync_enabled=self.calendar_sync_enabled,
            reminder_lead_minutes=self.reminder_lead_minutes,
            notifications_enabled=self.notifications_enabled,
            call_timeout_seconds=self.call_timeout_seconds,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
