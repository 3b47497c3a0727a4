# src/taskmaster_sync/sync/mapping_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MappingEntry:
    """task id -> calendar event id, plus a digest of what was last written."""

    event_id: str
    fingerprint: str = ""


class MappingStore:
    """
    SQLite store for the task -> calendar event mapping.

    The mapping is one document: loaded once at the start of a pass and
    replaced as a whole at the end (single transaction). After a crash
    mid-pass the last committed mapping is what the next pass sees.

    Schema handling follows the usual pattern:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "sync_map.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("MappingStore ready db=%s entries=%s", self._db_path, self.count())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS calendar_map (
                    task_id TEXT PRIMARY KEY,
                    event_id TEXT NOT NULL,
                    fingerprint TEXT NOT NULL DEFAULT '',
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("PRAGMA table_info(calendar_map)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE calendar_map ADD COLUMN {name} {decl}")
                logger.info("MappingStore migration: added column %s", name)

            # Older files stored only task_id -> event_id.
            add_col("fingerprint", "TEXT NOT NULL DEFAULT ''")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def count(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM calendar_map").fetchone()
            return int(n)
        finally:
            conn.close()

    def load(self) -> dict[str, MappingEntry]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT task_id, event_id, fingerprint FROM calendar_map").fetchall()
        finally:
            conn.close()

        mapping: dict[str, MappingEntry] = {}
        for row in rows:
            event_id = row["event_id"]
            if not event_id:
                continue
            mapping[str(row["task_id"])] = MappingEntry(event_id=str(event_id), fingerprint=row["fingerprint"] or "")
        logger.debug("Mapping loaded entries=%d", len(mapping))
        return mapping

    def save(self, mapping: dict[str, MappingEntry]) -> None:
        """Replace the stored mapping with `mapping` atomically."""
        now = time.time()
        rows = [(task_id, e.event_id, e.fingerprint, now) for task_id, e in mapping.items()]

        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM calendar_map")
                conn.executemany(
                    "INSERT INTO calendar_map(task_id, event_id, fingerprint, updated_at) VALUES (?, ?, ?, ?)",
                    rows,
                )
        finally:
            conn.close()
        logger.debug("Mapping saved entries=%d", len(rows))

    def clear(self) -> None:
        self.save({})
