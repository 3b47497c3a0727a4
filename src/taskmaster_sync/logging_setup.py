# src/taskmaster_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Components that run every poll/pass in `watch`; on the console only their
# warnings are interesting. The log file still gets everything.
_CONSOLE_MIN_LEVEL: dict[str, int] = {
    "taskmaster_sync.connectors.": logging.WARNING,
    "taskmaster_sync.sync.mapping_store": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console shows taskmaster_sync logs at the handler level, except the
    chatty components above. Third-party loggers, asyncio and captured
    warnings only reach the console at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskmaster_sync."):
            return record.levelno >= logging.ERROR

        for prefix, level in _CONSOLE_MIN_LEVEL.items():
            if name.startswith(prefix):
                return record.levelno >= level
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskmaster",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    file_name: str = "sync.log",
) -> Path:
    """
    Console handler (filtered) on stderr plus a file handler with every pass
    in full. Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / file_name

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    to_file.setLevel(file_level)
    to_file.setFormatter(fmt)
    root.addHandler(to_file)

    logging.captureWarnings(True)
    return log_file
