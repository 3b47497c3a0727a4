# src/taskmaster_sync/connectors/json_document.py

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Any


class JsonDocument:
    """A JSON object on disk, replaced atomically on every write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def read(self) -> Any:
        """Parsed content, or None when the file does not exist yet."""
        if not self.exists():
            return None
        return json.loads(self.path.read_text("utf-8"))

    def write(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self.path)
        with contextlib.suppress(OSError):
            os.chmod(self.path, 0o600)
