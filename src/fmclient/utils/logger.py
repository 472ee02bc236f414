"""JSON-lines event log for cache activity."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


class CacheEventLog:
    """Minimal logger that appends one JSON object per cache event."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _write(self, payload: Dict[str, Any]) -> None:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
        with self.path.open("a", encoding="utf-8") as fp:
            fp.write(json.dumps(entry) + "\n")

    def log_hit(self, key: str) -> None:
        self._write({"event": "hit", "key": key})

    def log_miss(self, key: str, reason: str) -> None:
        self._write({"event": "miss", "key": key, "reason": reason})

    def log_write(self, key: str, size: int) -> None:
        self._write({"event": "write", "key": key, "bytes": size})

    def log_cleanup(self, deleted: int) -> None:
        self._write({"event": "cleanup", "deleted": deleted})

    def log_clear(self, deleted: int) -> None:
        self._write({"event": "clear", "deleted": deleted})

    def read(self) -> List[Dict[str, Any]]:
        """Return all recorded events, oldest first."""
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fp:
            return [json.loads(line) for line in fp if line.strip()]
