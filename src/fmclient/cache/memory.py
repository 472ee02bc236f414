"""In-process request cache."""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from .base import DEFAULT_TIMEOUT, Payload, RequestCache


class MemoryRequestCache(RequestCache):
    """In-memory TTL cache for response bodies; nothing survives the process."""

    def __init__(
        self,
        timeout: timedelta = DEFAULT_TIMEOUT,
        max_entries: int = 512,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(timeout)
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._store: Dict[str, Tuple[datetime, bytes]] = {}

    def add(self, request: str, payload: Payload) -> None:
        """Store a cache entry, evicting oldest if at capacity."""
        if isinstance(payload, (bytes, bytearray)):
            data = bytes(payload)
        else:
            data = payload.read()
            payload.seek(0)
        self._store.pop(request, None)
        if len(self._store) >= self.max_entries:
            oldest_key = next(iter(self._store.keys()))
            self._store.pop(oldest_key, None)
        self._store[request] = (self.clock(), data)

    def try_get(self, request: str) -> Tuple[bool, Optional[BinaryIO]]:
        entry = self._store.get(request)
        if not entry:
            return False, None
        ts, data = entry
        if (self.clock() - ts) > self.timeout:
            self._store.pop(request, None)
            return False, None
        return True, io.BytesIO(data)

    def clear(self) -> None:
        """Clear cache entries."""
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
