"""On-disk request cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Tuple

from ..config import ConfigLoader
from ..utils.logger import CacheEventLog
from ..utils.persistence import Persistence
from .base import DEFAULT_TIMEOUT, Payload, RequestCache
from .entry import EntryStatus, is_expired, read_entry, read_timestamp, write_entry
from .keys import CACHE_SUFFIX, HEADER_LENGTH, derive_key

logger = logging.getLogger(__name__)


@dataclass
class CacheLookup:
    """Outcome of a lookup; ``status`` is None when no entry exists."""

    status: Optional[EntryStatus]
    stream: Optional[BinaryIO] = None

    @property
    def found(self) -> bool:
        return self.status is EntryStatus.FRESH


@dataclass
class CacheStats:
    entries: int = 0
    expired: int = 0
    total_bytes: int = 0


class FileRequestCache(RequestCache):
    """
    Caches responses as one file per request in a shared directory.

    There is no in-memory index: every call derives the key and goes to the
    filesystem. Nothing is locked. With ``atomic_writes`` disabled a reader
    racing a writer on the same key may see a truncated file, which reads as
    a miss; with it enabled readers see either the old or the new entry.
    Callers own the streams returned by :meth:`try_get` and must close them.
    """

    def __init__(
        self,
        path: Optional[Path | str] = None,
        timeout: timedelta = DEFAULT_TIMEOUT,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        atomic_writes: bool = True,
        event_log: Optional[CacheEventLog] = None,
    ) -> None:
        super().__init__(timeout)
        self.path = Path(path).expanduser() if path else ConfigLoader.get_cache_dir()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.atomic_writes = atomic_writes
        self.event_log = event_log
        Persistence.ensure_dir(self.path)

    def add(self, request: str, payload: Payload) -> None:
        """Write (or replace) the entry for ``request``; I/O errors propagate."""
        file = write_entry(self.path, request, payload, now=self.clock(), atomic=self.atomic_writes)
        size = file.stat().st_size - HEADER_LENGTH
        logger.debug("Cached %s (%d bytes)", file.name, size)
        if self.event_log:
            self.event_log.log_write(file.stem, size)

    def lookup(self, request: str) -> CacheLookup:
        """Like :meth:`try_get`, but reports why an entry was rejected."""
        entry = read_entry(self.path, request)
        if entry is None:
            self._record_miss(derive_key(request), "absent")
            return CacheLookup(status=None)

        status = entry.classify(self.clock(), self.timeout)
        if status is not EntryStatus.FRESH:
            entry.close()
            self._record_miss(entry.key, status.value)
            return CacheLookup(status=status)

        logger.debug("Cache hit for %s", entry.key)
        if self.event_log:
            self.event_log.log_hit(entry.key)
        return CacheLookup(status=status, stream=entry.stream)

    def try_get(self, request: str) -> Tuple[bool, Optional[BinaryIO]]:
        result = self.lookup(request)
        return result.found, result.stream

    def cleanup(self) -> int:
        """
        Remove all expired entries from the cache.

        Only the timestamp of each file is read; request prefixes are not
        verified. Files too short to hold a timestamp are removed as well.

        Returns:
            The number of deleted entries.
        """
        count = 0
        now = self.clock()
        for file in self._entries():
            try:
                timestamp = read_timestamp(file)
            except FileNotFoundError:
                continue
            if timestamp is None or is_expired(timestamp, now, self.timeout):
                file.unlink(missing_ok=True)
                count += 1

        logger.info("Removed %d expired cache entries from %s", count, self.path)
        if self.event_log:
            self.event_log.log_cleanup(count)
        return count

    def clear(self) -> None:
        """Remove all cache entries regardless of age."""
        count = 0
        for file in self._entries():
            file.unlink(missing_ok=True)
            count += 1

        logger.info("Cleared %d cache entries from %s", count, self.path)
        if self.event_log:
            self.event_log.log_clear(count)

    def stats(self) -> CacheStats:
        """Count entries, expired entries and bytes on disk."""
        stats = CacheStats()
        now = self.clock()
        for file in self._entries():
            try:
                size = file.stat().st_size
                timestamp = read_timestamp(file)
            except FileNotFoundError:
                continue
            stats.entries += 1
            stats.total_bytes += size
            if timestamp is None or is_expired(timestamp, now, self.timeout):
                stats.expired += 1
        return stats

    def _entries(self) -> List[Path]:
        return sorted(p for p in self.path.glob("*" + CACHE_SUFFIX) if p.is_file())

    def _record_miss(self, key: str, reason: str) -> None:
        logger.debug("Cache miss for %s (%s)", key, reason)
        if self.event_log:
            self.event_log.log_miss(key, reason)
