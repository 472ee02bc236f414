"""Request cache interface shared by the file and memory implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import BinaryIO, Optional, Tuple, Union

DEFAULT_TIMEOUT = timedelta(hours=24)

Payload = Union[bytes, bytearray, BinaryIO]


class RequestCache(ABC):
    """Caches raw response bodies keyed by a request-identifying string."""

    def __init__(self, timeout: timedelta = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    @property
    def timeout(self) -> timedelta:
        """How long an entry stays fresh after it was written."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: timedelta) -> None:
        if value < timedelta(0):
            raise ValueError(f"Cache timeout must not be negative: {value}")
        self._timeout = value

    @abstractmethod
    def add(self, request: str, payload: Payload) -> None:
        """Store the response body for ``request``."""

    @abstractmethod
    def try_get(self, request: str) -> Tuple[bool, Optional[BinaryIO]]:
        """Return ``(True, stream)`` for a fresh entry, ``(False, None)`` otherwise."""

    def get_bytes(self, request: str) -> Optional[bytes]:
        """Convenience wrapper around :meth:`try_get` that reads and closes the stream."""
        found, stream = self.try_get(request)
        if not found or stream is None:
            return None
        with stream:
            return stream.read()
