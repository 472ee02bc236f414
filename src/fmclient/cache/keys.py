"""Cache key derivation from request-identifying strings."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

# Cache file header (512 bytes):
#
#      0  Timestamp (int64, 8 bytes)
#      8  Request string (UTF-8, max 504 bytes, NUL-terminated)
HEADER_LENGTH = 512
TIMESTAMP_LENGTH = 8
REQUEST_LENGTH = HEADER_LENGTH - TIMESTAMP_LENGTH

CACHE_SUFFIX = ".cache"


@dataclass(frozen=True)
class RequestDigest:
    """Zero-padded header region plus the number of meaningful bytes in it."""

    buffer: bytes
    size: int

    @property
    def key(self) -> str:
        return hash_bytes(self.buffer, self.size)


def encode_request(request: str) -> RequestDigest:
    """Encode a request as UTF-8, truncated and zero-padded to the header region."""
    data = request.encode("utf-8")[:REQUEST_LENGTH]
    return RequestDigest(buffer=data.ljust(REQUEST_LENGTH, b"\x00"), size=len(data))


def hash_bytes(buffer: bytes, count: int) -> str:
    """
    MD5 over the first ``count`` bytes, keeping only every second digest byte.

    The result is 16 hex characters built from digest bytes 0, 2, ..., 14.
    Existing cache directories depend on this exact selection.
    """
    digest = hashlib.md5(buffer[:count]).digest()
    return digest[::2].hex()


def derive_key(request: str) -> str:
    """Return the 16-character cache key for a request."""
    return encode_request(request).key


def cache_file_name(request: str) -> str:
    """Return the on-disk file name for a request."""
    return derive_key(request) + CACHE_SUFFIX


__all__ = [
    "CACHE_SUFFIX",
    "HEADER_LENGTH",
    "REQUEST_LENGTH",
    "TIMESTAMP_LENGTH",
    "RequestDigest",
    "cache_file_name",
    "derive_key",
    "encode_request",
    "hash_bytes",
]
