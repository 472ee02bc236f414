"""Request caching."""

from .base import DEFAULT_TIMEOUT, RequestCache
from .entry import CacheEntry, EntryStatus, read_entry, read_timestamp, write_entry
from .keys import CACHE_SUFFIX, HEADER_LENGTH, REQUEST_LENGTH, cache_file_name, derive_key, encode_request
from .memory import MemoryRequestCache
from .store import CacheLookup, CacheStats, FileRequestCache

__all__ = [
    "CACHE_SUFFIX",
    "DEFAULT_TIMEOUT",
    "HEADER_LENGTH",
    "REQUEST_LENGTH",
    "CacheEntry",
    "CacheLookup",
    "CacheStats",
    "EntryStatus",
    "FileRequestCache",
    "MemoryRequestCache",
    "RequestCache",
    "cache_file_name",
    "derive_key",
    "encode_request",
    "read_entry",
    "read_timestamp",
    "write_entry",
]
