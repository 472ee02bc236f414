"""Binary codec for a single cache file.

Layout (all integers little-endian)::

    offset  length  field
         0       8  write time, signed 64-bit Unix seconds (UTC)
         8     504  request prefix, UTF-8, NUL-terminated, zero-padded
       512     ...  response payload, up to end of file

Write times have one-second granularity. Freshness checks drop the
sub-second part of the current time before comparing, so an entry written
at any instant within a second is fresh for exactly the configured window.
"""

from __future__ import annotations

import codecs
import io
import shutil
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional

from ..utils.persistence import Persistence
from .base import Payload
from .keys import CACHE_SUFFIX, HEADER_LENGTH, TIMESTAMP_LENGTH, encode_request

_TIMESTAMP = struct.Struct("<q")

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class EntryStatus(Enum):
    FRESH = "fresh"
    EXPIRED = "expired"
    CONTENT_MISMATCH = "content-mismatch"


@dataclass
class CacheEntry:
    """A cache file opened for reading, positioned at its payload."""

    path: Path
    timestamp: datetime
    request: str
    stream: BinaryIO
    mismatch: bool = False

    @property
    def key(self) -> str:
        return self.path.stem

    def classify(self, now: datetime, timeout: timedelta) -> EntryStatus:
        if self.mismatch:
            return EntryStatus.CONTENT_MISMATCH
        if is_expired(self.timestamp, now, timeout):
            return EntryStatus.EXPIRED
        return EntryStatus.FRESH

    def close(self) -> None:
        self.stream.close()


def is_expired(timestamp: datetime, now: datetime, timeout: timedelta) -> bool:
    """Strictly ``now - timestamp > timeout`` at whole-second precision; equal is still fresh."""
    return (now.replace(microsecond=0) - timestamp) > timeout


def entry_path(directory: Path, request: str) -> Path:
    return directory / (encode_request(request).key + CACHE_SUFFIX)


def encode_timestamp(moment: datetime) -> bytes:
    return _TIMESTAMP.pack(int(moment.timestamp()))


def decode_timestamp(raw: bytes) -> datetime:
    """Decode a stored timestamp; values outside the datetime range read as the earliest instant."""
    (seconds,) = _TIMESTAMP.unpack(raw)
    try:
        return datetime.fromtimestamp(seconds, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EARLIEST


def decode_request(region: bytes) -> Optional[str]:
    """
    Recover the stored request prefix from the header region.

    Byte truncation on write may split a multi-byte character at the end of
    the region; that incomplete tail is dropped. Invalid UTF-8 elsewhere
    returns None.
    """
    end = region.find(b"\x00")
    if end >= 0:
        region = region[:end]
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        return decoder.decode(region, final=False)
    except UnicodeDecodeError:
        return None


def write_entry(
    directory: Path,
    request: str,
    payload: Payload,
    *,
    now: datetime,
    atomic: bool = False,
) -> Path:
    """
    Write a complete cache file for ``request`` and return its path.

    Any previous entry with the same derived key is replaced. A stream payload
    is copied from its current position and rewound to offset 0 afterwards.
    """
    digest = encode_request(request)
    path = directory / (digest.key + CACHE_SUFFIX)
    stream = io.BytesIO(payload) if isinstance(payload, (bytes, bytearray)) else payload

    def _write(fp: BinaryIO) -> None:
        fp.write(encode_timestamp(now))
        fp.write(digest.buffer)
        shutil.copyfileobj(stream, fp)

    Persistence.write_binary(path, _write, atomic=atomic)
    stream.seek(0)
    return path


def read_entry(directory: Path, request: str) -> Optional[CacheEntry]:
    """
    Open the cache file for ``request``.

    Returns None when no file exists or its header is incomplete. A stored
    prefix that is not contained in ``request`` marks the entry as mismatched
    rather than deleting it.
    """
    path = entry_path(directory, request)
    try:
        stream = path.open("rb")
    except FileNotFoundError:
        return None

    try:
        header = stream.read(HEADER_LENGTH)
    except OSError:
        stream.close()
        raise
    if len(header) < HEADER_LENGTH:
        stream.close()
        return None

    stored = decode_request(header[TIMESTAMP_LENGTH:])
    entry = CacheEntry(
        path=path,
        timestamp=decode_timestamp(header[:TIMESTAMP_LENGTH]),
        request=stored or "",
        stream=stream,
        mismatch=stored is None or stored not in request,
    )
    stream.seek(HEADER_LENGTH)
    return entry


def read_timestamp(path: Path) -> Optional[datetime]:
    """Read only the write time of a cache file; None if it is too short."""
    with path.open("rb") as fp:
        raw = fp.read(TIMESTAMP_LENGTH)
    if len(raw) < TIMESTAMP_LENGTH:
        return None
    return decode_timestamp(raw)


__all__ = [
    "CacheEntry",
    "EARLIEST",
    "EntryStatus",
    "decode_request",
    "decode_timestamp",
    "encode_timestamp",
    "entry_path",
    "is_expired",
    "read_entry",
    "read_timestamp",
    "write_entry",
]
