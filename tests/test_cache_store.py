from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fmclient.cache.entry import EntryStatus, entry_path
from fmclient.cache.keys import HEADER_LENGTH
from fmclient.cache.store import FileRequestCache
from fmclient.utils.logger import CacheEventLog

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_cache(tmp_path: Path, **kwargs) -> tuple:
    clock = FakeClock(T0)
    return FileRequestCache(tmp_path / "cache", clock=clock, **kwargs), clock


def read_all(cache: FileRequestCache, request: str) -> bytes | None:
    found, stream = cache.try_get(request)
    if not found:
        assert stream is None
        return None
    with stream:
        return stream.read()


def test_creates_directory(tmp_path: Path) -> None:
    cache = FileRequestCache(tmp_path / "a" / "b")
    assert cache.path.is_dir()
    assert cache.timeout == timedelta(hours=24)


@pytest.mark.parametrize("atomic", [True, False])
def test_add_then_get_round_trip(tmp_path: Path, atomic: bool) -> None:
    cache, _ = make_cache(tmp_path, atomic_writes=atomic)
    payload = bytes(range(256)) * 40

    cache.add("artist.getInfo;name=Gorillaz", io.BytesIO(payload))

    assert read_all(cache, "artist.getInfo;name=Gorillaz") == payload


def test_get_before_add_misses(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    assert cache.try_get("artist.getInfo;name=Gorillaz") == (False, None)
    assert cache.lookup("artist.getInfo;name=Gorillaz").status is None


def test_repeated_reads_are_identical(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    cache.add("tag.getTopAlbums;tag=jazz", b"albums")

    assert read_all(cache, "tag.getTopAlbums;tag=jazz") == b"albums"
    assert read_all(cache, "tag.getTopAlbums;tag=jazz") == b"albums"
    assert cache.get_bytes("tag.getTopAlbums;tag=jazz") == b"albums"


def test_expiry_boundary(tmp_path: Path) -> None:
    cache, clock = make_cache(tmp_path)
    cache.timeout = timedelta(hours=2)
    cache.add("user.getRecentTracks;user=rj", b"tracks")

    clock.advance(hours=2)
    assert read_all(cache, "user.getRecentTracks;user=rj") == b"tracks"

    clock.advance(seconds=1)
    assert read_all(cache, "user.getRecentTracks;user=rj") is None
    assert cache.lookup("user.getRecentTracks;user=rj").status is EntryStatus.EXPIRED
    # Expiry never deletes the file.
    assert entry_path(cache.path, "user.getRecentTracks;user=rj").exists()


def test_default_window_scenario(tmp_path: Path) -> None:
    cache, clock = make_cache(tmp_path)
    payload = b'{"artist": {"name": "Gorillaz"}}'
    cache.add("artist.getInfo;name=Gorillaz", payload)

    clock.advance(hours=23)
    assert read_all(cache, "artist.getInfo;name=Gorillaz") == payload

    clock.advance(hours=2)
    assert read_all(cache, "artist.getInfo;name=Gorillaz") is None


def test_sub_second_write_time_keeps_full_window(tmp_path: Path) -> None:
    cache, clock = make_cache(tmp_path)
    clock.advance(milliseconds=700)
    cache.add("artist.getInfo;name=Blur", b"blur")

    clock.advance(hours=24)
    assert read_all(cache, "artist.getInfo;name=Blur") == b"blur"

    clock.advance(seconds=1)
    assert read_all(cache, "artist.getInfo;name=Blur") is None


def test_long_request_still_hits(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    request = "track.search;track=" + "la" * 400
    cache.add(request, b"results")

    assert read_all(cache, request) == b"results"
    stored = entry_path(cache.path, request).read_bytes()
    assert stored[8:HEADER_LENGTH] == request.encode("utf-8")[: HEADER_LENGTH - 8]


def test_long_multibyte_request_still_hits(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    request = "artist.search;artist=a" + "€" * 200
    cache.add(request, b"results")
    assert read_all(cache, request) == b"results"


def test_colliding_requests_never_share_payloads(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("fmclient.cache.keys.hash_bytes", lambda buffer, count: "0" * 16)
    cache, _ = make_cache(tmp_path)

    cache.add("artist.getInfo;name=Blur", b"blur")
    cache.add("artist.getInfo;name=Gorillaz", b"gorillaz")

    assert len(list(cache.path.iterdir())) == 1
    assert read_all(cache, "artist.getInfo;name=Blur") is None
    assert cache.lookup("artist.getInfo;name=Blur").status is EntryStatus.CONTENT_MISMATCH
    assert read_all(cache, "artist.getInfo;name=Gorillaz") == b"gorillaz"


def test_truncated_file_is_a_miss(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    cache.add("chart.getTopTags", b"tags")
    path = entry_path(cache.path, "chart.getTopTags")
    path.write_bytes(path.read_bytes()[:300])

    assert cache.try_get("chart.getTopTags") == (False, None)


def test_negative_timeout_rejected(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path)
    with pytest.raises(ValueError):
        cache.timeout = timedelta(seconds=-1)


def test_add_propagates_io_errors(tmp_path: Path) -> None:
    cache, _ = make_cache(tmp_path, atomic_writes=False)
    entry_path(cache.path, "album.search;album=x").mkdir()
    with pytest.raises(OSError):
        cache.add("album.search;album=x", b"data")


def test_event_log_records_activity(tmp_path: Path) -> None:
    log = CacheEventLog(tmp_path / "logs" / "cache.jsonl")
    cache, clock = make_cache(tmp_path, event_log=log)

    cache.get_bytes("artist.getSimilar;artist=Cher")
    cache.add("artist.getSimilar;artist=Cher", b"similar")
    cache.get_bytes("artist.getSimilar;artist=Cher")
    clock.advance(hours=25)
    cache.get_bytes("artist.getSimilar;artist=Cher")

    events = log.read()
    assert [e["event"] for e in events] == ["miss", "write", "hit", "miss"]
    assert events[0]["reason"] == "absent"
    assert events[1]["bytes"] == len(b"similar")
    assert events[3]["reason"] == "expired"
    assert all("timestamp" in e for e in events)
