import functools
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from fmclient import cli
from fmclient.cache.store import FileRequestCache
from fmclient.cli import main
from fmclient.client import LastfmClient


@pytest.fixture
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LASTFM_API_KEY", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))
    return {"cache_dir": str(tmp_path / "cache")}


def test_status_without_credentials(env: dict) -> None:
    result = CliRunner().invoke(main, ["status"])
    assert result.exit_code == 0
    assert "missing-api-key" in result.output


def test_cache_show_hit_and_miss(env: dict) -> None:
    FileRequestCache(env["cache_dir"]).add("artist.getInfo;artist=Gorillaz", json.dumps({"ok": 1}).encode())
    runner = CliRunner()

    hit = runner.invoke(main, ["--cache-dir", env["cache_dir"], "cache", "show", "artist.getInfo;artist=Gorillaz"])
    assert hit.exit_code == 0
    assert '{"ok": 1}' in hit.output

    miss = runner.invoke(main, ["--cache-dir", env["cache_dir"], "cache", "show", "artist.getInfo;artist=Blur"])
    assert miss.exit_code == 1


def test_cache_cleanup_and_clear(env: dict) -> None:
    old = FileRequestCache(env["cache_dir"], clock=lambda: datetime.now(timezone.utc) - timedelta(hours=30))
    old.add("chart.getTopTracks", b"old")
    FileRequestCache(env["cache_dir"]).add("chart.getTopTags", b"new")
    runner = CliRunner()

    stats = runner.invoke(main, ["--cache-dir", env["cache_dir"], "cache", "stats"])
    assert stats.exit_code == 0
    assert "Entries" in stats.output

    cleanup = runner.invoke(main, ["--cache-dir", env["cache_dir"], "cache", "cleanup"])
    assert cleanup.exit_code == 0
    assert "Removed 1 expired entries." in cleanup.output

    clear = runner.invoke(main, ["--cache-dir", env["cache_dir"], "cache", "clear", "--yes"])
    assert clear.exit_code == 0
    assert list(Path(env["cache_dir"]).glob("*.cache")) == []


def test_timeout_option_applies(env: dict) -> None:
    old = FileRequestCache(env["cache_dir"], clock=lambda: datetime.now(timezone.utc) - timedelta(hours=30))
    old.add("chart.getTopTracks", b"old")

    result = CliRunner().invoke(
        main, ["--cache-dir", env["cache_dir"], "--timeout-hours", "48", "cache", "cleanup"]
    )
    assert "Removed 0 expired entries." in result.output


def test_call_rejects_bad_params(env: dict) -> None:
    result = CliRunner().invoke(main, ["--cache-dir", env["cache_dir"], "call", "artist.getInfo", "-p", "artist"])
    assert result.exit_code != 0
    assert "name=value" in result.output


def test_call_without_api_key_fails_cleanly(env: dict) -> None:
    result = CliRunner().invoke(main, ["--cache-dir", env["cache_dir"], "call", "artist.getInfo", "-p", "artist=Cher"])
    assert result.exit_code == 1
    assert "not configured" in result.output


def offline_client(monkeypatch: pytest.MonkeyPatch) -> list:
    sent = []

    def respond(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"artist": {"name": "Cher"}})

    monkeypatch.setenv("LASTFM_API_KEY", "test-key")
    monkeypatch.setattr(cli, "LastfmClient", functools.partial(LastfmClient, transport=httpx.MockTransport(respond)))
    return sent


def test_call_caches_when_enabled(env: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    sent = offline_client(monkeypatch)
    monkeypatch.delenv("FMCLIENT_CACHE__ENABLED", raising=False)

    args = ["--cache-dir", env["cache_dir"], "call", "artist.getInfo", "-p", "artist=Cher"]
    first = CliRunner().invoke(main, args)
    second = CliRunner().invoke(main, args)

    assert first.exit_code == second.exit_code == 0
    assert '"Cher"' in second.output
    assert len(sent) == 1
    assert len(list(Path(env["cache_dir"]).glob("*.cache"))) == 1


def test_call_respects_disabled_cache(env: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    sent = offline_client(monkeypatch)
    monkeypatch.setenv("FMCLIENT_CACHE__ENABLED", "false")

    args = ["--cache-dir", env["cache_dir"], "call", "artist.getInfo", "-p", "artist=Cher"]
    assert CliRunner().invoke(main, args).exit_code == 0
    assert CliRunner().invoke(main, args).exit_code == 0

    assert len(sent) == 2
    assert not Path(env["cache_dir"]).exists()
