"""fmclient CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache.store import FileRequestCache
from .client import LastfmClient, LastfmException, build_cache
from .config import ConfigLoader, ConfigStatus


class CliState:
    def __init__(self, config: ConfigLoader, cache_dir: Optional[str], timeout_hours: Optional[float]) -> None:
        self.config = config
        self.cache_dir = cache_dir
        self.timeout_hours = timeout_hours

    def apply_overrides(self) -> None:
        """Copy command-line cache options into the config."""
        if self.cache_dir:
            self.config.set("cache.path", self.cache_dir)
        if self.timeout_hours is not None:
            self.config.set("cache.timeout_hours", self.timeout_hours)

    def open_cache(self) -> FileRequestCache:
        """Cache for the maintenance commands, opened even when ``cache.enabled`` is off."""
        self.apply_overrides()
        self.config.set("cache.enabled", True)
        return build_cache(self.config)


@click.group()
@click.version_option(version=__version__)
@click.option("--cache-dir", default=None, help="Cache directory (default: from config)")
@click.option("--timeout-hours", type=float, default=None, help="Entry freshness window in hours")
@click.pass_context
def main(ctx: click.Context, cache_dir: Optional[str], timeout_hours: Optional[float]) -> None:
    """fmclient - Last.fm API client and request cache tools."""
    config = ConfigLoader()
    level = str(config.get("general.log_level", "warning")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = CliState(config, cache_dir, timeout_hours)


@main.command()
@click.pass_obj
def status(state: CliState) -> None:
    """Show whether API credentials are configured."""
    result = state.config.status()
    click.echo(result.value)
    if result is not ConfigStatus.CONFIGURED:
        click.echo(f"Add api_key under [lastfm] in {state.config.global_dir / 'credentials.toml'} or set LASTFM_API_KEY.")


@main.group()
def cache() -> None:
    """Inspect and maintain the request cache."""


@cache.command()
@click.pass_obj
def stats(state: CliState) -> None:
    """Show entry counts and disk usage."""
    store = state.open_cache()
    result = store.stats()

    table = Table(title=f"Request cache: {store.path}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Entries", str(result.entries))
    table.add_row("Expired", str(result.expired))
    table.add_row("Bytes", str(result.total_bytes))
    table.add_row("Timeout", str(store.timeout))
    Console().print(table)


@cache.command()
@click.pass_obj
def cleanup(state: CliState) -> None:
    """Delete expired entries."""
    count = state.open_cache().cleanup()
    click.echo(f"Removed {count} expired entries.")


@cache.command()
@click.confirmation_option(prompt="Delete every cache entry?")
@click.pass_obj
def clear(state: CliState) -> None:
    """Delete all entries regardless of age."""
    state.open_cache().clear()
    click.echo("Cache cleared.")


@cache.command()
@click.argument("request")
@click.pass_obj
def show(state: CliState, request: str) -> None:
    """Print the cached payload for a request-identifying string."""
    store = state.open_cache()
    result = store.lookup(request)
    if not result.found or result.stream is None:
        reason = result.status.value if result.status else "absent"
        click.echo(f"Miss ({reason})", err=True)
        raise SystemExit(1)
    with result.stream as stream:
        click.echo(stream.read().decode("utf-8", errors="replace"))


def _parse_params(pairs: Tuple[str, ...]) -> dict:
    params = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected name=value, got {pair!r}", param_hint="--param")
        params[name] = value
    return params


@main.command()
@click.argument("method")
@click.option("-p", "--param", "pairs", multiple=True, help="Method parameter as name=value")
@click.option("--no-cache", is_flag=True, help="Bypass the request cache")
@click.pass_obj
def call(state: CliState, method: str, pairs: Tuple[str, ...], no_cache: bool) -> None:
    """Call a read-only API METHOD, e.g. artist.getInfo -p artist=Gorillaz."""
    params = _parse_params(pairs)
    state.apply_overrides()

    async def _run() -> dict:
        async with LastfmClient(state.config) as client:
            return await client.call(method, use_cache=not no_cache, **params)

    try:
        doc = asyncio.run(_run())
    except LastfmException as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    click.echo(json.dumps(doc, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
