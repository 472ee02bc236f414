"""Last.fm client facade wiring configuration, session, transport and cache."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from .. import __version__
from ..cache.base import RequestCache
from ..cache.store import FileRequestCache
from ..config import ConfigLoader, ConfigStatus
from ..utils.logger import CacheEventLog
from .base import LastfmException, LastfmRequestException, LastfmUnavailableException, Session
from .request import LASTFM_API, Request

USER_AGENT = f"fmclient/{__version__}"

LASTFM_SECURE = "https://www.last.fm/"


def build_cache(config: ConfigLoader) -> Optional[FileRequestCache]:
    """Create the file cache described by the ``[cache]`` section, or None if disabled."""
    if not config.get_bool("cache.enabled", True):
        return None
    event_log_path = config.get("cache.event_log")
    return FileRequestCache(
        config.get("cache.path") or None,
        timeout=timedelta(hours=config.get_float("cache.timeout_hours", 24.0)),
        atomic_writes=config.get_bool("cache.atomic_writes", True),
        event_log=CacheEventLog(Path(event_log_path)) if event_log_path else None,
    )


class LastfmClient:
    """Entry point for API calls; one instance per configuration."""

    def __init__(
        self,
        config: ConfigLoader,
        *,
        cache: Optional[RequestCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        proxy: Optional[str] = None,
    ) -> None:
        self.config = config
        self.session = Session(
            api_key=config.get_credential("api_key") or "",
            api_secret=config.get_credential("api_secret"),
            session_key=config.get_credential("session_key"),
        )
        self.cache = cache if cache is not None else build_cache(config)
        self.base_url = config.get("api.base_url", LASTFM_API)
        self.language = config.get("api.language") or None
        self.timeout = config.get_float("api.timeout_seconds", 30.0)
        self.proxy = proxy or config.get("api.proxy") or None
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._token: Optional[str] = None

    async def __aenter__(self) -> "LastfmClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def status(self, require_secret: bool = False) -> ConfigStatus:
        return self.config.status(require_secret=require_secret)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                proxy=self.proxy,
                transport=self._transport,
            )
        return self._http

    def create_request(self, method: str, **params: Any) -> Request:
        if self.status() is not ConfigStatus.CONFIGURED:
            raise LastfmUnavailableException("Last.fm API key not configured.")
        request = Request(method, self.http, self.session, cache=self.cache, base_url=self.base_url)
        for name, value in params.items():
            if value is not None:
                request.parameters[name] = str(value)
        return request

    async def call(self, method: str, use_cache: bool = True, **params: Any) -> Dict[str, Any]:
        """Call a read-only API method, e.g. ``call("artist.getInfo", artist="Gorillaz")``."""
        if self.language and "lang" not in params:
            params["lang"] = self.language
        request = self.create_request(method, **params)
        return await request.get(use_cache=use_cache)

    async def authenticate(self, username: str, password: str) -> str:
        """
        Authenticate the session with a username and password.

        See https://www.last.fm/api/mobileauth
        """
        request = self.create_request("auth.getMobileSession", username=username, password=password)
        request.sign()
        return self._store_session_key(await request.post(), "auth.getMobileSession")

    async def get_web_authentication_url(self) -> str:
        """
        Fetch an auth token and return the page where the user grants access.

        Call :meth:`authenticate_via_web` once the user has approved the
        application in the browser.
        """
        request = self.create_request("auth.getToken")
        doc = await request.post()
        token = doc.get("token")
        if not token:
            raise LastfmRequestException("auth.getToken response has no token")
        self._token = str(token)
        query = urlencode({"api_key": self.session.api_key, "token": self._token})
        return f"{LASTFM_SECURE}api/auth/?{query}"

    async def authenticate_via_web(self) -> str:
        """Exchange the token from :meth:`get_web_authentication_url` for a session key."""
        if self._token is None:
            raise LastfmException("No web authentication token; call get_web_authentication_url first.")
        request = self.create_request("auth.getSession", token=self._token)
        request.sign()
        doc = await request.post()
        self._token = None
        return self._store_session_key(doc, "auth.getSession")

    def _store_session_key(self, doc: Dict[str, Any], method: str) -> str:
        try:
            self.session.session_key = doc["session"]["key"]
        except (KeyError, TypeError) as exc:
            raise LastfmRequestException(f"{method} response has no session key") from exc
        return self.session.session_key

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
