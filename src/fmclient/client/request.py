"""A single Last.fm API call, answered from the request cache when possible."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..cache.base import RequestCache
from .base import (
    LastfmApiError,
    LastfmException,
    LastfmRequestException,
    LastfmUnavailableException,
    Session,
)

logger = logging.getLogger(__name__)

LASTFM_API = "https://ws.audioscrobbler.com/2.0/"

# Parameters that do not change the response and stay out of the cache identity.
IDENTITY_EXCLUDED = frozenset({"api_key", "api_sig", "sk", "format"})

# Parameters the service leaves out of the signature.
SIGNATURE_EXCLUDED = frozenset({"format", "callback"})


class Request:
    """Builds, signs and sends one API method call."""

    def __init__(
        self,
        method: str,
        http: httpx.AsyncClient,
        session: Session,
        cache: Optional[RequestCache] = None,
        base_url: str = LASTFM_API,
    ) -> None:
        self.method = method
        self.http = http
        self.session = session
        self.cache = cache
        self.base_url = base_url
        self.parameters: Dict[str, str] = {}

    def identity(self) -> str:
        """
        Deterministic request-identifying string used as the cache key input.

        ``artist.getInfo`` with ``name=Gorillaz`` becomes
        ``artist.getInfo;name=Gorillaz``.
        """
        parts = [self.method]
        for name in sorted(self.parameters):
            if name in IDENTITY_EXCLUDED:
                continue
            parts.append(f"{name}={self.parameters[name]}")
        return ";".join(parts)

    def sign(self) -> None:
        """Add session key and ``api_sig`` to the parameters."""
        if not self.session.api_secret:
            raise LastfmUnavailableException("API secret not configured; cannot sign request.")

        if self.session.authenticated:
            self.parameters["sk"] = self.session.session_key or ""

        params = self._base_parameters()
        raw = "".join(f"{k}{params[k]}" for k in sorted(params) if k not in SIGNATURE_EXCLUDED)
        raw += self.session.api_secret
        self.parameters["api_sig"] = hashlib.md5(raw.encode("utf-8")).hexdigest()

    async def get(self, use_cache: bool = True) -> Dict[str, Any]:
        """Return the parsed response, consulting the cache before the network."""
        key = self.identity()
        if use_cache and self.cache is not None:
            body = self.cache.get_bytes(key)
            if body is not None:
                try:
                    return self._parse(body)
                except LastfmException:
                    logger.warning("Discarding unreadable cached response for %s", key)

        try:
            resp = await self.http.get(self.base_url, params=self._query())
        except httpx.HTTPError as exc:
            raise LastfmRequestException(f"{self.method} request failed: {exc}") from exc

        data = self._parse(resp.content)
        self._ensure_success(resp)

        if use_cache and self.cache is not None:
            self.cache.add(key, resp.content)
        return data

    async def post(self) -> Dict[str, Any]:
        """Send the request as a form POST; never cached."""
        try:
            resp = await self.http.post(self.base_url, data=self._query())
        except httpx.HTTPError as exc:
            raise LastfmRequestException(f"{self.method} request failed: {exc}") from exc

        data = self._parse(resp.content)
        self._ensure_success(resp)
        return data

    def _base_parameters(self) -> Dict[str, str]:
        params = dict(self.parameters)
        params.pop("api_sig", None)
        params["method"] = self.method
        params["api_key"] = self.session.api_key
        return params

    def _query(self) -> Dict[str, str]:
        params = self._base_parameters()
        if "api_sig" in self.parameters:
            params["api_sig"] = self.parameters["api_sig"]
        params["format"] = "json"
        return params

    def _ensure_success(self, resp: httpx.Response) -> None:
        if resp.is_error:
            raise LastfmRequestException(f"{self.method} returned HTTP {resp.status_code}")

    def _parse(self, body: bytes) -> Dict[str, Any]:
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LastfmRequestException(f"Malformed {self.method} response: {exc}") from exc
        if not isinstance(data, dict):
            raise LastfmRequestException(f"Unexpected {self.method} response: {type(data).__name__}")
        if "error" in data:
            try:
                code = int(data["error"])
            except (TypeError, ValueError) as exc:
                raise LastfmRequestException(f"Unexpected {self.method} error code: {data['error']!r}") from exc
            raise LastfmApiError(code, str(data.get("message", "")))
        return data
