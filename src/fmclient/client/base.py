"""Shared client types and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class LastfmException(Exception):
    """Base exception for Last.fm client errors."""


class LastfmUnavailableException(LastfmException):
    """Raised when a call needs credentials that are not configured."""


class LastfmRequestException(LastfmException):
    """Raised when the HTTP exchange fails or returns an unreadable body."""


class LastfmApiError(LastfmException):
    """Raised when the service answers with an error document."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"Last.fm error {code}: {message}")
        self.code = code
        self.message = message


@dataclass
class Session:
    api_key: str
    api_secret: Optional[str] = None
    session_key: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return bool(self.session_key)
