"""Last.fm API access."""

from .base import (
    LastfmApiError,
    LastfmException,
    LastfmRequestException,
    LastfmUnavailableException,
    Session,
)
from .client import LastfmClient, build_cache
from .request import Request

__all__ = [
    "LastfmApiError",
    "LastfmException",
    "LastfmRequestException",
    "LastfmUnavailableException",
    "LastfmClient",
    "Request",
    "Session",
    "build_cache",
]
