"""fmclient - Last.fm API client with an on-disk request cache."""

__version__ = "0.1.0"
__author__ = "fmclient Contributors"

from .config import ConfigLoader, ConfigStatus
from .cache import FileRequestCache, MemoryRequestCache, RequestCache
from .client import LastfmClient, Session

__all__ = [
    "ConfigLoader",
    "ConfigStatus",
    "FileRequestCache",
    "MemoryRequestCache",
    "RequestCache",
    "LastfmClient",
    "Session",
]
