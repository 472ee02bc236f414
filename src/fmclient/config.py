"""Configuration loader for fmclient (global + project with TOML-based defaults)."""

from __future__ import annotations

import os
import platform
import stat
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python <3.11
    import tomli as tomllib  # type: ignore


class ConfigStatus(Enum):
    CONFIGURED = "configured"
    MISSING_API_KEY = "missing-api-key"
    MISSING_API_SECRET = "missing-api-secret"


# Environment variables that take precedence over credentials.toml
CREDENTIAL_ENV = {
    "api_key": "LASTFM_API_KEY",
    "api_secret": "LASTFM_API_SECRET",
    "session_key": "LASTFM_SESSION_KEY",
}


class ConfigLoader:
    """
    Handles configuration loading from multiple sources with priority resolution.

    Priority (highest → lowest):
    1. Command-line arguments (not handled here)
    2. Environment variables (FMCLIENT_SECTION__KEY)
    3. Project config (.fmclient/config.toml)
    4. Global config (~/.config/fmclient/config.toml)
    5. Built-in defaults

    The loader is an ordinary object: build one per application and hand it
    to the client and whatever else needs settings.
    """

    def __init__(self, global_dir: Optional[Path] = None, project_dir: Optional[Path] = None) -> None:
        self.global_dir = global_dir or self.get_global_config_dir()
        self.project_dir = project_dir or self.get_project_config_dir()

        self.config: Dict[str, Any] = {}
        self.credentials: Dict[str, Any] = {}

        self._load_all()

    # ------------------------------------------------------------------ #
    # Public getters
    # ------------------------------------------------------------------ #
    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot-separated key."""
        keys = key.split(".")
        value: Any = self.config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key (in memory only)."""
        self._set_nested(self.config, key, value)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_credential(self, key: str) -> Optional[str]:
        """Get a Last.fm credential, preferring environment overrides."""
        env_var = CREDENTIAL_ENV.get(key)
        if env_var and os.getenv(env_var):
            return os.getenv(env_var)
        value = self.credentials.get("lastfm", {}).get(key)
        return value or None

    def status(self, require_secret: bool = False) -> ConfigStatus:
        """Report whether enough credentials are present to talk to the service."""
        if not self.get_credential("api_key"):
            return ConfigStatus.MISSING_API_KEY
        if require_secret and not self.get_credential("api_secret"):
            return ConfigStatus.MISSING_API_SECRET
        return ConfigStatus.CONFIGURED

    # ------------------------------------------------------------------ #
    # Load/merge helpers
    # ------------------------------------------------------------------ #
    def _load_all(self) -> None:
        """Load all configuration files with proper priority."""
        self._load_global_config()
        self._load_credentials()

        if self.project_dir:
            self._load_project_config()

        self._apply_env_overrides()

    def _load_global_config(self) -> None:
        """Load global configuration."""
        config_file = self.global_dir / "config.toml"
        self.config = self._get_default_config()
        if config_file.exists():
            with open(config_file, "rb") as f:
                self._deep_merge(self.config, tomllib.load(f))
        else:
            self._create_default_config()

    def _load_credentials(self) -> None:
        """Load credentials with security checks."""
        creds_file = self.global_dir / "credentials.toml"

        if not creds_file.exists():
            self._create_default_credentials()
            return

        if platform.system() != "Windows":
            st = creds_file.stat()
            # world/group readable bits disallowed
            if st.st_mode & (stat.S_IRWXG | stat.S_IRWXO):
                raise PermissionError(
                    f"Insecure permissions on {creds_file}. Run: chmod 600 {creds_file}"
                )

        with open(creds_file, "rb") as f:
            self.credentials = tomllib.load(f)

    def _load_project_config(self) -> None:
        """Load project-specific config and merge with global."""
        config_file = self.project_dir / "config.toml"
        if config_file.exists():
            with open(config_file, "rb") as f:
                project_config = tomllib.load(f)
                self._deep_merge(self.config, project_config)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides (FMCLIENT_CACHE__TIMEOUT_HOURS -> cache.timeout_hours)."""
        env_prefix = "FMCLIENT_"
        for key, value in os.environ.items():
            if not key.startswith(env_prefix):
                continue
            config_key = key[len(env_prefix) :].lower().replace("__", ".")
            self._set_nested(self.config, config_key, value)

    # ------------------------------------------------------------------ #
    # Static paths/helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def get_global_config_dir() -> Path:
        """Get platform-specific global config directory following XDG spec."""
        system = platform.system()
        if system == "Windows":
            base = Path(os.environ.get("APPDATA", "~\\AppData\\Roaming")).expanduser()
        elif system == "Darwin":
            xdg = os.environ.get("XDG_CONFIG_HOME")
            base = Path(xdg) if xdg else Path.home() / ".config"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
        return base / "fmclient"

    @staticmethod
    def get_cache_dir() -> Path:
        """Get platform-specific user cache directory for response files."""
        system = platform.system()
        if system == "Windows":
            base = Path(os.environ.get("LOCALAPPDATA", "~\\AppData\\Local")).expanduser()
        elif system == "Darwin":
            base = Path.home() / "Library" / "Caches"
        else:
            base = Path(os.environ.get("XDG_CACHE_HOME", "~/.cache")).expanduser()
        return base / "fmclient"

    @staticmethod
    def get_project_config_dir() -> Path | None:
        """Find .fmclient directory in current or parent directories."""
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_dir = parent / ".fmclient"
            if config_dir.is_dir():
                return config_dir
        return None

    # ------------------------------------------------------------------ #
    # Persistence helpers
    # ------------------------------------------------------------------ #
    def _create_default_config(self) -> None:
        self.global_dir.mkdir(parents=True, exist_ok=True)
        config_file = self.global_dir / "config.toml"
        with open(config_file, "w", encoding="utf-8") as f:
            f.write(self._get_default_config_toml())

    def _create_default_credentials(self) -> None:
        self.global_dir.mkdir(parents=True, exist_ok=True)
        creds_file = self.global_dir / "credentials.toml"
        with open(creds_file, "w", encoding="utf-8") as f:
            f.write("# Add your Last.fm API credentials here\n\n[lastfm]\n")
        if platform.system() != "Windows":
            os.chmod(creds_file, 0o600)

    # ------------------------------------------------------------------ #
    # Default content
    # ------------------------------------------------------------------ #
    def _get_default_config(self) -> Dict[str, Any]:
        """Built-in defaults."""
        return {
            "general": {
                "log_level": "warning",
            },
            "api": {
                "base_url": "https://ws.audioscrobbler.com/2.0/",
                "timeout_seconds": 30.0,
                "language": "",
                "proxy": "",
            },
            "cache": {
                "enabled": True,
                "path": "",
                "timeout_hours": 24.0,
                "atomic_writes": True,
                "event_log": "",
            },
        }

    def _get_default_config_toml(self) -> str:
        """Default config TOML text for first-run creation."""
        default = self._get_default_config()
        return "\n".join(
            [
                "[general]",
                f'log_level = "{default["general"]["log_level"]}"',
                "",
                "[api]",
                f'base_url = "{default["api"]["base_url"]}"',
                f'timeout_seconds = {default["api"]["timeout_seconds"]}',
                "# ISO 639 alpha-2 code for biographies and wiki texts",
                'language = ""',
                "# Proxy URL for all API calls, e.g. http://proxy.local:3128",
                'proxy = ""',
                "",
                "[cache]",
                "enabled = true",
                "# Empty means the platform user cache directory",
                'path = ""',
                f'timeout_hours = {default["cache"]["timeout_hours"]}',
                "atomic_writes = true",
                'event_log = ""',
                "",
            ]
        )

    # ------------------------------------------------------------------ #
    # Utility helpers
    # ------------------------------------------------------------------ #
    def _deep_merge(self, base: dict, override: dict) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _set_nested(self, d: dict, path: str, value: Any) -> None:
        keys = path.split(".")
        for key in keys[:-1]:
            d = d.setdefault(key, {})
        d[keys[-1]] = value


__all__ = ["ConfigLoader", "ConfigStatus"]
