# === NAVMAP v1 ===
# {
#   "module": "ConfFetch.settings",
#   "purpose": "Retry policy model and environment-driven fetcher settings",
#   "sections": [
#     {
#       "id": "retrypolicy",
#       "name": "RetryPolicy",
#       "anchor": "class-retrypolicy",
#       "kind": "class"
#     },
#     {
#       "id": "fetchsettings",
#       "name": "FetchSettings",
#       "anchor": "class-fetchsettings",
#       "kind": "class"
#     },
#     {
#       "id": "get-settings",
#       "name": "get_settings",
#       "anchor": "function-get-settings",
#       "kind": "function"
#     },
#     {
#       "id": "reset-settings-cache",
#       "name": "reset_settings_cache",
#       "anchor": "function-reset-settings-cache",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Configuration for the remote resource fetcher.

Two layers live here.  :class:`RetryPolicy` is the small immutable value a
caller hands to a single fetch: how many attempts per endpoint, how long to
pause between them, and how long to cool down before moving to the next
endpoint.  :class:`FetchSettings` is the process-level configuration read
from ``CONFFETCH_*`` environment variables (transport timeouts, staging and
mirror directories, logging) and supplies the default policy.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "RetryPolicy",
    "FetchSettings",
    "DEFAULT_STAGING_DIR",
    "get_settings",
    "reset_settings_cache",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_STAGING_DIR = Path(platformdirs.user_cache_dir("conffetch")) / "download"


class RetryPolicy(BaseModel):
    """Attempt budget applied uniformly to every endpoint of one fetch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, description="Attempts per endpoint")
    sleep_between_attempts: float = Field(
        default=5.0, ge=0.0, description="Seconds to wait between attempts on one endpoint"
    )
    endpoint_cooldown: float = Field(
        default=1.0, ge=0.0, description="Seconds to wait before advancing to the next endpoint"
    )


class FetchSettings(BaseSettings):
    """Process-level fetcher configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CONFFETCH_",
        case_sensitive=False,
        extra="ignore",
    )

    retry_times: int = Field(3, ge=1, le=100, description="Attempts per endpoint")
    retry_sleep_seconds: float = Field(
        5.0, ge=0.0, le=3600.0, description="Pause between attempts on one endpoint"
    )
    endpoint_cooldown_seconds: float = Field(
        1.0, ge=0.0, le=600.0, description="Pause before falling back to the next endpoint"
    )
    staging_dir: Path = Field(
        DEFAULT_STAGING_DIR, description="Private directory for in-flight downloads"
    )
    mirror_dir: Optional[Path] = Field(
        None, description="Secondary mirror base directory (unset disables mirroring)"
    )
    connect_timeout_sec: float = Field(5.0, gt=0.0, le=120.0)
    read_timeout_sec: float = Field(30.0, gt=0.0, le=3600.0)
    max_connections: int = Field(16, ge=1, le=1024)
    verify_tls: bool = Field(True, description="Verify TLS certificates")
    user_agent: str = Field("conffetch/0.1 (+https://pypi.org/project/conffetch/)")
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: Optional[Path] = Field(None, description="Directory for JSON-lines log files")

    @field_validator("staging_dir", "mirror_dir", "log_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Any) -> Any:
        """Expand user home; treat empty strings as unset."""
        if v is None:
            return None
        if isinstance(v, str):
            if not v.strip():
                return None
            return Path(v.strip()).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Upper-case and validate the logging level name."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    def retry_policy(self) -> RetryPolicy:
        """Return the default :class:`RetryPolicy` described by these settings."""

        return RetryPolicy(
            max_attempts=self.retry_times,
            sleep_between_attempts=self.retry_sleep_seconds,
            endpoint_cooldown=self.endpoint_cooldown_seconds,
        )


_SETTINGS_LOCK = threading.RLock()
_SETTINGS_CACHE: Optional[FetchSettings] = None


def get_settings() -> FetchSettings:
    """Return memoised :class:`FetchSettings` read from the environment."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        if _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = FetchSettings()
            LOGGER.debug(
                "settings loaded",
                extra={"stage": "config", "staging_dir": str(_SETTINGS_CACHE.staging_dir)},
            )
        return _SETTINGS_CACHE


def reset_settings_cache() -> None:
    """Drop the memoised settings so the next access re-reads the environment."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None
