"""Resolvers for the optional secondary mirror directory.

The mirror is the base directory that downstream readers load configuration
from (historically the application classpath).  A resolver may report it as
unavailable by returning ``None``; the installer then skips the mirror copy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .settings import FetchSettings, get_settings

__all__ = ["MirrorResolver", "StaticMirrorResolver", "SettingsMirrorResolver"]


@runtime_checkable
class MirrorResolver(Protocol):
    """Supply the mirror base directory, or ``None`` when there is none."""

    def resolve(self) -> Optional[Path]:
        ...


class StaticMirrorResolver:
    """Always resolve to the same directory (or to nothing)."""

    def __init__(self, directory: Optional[Path]) -> None:
        self.directory = Path(directory) if directory is not None else None

    def resolve(self) -> Optional[Path]:
        return self.directory


class SettingsMirrorResolver:
    """Read ``mirror_dir`` from :class:`FetchSettings` on every call."""

    def __init__(self, settings: Optional[FetchSettings] = None) -> None:
        self._settings = settings

    def resolve(self) -> Optional[Path]:
        settings = self._settings or get_settings()
        return settings.mirror_dir
