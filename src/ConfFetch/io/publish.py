"""Atomic publish of staged files into their destination directories.

**Atomicity guarantee**
-----------------------
A destination path either does not exist or holds a complete file.  The
primary publish renames the staged file onto the destination with
``os.replace``; when the staging directory lives on another volume the
rename fails with ``EXDEV`` and the file is instead copied into a temporary
file *inside the destination directory*, fsynced, and renamed into place.
The secondary (mirror) publish always copies, using the same
temp-file-then-rename step, so a failing mirror never disturbs the primary.
Destinations are never truncated and rewritten in place.

**Return paths**
----------------
:func:`resolve_returned_path` reports an installed file relative to the mirror
base directory when it lives there, and as an absolute path otherwise.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import PublishError

__all__ = ["InstalledFile", "atomic_publish", "resolve_returned_path"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstalledFile:
    """Where a download ended up after publishing (or stale-file reuse)."""

    primary: Path
    mirror: Optional[Path] = None
    stale: bool = False

    @property
    def location(self) -> Path:
        """The path handed back to callers: the mirror copy when one was made."""
        return self.mirror if self.mirror is not None else self.primary


def _fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives a crash."""

    flag = getattr(os, "O_DIRECTORY", None)
    if flag is None:  # pragma: no cover - Windows
        return
    dir_fd = os.open(directory, flag)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def _copy_then_rename(source: Path, destination: Path) -> None:
    """Copy ``source`` next to ``destination`` and rename it into place."""

    fd, tmp_name = tempfile.mkstemp(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as target, source.open("rb") as origin:
            shutil.copyfileobj(origin, target)
            target.flush()
            os.fsync(target.fileno())
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_publish(source: Path, destination: Path, *, copy: bool = False) -> Path:
    """Make ``source`` visible at ``destination`` in a single atomic step.

    Args:
        source: Fully written file (a staging file, or the primary copy when
            mirroring).
        destination: Final path; parent directories are created.
        copy: Leave ``source`` in place instead of moving it.

    Returns:
        ``destination``.

    Raises:
        PublishError: The rename or copy failed (permissions, disk full...).
            Any previous file at ``destination`` is left untouched.
    """

    source = Path(source)
    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if copy:
            _copy_then_rename(source, destination)
        else:
            try:
                os.replace(source, destination)
            except OSError as exc:
                if exc.errno != errno.EXDEV:
                    raise
                LOGGER.debug(
                    "cross-device move, copying %s into %s",
                    source,
                    destination.parent,
                    extra={"stage": "publish", "path": str(destination)},
                )
                _copy_then_rename(source, destination)
                source.unlink(missing_ok=True)
        _fsync_directory(destination.parent)
    except OSError as exc:
        raise PublishError(
            f"cannot publish {source.name} to {destination}: {exc}",
            destination=destination,
        ) from exc

    LOGGER.debug(
        "published %s",
        destination,
        extra={"stage": "publish", "path": str(destination), "copy": copy},
    )
    return destination


def resolve_returned_path(path: Path, base_dir: Optional[Path]) -> Path:
    """Return ``path`` relative to ``base_dir`` when it lives there, else absolute."""

    absolute = Path(path).resolve()
    if base_dir is not None:
        try:
            return absolute.relative_to(Path(base_dir).resolve())
        except ValueError:
            pass
    return absolute
