"""Private staging area for in-flight downloads.

Every file download writes into its own uniquely named path inside a shared
staging directory.  The name is the target file name plus a random suffix,
so concurrent downloads of resources with the same name never collide; no
locking is involved.  Staged files are moved or discarded when the download
call ends and are never visible at a destination path.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Callable, Optional

from ..errors import InvalidRequestError

__all__ = ["StagingArea", "random_suffix"]

LOGGER = logging.getLogger(__name__)


def random_suffix() -> str:
    """Return a short random token for staging file names."""

    return uuid.uuid4().hex


class StagingArea:
    """Directory holding staging files, with collision-free name reservation."""

    def __init__(
        self,
        directory: Path,
        *,
        suffix_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.directory = Path(directory)
        self._suffix_factory = suffix_factory or random_suffix

    def reserve(self, file_name: str) -> Path:
        """Return a fresh staging path for ``file_name`` and ensure its directory exists."""

        name = Path(file_name).name
        if not name or name in {".", ".."} or name != file_name:
            raise InvalidRequestError(f"invalid target file name: {file_name!r}")
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory / f"{name}.{self._suffix_factory()}.part"

    def discard(self, path: Path) -> None:
        """Remove a staging file; a missing file is not an error."""

        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning(
                "could not remove staging file %s: %s",
                path,
                exc,
                extra={"stage": "staging", "path": str(path)},
            )
