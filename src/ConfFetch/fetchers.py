# === NAVMAP v1 ===
# {
#   "module": "ConfFetch.fetchers",
#   "purpose": "Single-attempt JSON and file fetch operations plugged into the retry executor",
#   "sections": [
#     {
#       "id": "stagedfile",
#       "name": "StagedFile",
#       "anchor": "class-stagedfile",
#       "kind": "class"
#     },
#     {
#       "id": "jsonfetcher",
#       "name": "JsonFetcher",
#       "anchor": "class-jsonfetcher",
#       "kind": "class"
#     },
#     {
#       "id": "filefetcher",
#       "name": "FileFetcher",
#       "anchor": "class-filefetcher",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Resource fetchers: one request or download against one endpoint.

Both fetchers are *operation factories*: calling a fetcher with an endpoint
URL returns the zero-argument operation that the retry executor invokes.
Neither retries on its own; each call performs exactly one attempt and
raises an :class:`~ConfFetch.errors.AttemptError` subclass on any failure.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generic, Optional, Type, TypeVar

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import DeserializationError, RemoteError, TransportError
from .network.client import HttpTransport

__all__ = ["StagedFile", "JsonFetcher", "FileFetcher"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_CHUNK_SIZE = 1 << 16


def _raise_for_status(response: httpx.Response, url: str) -> None:
    """Raise :class:`RemoteError` unless ``response`` carries a 2xx status."""

    if not response.is_success:
        raise RemoteError(
            f"{url} answered HTTP {response.status_code}",
            url=url,
            status_code=response.status_code,
        )


@dataclass(frozen=True)
class StagedFile:
    """Confirmation that a download landed completely in its staging path."""

    path: Path
    endpoint: str
    bytes_written: int
    sha256: str


class JsonFetcher(Generic[T]):
    """Fetch a JSON document and validate it into ``target``.

    ``target`` is any type pydantic can validate (a model class, ``dict``,
    ``list[str]``...).  ``None`` returns the decoded JSON value unchanged.
    """

    def __init__(self, transport: HttpTransport, target: Optional[Type[T]] = None) -> None:
        self.transport = transport
        self.target = target
        self._adapter: TypeAdapter[Any] = TypeAdapter(target if target is not None else Any)

    def __call__(self, endpoint: str) -> Callable[[], T]:
        return lambda: self.fetch(endpoint)

    def fetch(self, endpoint: str) -> T:
        """Perform exactly one GET against ``endpoint`` and decode the body."""

        response = self.transport.get(endpoint, headers={"Accept": "application/json"})
        _raise_for_status(response, endpoint)
        try:
            return self._adapter.validate_json(response.content)
        except PydanticValidationError as exc:
            raise DeserializationError(
                f"{endpoint} returned a body that does not match "
                f"{getattr(self.target, '__name__', self.target) or 'JSON'}: "
                f"{exc.error_count()} error(s)",
                url=endpoint,
            ) from exc


class FileFetcher:
    """Stream one endpoint's body into a private staging path."""

    def __init__(self, transport: HttpTransport, staging_path: Path) -> None:
        self.transport = transport
        self.staging_path = Path(staging_path)

    def __call__(self, endpoint: str) -> Callable[[], StagedFile]:
        return lambda: self.fetch(endpoint)

    def fetch(self, endpoint: str) -> StagedFile:
        """Download ``endpoint`` into the staging path, replacing any earlier attempt.

        Raises:
            TransportError: network fault or local I/O fault while staging.
            RemoteError: non-success status code.
        """

        digest = hashlib.sha256()
        written = 0
        with self.transport.stream(endpoint) as response:
            _raise_for_status(response, endpoint)
            try:
                self.staging_path.parent.mkdir(parents=True, exist_ok=True)
                with self.staging_path.open("wb") as handle:
                    for chunk in response.iter_bytes(_CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
                            digest.update(chunk)
                            written += len(chunk)
                    handle.flush()
                    os.fsync(handle.fileno())
            except OSError as exc:
                raise TransportError(
                    f"cannot stage {endpoint} into {self.staging_path}: {exc}",
                    url=endpoint,
                ) from exc

        LOGGER.debug(
            "staged %s bytes from %s",
            written,
            endpoint,
            extra={"stage": "staging", "endpoint": endpoint, "path": str(self.staging_path)},
        )
        return StagedFile(
            path=self.staging_path,
            endpoint=endpoint,
            bytes_written=written,
            sha256=digest.hexdigest(),
        )
