# === NAVMAP v1 ===
# {
#   "module": "ConfFetch.api",
#   "purpose": "Public client for JSON fetches and staged, atomically installed file downloads",
#   "sections": [
#     {
#       "id": "fetchoutcome",
#       "name": "FetchOutcome",
#       "anchor": "class-fetchoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "remoteresourceclient",
#       "name": "RemoteResourceClient",
#       "anchor": "class-remoteresourceclient",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public client tying the fallback driver, fetchers, and installer together.

Typical usage::

    from ConfFetch import EndpointSet, RemoteResourceClient

    servers = EndpointSet.for_servers(["cfg1:8080", "cfg2:8080"], "/api/config/app.json")
    with RemoteResourceClient() as client:
        settings = client.get_json(servers, dict)
        path = client.download_file(servers, "app.properties", "/etc/myapp", mirror=True)

``get_json`` raises :class:`~ConfFetch.errors.AllEndpointsFailed` when no
endpoint answers.  ``download_file`` prefers a fresh download but falls back
to the file already installed in ``local_dir`` when every endpoint fails; it
raises :class:`~ConfFetch.errors.DownloadUnavailable` only when there is
nothing usable at all.  Publish errors are never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Optional, Type, TypeVar, Union

from .cancellation import CancellationToken
from .endpoints import EndpointSet
from .errors import AllEndpointsFailed, ConfFetchError, DownloadUnavailable
from .fallback import fetch_with_fallback
from .fetchers import FileFetcher, JsonFetcher
from .io.publish import InstalledFile, atomic_publish, resolve_returned_path
from .io.staging import StagingArea
from .mirror import MirrorResolver, SettingsMirrorResolver
from .network.client import HttpTransport
from .settings import FetchSettings, RetryPolicy, get_settings

__all__ = ["FetchOutcome", "RemoteResourceClient"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    """Either ``Success(payload)`` or ``Failure(error)``."""

    ok: bool
    payload: Optional[T] = None
    error: Optional[ConfFetchError] = None

    @classmethod
    def success(cls, payload: T) -> "FetchOutcome[T]":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, error: ConfFetchError) -> "FetchOutcome[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return the payload, or raise the stored error."""
        if not self.ok:
            assert self.error is not None
            raise self.error
        return self.payload  # type: ignore[return-value]


class RemoteResourceClient:
    """Fetch JSON documents and install config files from redundant endpoints.

    The client owns one :class:`HttpTransport` for its lifetime unless a
    transport is injected, in which case the caller keeps ownership.
    """

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        *,
        transport: Optional[HttpTransport] = None,
        mirror_resolver: Optional[MirrorResolver] = None,
        staging_area: Optional[StagingArea] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_transport = transport is None
        self.transport = transport if transport is not None else HttpTransport(self.settings)
        self.mirror_resolver = mirror_resolver or SettingsMirrorResolver(self.settings)
        self.staging_area = staging_area or StagingArea(self.settings.staging_dir)

    def default_policy(self) -> RetryPolicy:
        """Return the retry policy configured in :attr:`settings`."""
        return self.settings.retry_policy()

    # ------------------------------------------------------------------
    # JSON resources
    # ------------------------------------------------------------------

    def get_json(
        self,
        endpoints: EndpointSet,
        target: Optional[Type[T]] = None,
        *,
        policy: Optional[RetryPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        """Fetch a JSON document from the first endpoint that serves it."""

        return fetch_with_fallback(
            endpoints,
            policy or self.default_policy(),
            JsonFetcher(self.transport, target),
            cancel_token=cancel_token,
        )

    def try_get_json(
        self,
        endpoints: EndpointSet,
        target: Optional[Type[T]] = None,
        *,
        policy: Optional[RetryPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FetchOutcome[T]:
        """Like :meth:`get_json` but report failure as a :class:`FetchOutcome`."""

        try:
            payload = self.get_json(endpoints, target, policy=policy, cancel_token=cancel_token)
        except ConfFetchError as exc:
            return FetchOutcome.failure(exc)
        return FetchOutcome.success(payload)

    # ------------------------------------------------------------------
    # File resources
    # ------------------------------------------------------------------

    def install(
        self,
        endpoints: EndpointSet,
        file_name: str,
        local_dir: Union[str, Path],
        *,
        mirror: bool = False,
        policy: Optional[RetryPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> InstalledFile:
        """Download ``file_name`` and publish it into ``local_dir`` (and the mirror).

        Raises:
            DownloadUnavailable: Every endpoint failed and no earlier copy exists.
            PublishError: The staged file could not be moved or copied into place.
            InvalidRequestError: Empty endpoint set or unusable file name.
            FetchCancelled: ``cancel_token`` fired between attempts or endpoints.
        """

        primary = Path(local_dir) / file_name
        staging_path = self.staging_area.reserve(file_name)
        try:
            try:
                staged = fetch_with_fallback(
                    endpoints,
                    policy or self.default_policy(),
                    FileFetcher(self.transport, staging_path),
                    cancel_token=cancel_token,
                )
            except AllEndpointsFailed as exc:
                if primary.is_file():
                    LOGGER.warning(
                        "download of %s failed, using previous download file %s",
                        file_name,
                        primary,
                        exc_info=exc,
                        extra={"stage": "install", "resource": endpoints.resource},
                    )
                    return InstalledFile(primary=primary, stale=True)
                raise DownloadUnavailable(
                    file_name,
                    f"target file cannot be found: {file_name} "
                    f"(download failed and no previous copy in {primary.parent})",
                ) from exc

            atomic_publish(staged.path, primary)
            mirror_path: Optional[Path] = None
            if mirror:
                base = self.mirror_resolver.resolve()
                if base is None:
                    LOGGER.warning(
                        "mirror directory unavailable, cannot transfer %s",
                        file_name,
                        extra={"stage": "install", "resource": endpoints.resource},
                    )
                else:
                    mirror_path = atomic_publish(primary, Path(base) / file_name, copy=True)
        finally:
            self.staging_area.discard(staging_path)

        installed = InstalledFile(primary=primary, mirror=mirror_path)
        if not installed.location.exists():
            raise DownloadUnavailable(file_name)

        LOGGER.info(
            "installed %s from %s (%s bytes) at %s",
            file_name,
            staged.endpoint,
            staged.bytes_written,
            installed.location,
            extra={
                "stage": "install",
                "endpoint": staged.endpoint,
                "resource": endpoints.resource,
                "sha256": staged.sha256,
            },
        )
        return installed

    def download_file(
        self,
        endpoints: EndpointSet,
        file_name: str,
        local_dir: Union[str, Path],
        *,
        mirror: bool = False,
        policy: Optional[RetryPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """Install ``file_name`` and return where readers should load it from.

        The path is relative to the mirror base directory when the installed
        file lives under it, otherwise absolute.
        """

        installed = self.install(
            endpoints,
            file_name,
            local_dir,
            mirror=mirror,
            policy=policy,
            cancel_token=cancel_token,
        )
        return resolve_returned_path(installed.location, self.mirror_resolver.resolve())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the transport if this client created it."""
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> "RemoteResourceClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()
