"""Public API for the ConfFetch resilient remote-resource fetcher.

This facade exposes the client used to fetch JSON config documents and to
download configuration files from redundant endpoints, together with the
retry/fallback building blocks and the exception hierarchy.  Attributes are
imported lazily so ``import ConfFetch`` stays cheap.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict

__version__ = "0.1.0"

_EXPORTS: Dict[str, str] = {
    "RemoteResourceClient": "api",
    "FetchOutcome": "api",
    "EndpointSet": "endpoints",
    "RetryPolicy": "settings",
    "FetchSettings": "settings",
    "get_settings": "settings",
    "reset_settings_cache": "settings",
    "CancellationToken": "cancellation",
    "fetch_with_fallback": "fallback",
    "attempt": "network.retry",
    "HttpTransport": "network.client",
    "JsonFetcher": "fetchers",
    "FileFetcher": "fetchers",
    "StagedFile": "fetchers",
    "InstalledFile": "io.publish",
    "atomic_publish": "io.publish",
    "StagingArea": "io.staging",
    "StaticMirrorResolver": "mirror",
    "SettingsMirrorResolver": "mirror",
    "setup_logging": "logging_utils",
    "ConfFetchError": "errors",
    "InvalidRequestError": "errors",
    "TransportError": "errors",
    "RemoteError": "errors",
    "DeserializationError": "errors",
    "RetryExhausted": "errors",
    "AllEndpointsFailed": "errors",
    "PublishError": "errors",
    "DownloadUnavailable": "errors",
    "FetchCancelled": "errors",
}

__all__ = [*_EXPORTS, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .api import FetchOutcome, RemoteResourceClient
    from .cancellation import CancellationToken
    from .endpoints import EndpointSet
    from .errors import (
        AllEndpointsFailed,
        ConfFetchError,
        DeserializationError,
        DownloadUnavailable,
        FetchCancelled,
        InvalidRequestError,
        PublishError,
        RemoteError,
        RetryExhausted,
        TransportError,
    )
    from .fallback import fetch_with_fallback
    from .fetchers import FileFetcher, JsonFetcher, StagedFile
    from .io.publish import InstalledFile, atomic_publish
    from .io.staging import StagingArea
    from .logging_utils import setup_logging
    from .mirror import SettingsMirrorResolver, StaticMirrorResolver
    from .network.client import HttpTransport
    from .network.retry import attempt
    from .settings import FetchSettings, RetryPolicy, get_settings, reset_settings_cache


def __getattr__(name: str) -> Any:
    """Resolve public attributes on first access."""

    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(import_module(f".{module_name}", __name__), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
