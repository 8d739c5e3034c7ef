"""Exception hierarchy shared by the retry, fallback, and install stages.

A fetch moves through three layers: a single attempt against one endpoint,
the bounded retry budget for that endpoint, and the ordered walk across every
endpoint of a resource.  File downloads add a fourth, the atomic publish into
the destination directories.  Each layer has its own failure type so callers
can tell "the network is flaky" apart from "the disk is full" while still
catching :class:`ConfFetchError` for everything.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

__all__ = [
    "ConfFetchError",
    "InvalidRequestError",
    "AttemptError",
    "TransportError",
    "RemoteError",
    "DeserializationError",
    "RetryExhausted",
    "AllEndpointsFailed",
    "PublishError",
    "DownloadUnavailable",
    "FetchCancelled",
]


class ConfFetchError(RuntimeError):
    """Base exception for every failure raised by the fetcher."""


class InvalidRequestError(ConfFetchError, ValueError):
    """Raised when a caller breaks a contract (empty endpoint set, zero attempts)."""


class AttemptError(ConfFetchError):
    """A single request or download against one endpoint failed."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(AttemptError):
    """Connection, timeout, or local I/O fault during one attempt."""


class RemoteError(AttemptError):
    """The endpoint answered with a non-success status code."""

    def __init__(self, message: str, *, url: Optional[str] = None, status_code: int) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class DeserializationError(AttemptError):
    """The response body did not decode into the expected shape."""


class RetryExhausted(ConfFetchError):
    """Every attempt against one endpoint failed."""

    def __init__(
        self,
        last_error: BaseException,
        *,
        attempts: int,
        url: Optional[str] = None,
    ) -> None:
        target = url or "operation"
        super().__init__(f"{target} failed after {attempts} attempt(s): {last_error}")
        self.last_error = last_error
        self.attempts = attempts
        self.url = url


class AllEndpointsFailed(ConfFetchError):
    """Every endpoint of a resource exhausted its retry budget."""

    def __init__(self, resource: str, errors: Optional[Sequence[RetryExhausted]] = None) -> None:
        self.resource = resource
        self.errors = list(errors or [])
        super().__init__(f"cannot get {resource}: {len(self.errors)} endpoint(s) failed")

    @property
    def last_error(self) -> Optional[BaseException]:
        """Return the underlying error of the final endpoint, if any."""

        if not self.errors:
            return None
        return self.errors[-1].last_error


class PublishError(ConfFetchError):
    """Moving or copying a staged file into its destination failed."""

    def __init__(self, message: str, *, destination: Path) -> None:
        super().__init__(message)
        self.destination = destination


class DownloadUnavailable(ConfFetchError):
    """No fresh download succeeded and no previously installed file exists."""

    def __init__(self, file_name: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"target file cannot be found: {file_name}")
        self.file_name = file_name


class FetchCancelled(ConfFetchError):
    """The caller's cancellation token fired between attempts or endpoints."""


# === NAVMAP v1 ===
# {
#   "module": "ConfFetch.errors",
#   "purpose": "Define the exception hierarchy used across attempts, retries, fallback, and publish",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "attempt", "name": "Single-Attempt Errors", "anchor": "ATT", "kind": "api"},
#     {"id": "retry", "name": "Retry & Fallback Exhaustion", "anchor": "RET", "kind": "api"},
#     {"id": "publish", "name": "Publish & Availability Errors", "anchor": "PUB", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
