"""Ordered, deduplicated endpoint sets for one logical resource."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple

import httpx

from .errors import InvalidRequestError

__all__ = ["EndpointSet"]


def _validate_url(raw: str) -> str:
    """Return ``raw`` stripped, or raise when it is not an absolute http(s) URL."""

    candidate = str(raw).strip()
    try:
        url = httpx.URL(candidate)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidRequestError(f"invalid endpoint URL {raw!r}: {exc}") from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise InvalidRequestError(f"endpoint URL must be absolute http(s): {raw!r}")
    return candidate


@dataclass(frozen=True)
class EndpointSet:
    """Candidate locations serving the same resource, tried in order.

    Attributes:
        urls: Absolute URLs, first occurrence wins on duplicates. Any iterable
            is accepted and normalised to a validated tuple on construction.
        resource: Human-readable description used in logs and errors.
    """

    urls: Tuple[str, ...]
    resource: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.urls, str):
            raise InvalidRequestError("urls must be a collection of URLs, not a single string")
        seen: list[str] = []
        for raw in self.urls:
            url = _validate_url(raw)
            if url not in seen:
                seen.append(url)
        object.__setattr__(self, "urls", tuple(seen))
        if not self.resource:
            label = self.urls[0] if self.urls else "<no endpoints>"
            object.__setattr__(self, "resource", label)

    @classmethod
    def from_urls(cls, urls: Iterable[str], resource: Optional[str] = None) -> "EndpointSet":
        """Build a set from ``urls``, dropping repeats while preserving order."""

        return cls(urls=tuple(urls), resource=resource or "")

    @classmethod
    def for_servers(
        cls,
        servers: Iterable[str],
        path: str,
        *,
        scheme: str = "http",
        resource: Optional[str] = None,
    ) -> "EndpointSet":
        """Address ``path`` on each ``host[:port]`` entry of ``servers``.

        Entries that already include a scheme are used as the base as-is.
        """

        suffix = "/" + path.lstrip("/")
        urls = []
        for server in servers:
            base = server.strip().rstrip("/")
            if not base:
                continue
            if "://" not in base:
                base = f"{scheme}://{base}"
            urls.append(base + suffix)
        return cls.from_urls(urls, resource=resource or path)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls)

    def __len__(self) -> int:
        return len(self.urls)

    def __bool__(self) -> bool:
        return bool(self.urls)

    def __str__(self) -> str:
        return f"{self.resource} ({', '.join(self.urls)})"
