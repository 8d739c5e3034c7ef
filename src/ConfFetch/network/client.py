"""HTTPX transport owned by a single fetcher instance.

Provides the one narrow capability the fetchers need: issue a GET against an
endpoint and hand back the response (buffered or streamed), translating every
HTTPX connection or timeout fault into :class:`~ConfFetch.errors.TransportError`.

Key design:
- **Explicit ownership**: no process-wide singleton; whoever builds an
  :class:`HttpTransport` closes it.  Tests inject an ``httpx.Client`` backed
  by ``httpx.MockTransport``.
- **No retries here**: the underlying ``httpx.HTTPTransport`` is built with
  ``retries=0``; the retry executor owns the attempt budget.
- **TLS**: system defaults plus the certifi bundle.

Example:
    >>> from ConfFetch.network import HttpTransport
    >>> with HttpTransport() as transport:
    ...     response = transport.get("https://config.example.org/app.json")
"""

from __future__ import annotations

import logging
import ssl
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

import certifi
import httpx

from ..errors import TransportError
from ..settings import FetchSettings, get_settings

__all__ = ["HttpTransport", "create_http_client"]

logger = logging.getLogger(__name__)


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create an SSL context using system certificates plus the certifi bundle."""

    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED (development only!)")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(settings: Optional[FetchSettings] = None) -> httpx.Client:
    """Create an ``httpx.Client`` configured from ``settings``."""

    settings = settings or get_settings()
    ssl_ctx = _create_ssl_context(settings.verify_tls)
    client = httpx.Client(
        transport=httpx.HTTPTransport(retries=0, verify=ssl_ctx),
        timeout=httpx.Timeout(
            settings.read_timeout_sec,
            connect=settings.connect_timeout_sec,
        ),
        limits=httpx.Limits(max_connections=settings.max_connections),
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
    )
    logger.debug(
        "HTTPX client created",
        extra={
            "stage": "transport",
            "max_connections": settings.max_connections,
            "verify_tls": settings.verify_tls,
        },
    )
    return client


class HttpTransport:
    """Blocking GET transport over an explicitly owned ``httpx.Client``."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else create_http_client(settings)
        self._closed = False

    @property
    def client(self) -> httpx.Client:
        return self._client

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        """Issue one GET and return the fully read response.

        Raises:
            TransportError: connection, timeout, redirect, decoding or protocol fault.
        """

        logger.debug("GET %s", url, extra={"stage": "transport", "endpoint": url})
        try:
            return self._client.get(url, headers=dict(headers or {}))
        except httpx.RequestError as exc:
            raise TransportError(f"request to {url} failed: {exc}", url=url) from exc

    @contextmanager
    def stream(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> Iterator[httpx.Response]:
        """Open a streamed GET; faults while opening or reading become ``TransportError``."""

        logger.debug("GET (stream) %s", url, extra={"stage": "transport", "endpoint": url})
        try:
            with self._client.stream("GET", url, headers=dict(headers or {})) as response:
                yield response
        except (httpx.RequestError, httpx.StreamError) as exc:
            raise TransportError(f"download from {url} failed: {exc}", url=url) from exc

    def close(self) -> None:
        """Close the client if this transport created it.  Safe to call twice."""

        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._client.close()
            logger.debug("HTTPX client closed", extra={"stage": "transport"})

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
