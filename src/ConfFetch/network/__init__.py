"""Network layer: the HTTPX transport and the retry executor.

Usage:
    from ConfFetch.network import HttpTransport, attempt

    with HttpTransport() as transport:
        response = attempt(lambda: transport.get(url), max_attempts=3, sleep_between_attempts=1)
"""

from .client import HttpTransport, create_http_client
from .retry import attempt, build_retrying, is_retryable

__all__ = [
    "HttpTransport",
    "create_http_client",
    "attempt",
    "build_retrying",
    "is_retryable",
]
