"""Fallback driver: walk an endpoint set, retrying each endpoint in turn."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, TypeVar

from .cancellation import CancellationToken, pause, raise_if_cancelled
from .endpoints import EndpointSet
from .errors import AllEndpointsFailed, InvalidRequestError, RetryExhausted
from .network.retry import attempt
from .settings import RetryPolicy

__all__ = ["fetch_with_fallback"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def fetch_with_fallback(
    endpoints: EndpointSet,
    policy: RetryPolicy,
    operation_factory: Callable[[str], Callable[[], T]],
    *,
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """Return the payload of the first endpoint whose operation succeeds.

    Each endpoint gets the full ``policy.max_attempts`` budget.  After an
    endpoint is exhausted the driver pauses ``policy.endpoint_cooldown``
    seconds before moving on; there is no pause after the last endpoint.

    Raises:
        InvalidRequestError: ``endpoints`` is empty.
        AllEndpointsFailed: Every endpoint exhausted its attempts.
        FetchCancelled: ``cancel_token`` fired between endpoints or attempts.
    """

    if not endpoints:
        raise InvalidRequestError(f"no endpoints given for {endpoints.resource}")

    errors: List[RetryExhausted] = []
    urls = list(endpoints)
    for index, url in enumerate(urls):
        raise_if_cancelled(cancel_token, endpoints.resource)
        LOGGER.debug(
            "querying %s",
            url,
            extra={"stage": "fallback", "endpoint": url, "resource": endpoints.resource},
        )
        operation = operation_factory(url)
        try:
            return attempt(
                operation,
                policy.max_attempts,
                policy.sleep_between_attempts,
                cancel_token=cancel_token,
                description=url,
            )
        except RetryExhausted as exc:
            errors.append(exc)
            LOGGER.warning(
                "endpoint %s exhausted for %s: %s",
                url,
                endpoints.resource,
                exc.last_error,
                extra={"stage": "fallback", "endpoint": url, "resource": endpoints.resource},
            )
            if index < len(urls) - 1:
                pause(policy.endpoint_cooldown, cancel_token)

    raise AllEndpointsFailed(endpoints.resource, errors=errors) from errors[-1]
