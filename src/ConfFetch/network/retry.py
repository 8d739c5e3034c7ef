"""Retry executor: a bounded, fixed-pause retry loop built on Tenacity.

One unreliable operation (a zero-argument callable that returns a payload or
raises) is attempted up to ``max_attempts`` times with a fixed pause between
failures.  The first payload wins; if every attempt fails the caller gets
:class:`~ConfFetch.errors.RetryExhausted` carrying the most recent error.

Design:
- **Fixed pause**: the fetcher talks to a handful of known config servers,
  so a constant interval is used rather than jittered backoff.
- **Cooperative cancellation**: the token is checked before each attempt and
  the pause waits on it, so a cancelled fetch stops between attempts.
- **Non-retryable errors**: cancellation and publish failures bypass the
  retry budget and propagate unchanged.

Example:
    >>> from ConfFetch.network.retry import attempt
    >>> attempt(lambda: "payload", max_attempts=3, sleep_between_attempts=0)
    'payload'
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

import tenacity
from tenacity import RetryCallState, retry_if_exception

from ..cancellation import CancellationToken, pause, raise_if_cancelled
from ..errors import FetchCancelled, InvalidRequestError, PublishError, RetryExhausted

__all__ = ["attempt", "build_retrying", "is_retryable"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_NON_RETRYABLE = (FetchCancelled, PublishError)


def is_retryable(exception: BaseException) -> bool:
    """Return ``True`` when ``exception`` should consume another attempt."""

    if not isinstance(exception, Exception):
        return False
    return not isinstance(exception, _NON_RETRYABLE)


def _log_before_sleep(description: Optional[str]) -> Callable[[RetryCallState], None]:
    """Build a Tenacity ``before_sleep`` hook that logs the failed attempt."""

    def _hook(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        wait_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
        LOGGER.warning(
            "attempt %s failed for %s, retrying in %.1fs: %s",
            retry_state.attempt_number,
            description or "operation",
            wait_s,
            error,
            extra={
                "stage": "retry",
                "endpoint": description,
                "attempt": retry_state.attempt_number,
            },
        )

    return _hook


def build_retrying(
    max_attempts: int,
    sleep_between_attempts: float,
    *,
    cancel_token: Optional[CancellationToken] = None,
    description: Optional[str] = None,
) -> tenacity.Retrying:
    """Build the Tenacity controller used by :func:`attempt`.

    Args:
        max_attempts: Total attempts, including the first.
        sleep_between_attempts: Seconds to pause after each failed attempt
            that is followed by another.
        cancel_token: Optional token that interrupts the pause.
        description: Label for log records, usually the endpoint URL.

    Returns:
        Configured ``tenacity.Retrying`` that raises ``tenacity.RetryError``
        once the budget is spent.
    """

    if max_attempts < 1:
        raise InvalidRequestError(f"max_attempts must be >= 1, got {max_attempts}")
    if sleep_between_attempts < 0:
        raise InvalidRequestError(
            f"sleep_between_attempts must be >= 0, got {sleep_between_attempts}"
        )

    return tenacity.Retrying(
        stop=tenacity.stop_after_attempt(max_attempts),
        wait=tenacity.wait_fixed(sleep_between_attempts),
        retry=retry_if_exception(is_retryable),
        sleep=lambda seconds: pause(seconds, cancel_token),
        before_sleep=_log_before_sleep(description),
        reraise=False,
    )


def attempt(
    operation: Callable[[], T],
    max_attempts: int,
    sleep_between_attempts: float,
    *,
    cancel_token: Optional[CancellationToken] = None,
    description: Optional[str] = None,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` calls have failed.

    Raises:
        InvalidRequestError: ``max_attempts`` is below one.
        RetryExhausted: Every attempt failed; ``last_error`` holds the final one.
        FetchCancelled: ``cancel_token`` fired before an attempt or during a pause.
        PublishError: Propagated from ``operation`` without retrying.
    """

    retrying = build_retrying(
        max_attempts,
        sleep_between_attempts,
        cancel_token=cancel_token,
        description=description,
    )

    def _guarded() -> T:
        raise_if_cancelled(cancel_token, description or "fetch")
        return operation()

    try:
        return retrying(_guarded)
    except tenacity.RetryError as exc:
        last_attempt = exc.last_attempt
        last_error = last_attempt.exception()
        assert last_error is not None
        raise RetryExhausted(
            last_error,
            attempts=last_attempt.attempt_number,
            url=description,
        ) from last_error
