"""Cooperative cancellation for blocking fetch calls.

Fetches block the calling thread, so cancellation is cooperative: the retry
executor and the fallback driver check a :class:`CancellationToken` between
attempts and between endpoints, and every pause waits on the token instead
of sleeping blindly.  A transport call already in flight is never
interrupted.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import FetchCancelled

__all__ = ["CancellationToken", "pause", "raise_if_cancelled"]


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> # From another thread
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    def wait(self, timeout: float) -> bool:
        """Block for up to ``timeout`` seconds; return ``True`` if cancelled meanwhile."""
        return self._is_cancelled.wait(timeout)

    def reset(self) -> None:
        """Reset the token to its initial state.

        This should only be used for testing or when reusing tokens
        in controlled scenarios.
        """
        self._is_cancelled.clear()


def raise_if_cancelled(token: Optional[CancellationToken], what: str = "fetch") -> None:
    """Raise :class:`FetchCancelled` when ``token`` has been cancelled."""

    if token is not None and token.is_cancelled():
        raise FetchCancelled(f"{what} cancelled")


def pause(seconds: float, token: Optional[CancellationToken] = None) -> None:
    """Suspend for ``seconds``, returning early with :class:`FetchCancelled` on cancel."""

    raise_if_cancelled(token)
    if seconds <= 0:
        return
    if token is None:
        time.sleep(seconds)
        return
    if token.wait(seconds):
        raise FetchCancelled("fetch cancelled while waiting")


# === NAVMAP v1 ===
# {
#   "module": "ConfFetch.cancellation",
#   "purpose": "Provide cooperative cancellation tokens and cancellable pauses for retry loops",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"},
#     {"id": "pause", "name": "pause", "anchor": "PAU", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===
