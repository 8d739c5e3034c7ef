# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolated-settings",
#       "name": "_isolated_settings",
#       "anchor": "function-isolated-settings",
#       "kind": "fixture"
#     },
#     {
#       "id": "mock-transport",
#       "name": "mock_transport",
#       "anchor": "function-mock-transport",
#       "kind": "fixture"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Puts ``src`` on ``sys.path``, isolates ``CONFFETCH_*`` settings per test, and
provides an :class:`HttpTransport` factory backed by ``httpx.MockTransport``
so no test touches the network.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Iterator, List

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ConfFetch.network.client import HttpTransport  # noqa: E402
from ConfFetch.settings import FetchSettings, reset_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep environment-derived settings from leaking between tests."""

    for key in list(os.environ):
        if key.upper().startswith("CONFFETCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CONFFETCH_STAGING_DIR", str(tmp_path / "staging"))
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def fast_settings(tmp_path: Path) -> FetchSettings:
    """Settings with no pauses, staging inside ``tmp_path``."""

    return FetchSettings(
        retry_times=3,
        retry_sleep_seconds=0.0,
        endpoint_cooldown_seconds=0.0,
        staging_dir=tmp_path / "staging",
    )


@pytest.fixture
def mock_transport() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], HttpTransport]]:
    """Build :class:`HttpTransport` objects whose requests go to ``handler``."""

    created: List[httpx.Client] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> HttpTransport:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        created.append(client)
        return HttpTransport(client=client)

    yield _factory

    for client in created:
        client.close()
