"""
Remote Resource Client Tests

End-to-end behaviour of JSON fetches and staged file installs through the
public client: fallback across endpoints, stale-file reuse, mirror publish,
returned path forms, publish failures, and cleanup of staging files.

Usage:
    pytest tests/test_remote_resource_client.py
"""

from __future__ import annotations

import errno
from collections import Counter
from pathlib import Path
from typing import Callable, Dict
from unittest.mock import patch

import httpx
import pytest

from ConfFetch.api import FetchOutcome, RemoteResourceClient
from ConfFetch.endpoints import EndpointSet
from ConfFetch.errors import (
    AllEndpointsFailed,
    DownloadUnavailable,
    InvalidRequestError,
    PublishError,
)
from ConfFetch.io.staging import StagingArea
from ConfFetch.mirror import StaticMirrorResolver
from ConfFetch.settings import FetchSettings, RetryPolicy

FAST = RetryPolicy(max_attempts=3, sleep_between_attempts=0, endpoint_cooldown=0)


class _Servers:
    """MockTransport handler routing by host with per-host scripted failures."""

    def __init__(self, body: bytes, failures: Dict[str, int]) -> None:
        self.body = body
        self.failures = failures
        self.calls: Counter = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls[host] += 1
        limit = self.failures.get(host, 0)
        if limit < 0 or self.calls[host] <= limit:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, content=self.body)


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    mock_transport,
    fast_settings: FetchSettings,
    mirror_dir: Path | None = None,
) -> RemoteResourceClient:
    return RemoteResourceClient(
        fast_settings,
        transport=mock_transport(handler),
        mirror_resolver=StaticMirrorResolver(mirror_dir),
        staging_area=StagingArea(fast_settings.staging_dir),
    )


ENDPOINTS = EndpointSet.from_urls(
    ["http://cfg-a/api/file/app.properties", "http://cfg-b/api/file/app.properties"],
    resource="app.properties",
)


def test_get_json_falls_back_to_second_server(mock_transport, fast_settings) -> None:
    calls: Counter = Counter()

    def handler(request: httpx.Request) -> httpx.Response:
        calls[request.url.host] += 1
        if request.url.host == "cfg-a":
            return httpx.Response(503)
        return httpx.Response(200, json={"feature": True})

    client = _client(handler, mock_transport, fast_settings)
    endpoints = EndpointSet.for_servers(["cfg-a", "cfg-b"], "/api/config/app.json")

    assert client.get_json(endpoints, dict, policy=FAST) == {"feature": True}
    assert calls == Counter({"cfg-a": 3, "cfg-b": 1})


def test_get_json_uses_settings_policy_by_default(mock_transport, fast_settings) -> None:
    calls: Counter = Counter()

    def handler(request: httpx.Request) -> httpx.Response:
        calls[request.url.host] += 1
        return httpx.Response(500)

    client = _client(handler, mock_transport, fast_settings)

    with pytest.raises(AllEndpointsFailed):
        client.get_json(EndpointSet.from_urls(["http://cfg-a/x.json"]))

    assert calls["cfg-a"] == fast_settings.retry_times


def test_try_get_json_reports_outcomes(mock_transport, fast_settings) -> None:
    ok_client = _client(
        lambda request: httpx.Response(200, json={"a": 1}), mock_transport, fast_settings
    )
    bad_client = _client(lambda request: httpx.Response(404), mock_transport, fast_settings)
    endpoints = EndpointSet.from_urls(["http://cfg-a/x.json"])

    success = ok_client.try_get_json(endpoints, policy=FAST)
    failure = bad_client.try_get_json(endpoints, policy=FAST)

    assert success == FetchOutcome.success({"a": 1})
    assert success.unwrap() == {"a": 1}
    assert not failure.ok
    assert isinstance(failure.error, AllEndpointsFailed)
    with pytest.raises(AllEndpointsFailed):
        failure.unwrap()


def test_json_fetch_never_reuses_local_files(mock_transport, fast_settings, tmp_path) -> None:
    (tmp_path / "x.json").write_text("{}")
    client = _client(lambda request: httpx.Response(500), mock_transport, fast_settings)

    with pytest.raises(AllEndpointsFailed):
        client.get_json(EndpointSet.from_urls(["http://cfg-a/x.json"]), policy=FAST)


def test_download_installs_primary_and_returns_absolute_path(
    mock_transport, fast_settings, tmp_path
) -> None:
    servers = _Servers(b"db.url=jdbc:x\n", {"cfg-a": -1, "cfg-b": 1})
    client = _client(servers, mock_transport, fast_settings, mirror_dir=None)
    local_dir = tmp_path / "conf"

    result = client.download_file(ENDPOINTS, "app.properties", local_dir, mirror=True, policy=FAST)

    assert result == (local_dir / "app.properties").resolve()
    assert result.is_absolute()
    assert result.read_bytes() == b"db.url=jdbc:x\n"
    assert servers.calls == Counter({"cfg-a": 3, "cfg-b": 2})
    assert list(fast_settings.staging_dir.iterdir()) == []


def test_download_with_mirror_returns_path_relative_to_mirror(
    mock_transport, fast_settings, tmp_path
) -> None:
    mirror_dir = tmp_path / "classes"
    client = _client(_Servers(b"k=v\n", {}), mock_transport, fast_settings, mirror_dir=mirror_dir)
    local_dir = tmp_path / "conf"

    result = client.download_file(ENDPOINTS, "app.properties", local_dir, mirror=True, policy=FAST)

    assert result == Path("app.properties")
    assert (mirror_dir / "app.properties").read_bytes() == b"k=v\n"
    assert (local_dir / "app.properties").read_bytes() == b"k=v\n"


def test_download_without_mirror_flag_skips_mirror(mock_transport, fast_settings, tmp_path) -> None:
    mirror_dir = tmp_path / "classes"
    client = _client(_Servers(b"k=v\n", {}), mock_transport, fast_settings, mirror_dir=mirror_dir)

    installed = client.install(ENDPOINTS, "app.properties", tmp_path / "conf", policy=FAST)

    assert installed.mirror is None
    assert not installed.stale
    assert not (mirror_dir / "app.properties").exists()


def test_primary_under_mirror_base_is_returned_relative(
    mock_transport, fast_settings, tmp_path
) -> None:
    mirror_dir = tmp_path / "classes"
    client = _client(_Servers(b"k=v\n", {}), mock_transport, fast_settings, mirror_dir=mirror_dir)

    result = client.download_file(
        ENDPOINTS, "app.properties", mirror_dir / "conf", mirror=False, policy=FAST
    )

    assert result == Path("conf/app.properties")


def test_stale_file_is_reused_when_every_endpoint_fails(
    mock_transport, fast_settings, tmp_path, caplog
) -> None:
    local_dir = tmp_path / "conf"
    local_dir.mkdir()
    existing = local_dir / "app.properties"
    existing.write_bytes(b"previous=1\n")
    servers = _Servers(b"fresh=1\n", {"cfg-a": -1, "cfg-b": -1})
    client = _client(servers, mock_transport, fast_settings)

    with caplog.at_level("WARNING", logger="ConfFetch"):
        installed = client.install(ENDPOINTS, "app.properties", local_dir, mirror=True, policy=FAST)

    assert installed.stale
    assert installed.location == existing
    assert existing.read_bytes() == b"previous=1\n"
    assert servers.calls == Counter({"cfg-a": 3, "cfg-b": 3})
    assert any("using previous download file" in r.getMessage() for r in caplog.records)
    assert list(fast_settings.staging_dir.iterdir()) == []


def test_stale_download_file_returns_unchanged_path(mock_transport, fast_settings, tmp_path) -> None:
    local_dir = tmp_path / "conf"
    local_dir.mkdir()
    (local_dir / "app.properties").write_bytes(b"previous=1\n")
    client = _client(_Servers(b"", {"cfg-a": -1, "cfg-b": -1}), mock_transport, fast_settings)

    result = client.download_file(ENDPOINTS, "app.properties", local_dir, policy=FAST)

    assert result == (local_dir / "app.properties").resolve()
    assert result.read_bytes() == b"previous=1\n"


def test_no_download_and_no_previous_file_is_unavailable(
    mock_transport, fast_settings, tmp_path
) -> None:
    client = _client(_Servers(b"", {"cfg-a": -1, "cfg-b": -1}), mock_transport, fast_settings)

    with pytest.raises(DownloadUnavailable) as excinfo:
        client.download_file(ENDPOINTS, "app.properties", tmp_path / "conf", policy=FAST)

    assert excinfo.value.file_name == "app.properties"
    assert isinstance(excinfo.value.__cause__, AllEndpointsFailed)
    assert not (tmp_path / "conf" / "app.properties").exists()


def test_publish_failure_is_not_retried_and_keeps_old_file(
    mock_transport, fast_settings, tmp_path
) -> None:
    local_dir = tmp_path / "conf"
    local_dir.mkdir()
    (local_dir / "app.properties").write_bytes(b"previous=1\n")
    servers = _Servers(b"fresh=1\n", {})
    client = _client(servers, mock_transport, fast_settings)

    with patch(
        "ConfFetch.io.publish.os.replace",
        side_effect=OSError(errno.ENOSPC, "No space left on device"),
    ):
        with pytest.raises(PublishError):
            client.install(ENDPOINTS, "app.properties", local_dir, policy=FAST)

    assert servers.calls == Counter({"cfg-a": 1})
    assert (local_dir / "app.properties").read_bytes() == b"previous=1\n"
    assert list(fast_settings.staging_dir.iterdir()) == []


def test_mirror_publish_failure_leaves_primary_installed(
    mock_transport, fast_settings, tmp_path
) -> None:
    mirror_dir = tmp_path / "classes"
    client = _client(_Servers(b"k=v\n", {}), mock_transport, fast_settings, mirror_dir=mirror_dir)
    local_dir = tmp_path / "conf"

    with patch(
        "ConfFetch.io.publish._copy_then_rename",
        side_effect=OSError(errno.EACCES, "Permission denied"),
    ):
        with pytest.raises(PublishError):
            client.install(ENDPOINTS, "app.properties", local_dir, mirror=True, policy=FAST)

    assert (local_dir / "app.properties").read_bytes() == b"k=v\n"
    assert not (mirror_dir / "app.properties").exists()


def test_empty_endpoints_is_contract_violation(mock_transport, fast_settings, tmp_path) -> None:
    servers = _Servers(b"", {})
    client = _client(servers, mock_transport, fast_settings)

    with pytest.raises(InvalidRequestError):
        client.download_file(EndpointSet.from_urls([]), "app.properties", tmp_path, policy=FAST)

    assert sum(servers.calls.values()) == 0


def test_concurrent_style_downloads_do_not_share_staging(
    mock_transport, fast_settings, tmp_path
) -> None:
    reserved = []
    area = StagingArea(fast_settings.staging_dir)
    original_reserve = area.reserve

    def recording_reserve(name: str) -> Path:
        path = original_reserve(name)
        reserved.append(path)
        return path

    area.reserve = recording_reserve  # type: ignore[method-assign]
    client = RemoteResourceClient(
        fast_settings,
        transport=mock_transport(_Servers(b"k=v\n", {})),
        mirror_resolver=StaticMirrorResolver(None),
        staging_area=area,
    )

    client.install(ENDPOINTS, "app.properties", tmp_path / "one", policy=FAST)
    client.install(ENDPOINTS, "app.properties", tmp_path / "two", policy=FAST)

    assert len(set(reserved)) == 2


def test_client_closes_only_transport_it_built(mock_transport, fast_settings) -> None:
    transport = mock_transport(lambda request: httpx.Response(200))
    with RemoteResourceClient(fast_settings, transport=transport) as client:
        assert client.transport is transport
    assert not transport.client.is_closed

    with RemoteResourceClient(fast_settings) as owned:
        inner = owned.transport.client
    assert inner.is_closed
