# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for downloading, verifying, and caching tool binaries."""

from __future__ import annotations

from pathlib import Path

import pytest
import requests
from conftest import FakeResponse, FakeSession, sha256_bytes

from artifact_bundler.acquisition import (
    AcquisitionRequest,
    Downloader,
    ToolAcquisitionService,
    ToolCache,
)
from artifact_bundler.acquisition.downloader import backoff_delay, is_transient_status
from artifact_bundler.cancellation import CancellationToken
from artifact_bundler.config.models import AcquisitionConfig
from artifact_bundler.errors import AcquisitionFailure, HashMismatch, NetworkError, UnsupportedPlatform
from artifact_bundler.models import ToolReference
from artifact_bundler.platforms import Platform

URL = "https://example/hayabusa-win64.zip"
PAYLOAD = b"PK\x03\x04 hayabusa"


def _reference(url: str | None = URL, digest: str | None = None) -> ToolReference:
    return ToolReference.create("Hayabusa", declared_by="A", origin="envelope", url=url, expected_hash=digest)


def _service(
    tmp_path: Path,
    session: FakeSession,
    *,
    offline: bool = False,
    delays: list[float] | None = None,
    config: AcquisitionConfig | None = None,
) -> ToolAcquisitionService:
    cfg = config or AcquisitionConfig(cache_dir=tmp_path / "cache", backoff_base=0.0)
    recorded = delays if delays is not None else []
    downloader = Downloader(session, cfg, sleep=recorded.append)
    return ToolAcquisitionService(ToolCache(cfg.cache_dir), downloader, offline=offline)


def test_successful_download_is_verified_and_cached(tmp_path: Path, http: FakeSession) -> None:
    http.serve(URL, PAYLOAD)
    service = _service(tmp_path, http)
    acquired = service.acquire(_reference(digest=sha256_bytes(PAYLOAD)))
    assert acquired.actual_hash == sha256_bytes(PAYLOAD)
    assert acquired.filename == "hayabusa-win64.zip"
    assert acquired.platform is Platform.WINDOWS
    assert acquired.local_path.read_bytes() == PAYLOAD
    assert not acquired.from_cache

    again = service.acquire(_reference(digest=sha256_bytes(PAYLOAD)))
    assert again.from_cache
    assert http.attempts(URL) == 1


def test_http_404_is_not_retried(tmp_path: Path, http: FakeSession) -> None:
    http.route(URL, FakeResponse(404))
    delays: list[float] = []
    service = _service(tmp_path, http, delays=delays)
    with pytest.raises(NetworkError) as excinfo:
        service.acquire(_reference())
    assert excinfo.value.permanent
    assert excinfo.value.status_code == 404
    assert http.attempts(URL) == 1
    assert delays == []


def test_transient_errors_are_retried_with_backoff(tmp_path: Path, http: FakeSession) -> None:
    http.route(URL, FakeResponse(503), requests.ConnectionError("reset"), FakeResponse(200, PAYLOAD))
    delays: list[float] = []
    config = AcquisitionConfig(cache_dir=tmp_path / "cache", retries=3, backoff_base=0.5, backoff_cap=8.0)
    service = _service(tmp_path, http, delays=delays, config=config)
    acquired = service.acquire(_reference())
    assert acquired.size_bytes == len(PAYLOAD)
    assert http.attempts(URL) == 3
    assert delays == [0.5, 1.0]


def test_retries_are_bounded(tmp_path: Path, http: FakeSession) -> None:
    http.route(URL, FakeResponse(502))
    service = _service(tmp_path, http)
    with pytest.raises(NetworkError, match="gave up after 3 attempts"):
        service.acquire(_reference())
    assert http.attempts(URL) == 3


def test_hash_mismatch_fails_closed(tmp_path: Path, http: FakeSession) -> None:
    http.serve(URL, PAYLOAD)
    service = _service(tmp_path, http)
    with pytest.raises(HashMismatch) as excinfo:
        service.acquire(_reference(digest="0" * 64))
    assert excinfo.value.actual == sha256_bytes(PAYLOAD)
    cache_root = tmp_path / "cache"
    assert not (cache_root / "blobs").exists()
    assert not list(cache_root.glob(".download-*"))


def test_offline_uses_cache_only(tmp_path: Path, http: FakeSession) -> None:
    http.serve(URL, PAYLOAD)
    _service(tmp_path, http).acquire(_reference())
    offline = _service(tmp_path, FakeSession(), offline=True)
    assert offline.acquire(_reference()).from_cache
    with pytest.raises(AcquisitionFailure, match="offline cache miss"):
        offline.acquire(ToolReference.create("Other", declared_by="A", origin="envelope", url="https://example/o.zip"))


def test_reference_without_url_fails(tmp_path: Path, http: FakeSession) -> None:
    with pytest.raises(AcquisitionFailure, match="no download URL"):
        _service(tmp_path, http).acquire(_reference(url=None, digest="a" * 64))


def test_platform_mismatch_is_rejected(tmp_path: Path, http: FakeSession) -> None:
    with pytest.raises(UnsupportedPlatform):
        _service(tmp_path, http).acquire(_reference(), Platform.LINUX)


def test_acquire_all_collects_failures_per_tool(tmp_path: Path, http: FakeSession) -> None:
    good = ToolReference.create("Chainsaw", declared_by="A", origin="envelope", url="https://example/chainsaw.zip")
    http.serve("https://example/chainsaw.zip", b"chainsaw")
    http.route(URL, FakeResponse(404))
    batch = [
        AcquisitionRequest(reference=_reference(), platform=Platform.WINDOWS),
        AcquisitionRequest(reference=good, platform=Platform.ANY),
    ]
    report = _service(tmp_path, http).acquire_all(batch, concurrency=2)
    assert [tool.tool_name for tool in report.acquired] == ["chainsaw"]
    assert set(report.failures) == {"hayabusa"}
    assert report.failure_messages["hayabusa"].startswith("HTTP 404")


def test_acquire_all_skips_after_cancellation(tmp_path: Path, http: FakeSession) -> None:
    token = CancellationToken()
    token.cancel("test")
    report = _service(tmp_path, http).acquire_all(
        [AcquisitionRequest(reference=_reference(), platform=Platform.WINDOWS)],
        concurrency=1,
        cancel=token,
    )
    assert report.skipped == ["hayabusa"]
    assert http.calls == []


def test_backoff_and_transient_classification() -> None:
    assert [backoff_delay(attempt, base=0.5, cap=2.0) for attempt in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 2.0]
    assert is_transient_status(500)
    assert is_transient_status(429)
    assert is_transient_status(408)
    assert not is_transient_status(404)
    assert not is_transient_status(403)


def test_stream_decoding_error_fails_one_tool_and_cleans_staging(tmp_path: Path, http: FakeSession) -> None:
    good = ToolReference.create("Chainsaw", declared_by="A", origin="envelope", url="https://example/chainsaw.zip")
    http.serve("https://example/chainsaw.zip", b"chainsaw")
    http.route(URL, FakeResponse(200, b"partial", stream_error=requests.exceptions.ContentDecodingError("bad gzip")))
    batch = [
        AcquisitionRequest(reference=_reference(), platform=Platform.WINDOWS),
        AcquisitionRequest(reference=good, platform=Platform.ANY),
    ]
    report = _service(tmp_path, http).acquire_all(batch, concurrency=2)

    assert [tool.tool_name for tool in report.acquired] == ["chainsaw"]
    assert isinstance(report.failures["hayabusa"], NetworkError)
    assert "ContentDecodingError" in report.failure_messages["hayabusa"]
    assert http.attempts(URL) == 1
    assert list((tmp_path / "cache").glob(".download-*")) == []


class _VanishingStagingCache(ToolCache):
    """Cache whose staging directory disappears before the download is written."""

    def staging_file(self) -> Path:
        return self.root / "gone" / ".download-test"


def test_write_failure_is_a_typed_acquisition_failure(tmp_path: Path, http: FakeSession) -> None:
    http.serve(URL, PAYLOAD)
    cfg = AcquisitionConfig(cache_dir=tmp_path / "cache", backoff_base=0.0)
    service = ToolAcquisitionService(_VanishingStagingCache(cfg.cache_dir), Downloader(http, cfg, sleep=lambda _: None))

    with pytest.raises(AcquisitionFailure, match="unable to write"):
        service.acquire(_reference())
    report = service.acquire_all([AcquisitionRequest(reference=_reference(), platform=Platform.WINDOWS)], concurrency=1)
    assert set(report.failures) == {"hayabusa"}
