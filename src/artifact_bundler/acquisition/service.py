# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Fetch, verify, and cache resolved tool binaries."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

from ..cancellation import CancellationToken
from ..config.models import AcquisitionConfig
from ..errors import AcquisitionFailure, HashMismatch, UnsupportedPlatform
from ..models import AcquiredTool, ToolReference
from ..platforms import Platform, url_filename
from .cache import ToolCache, cache_key
from .downloader import Downloader, HttpSession, build_session

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AcquisitionRequest:
    """One tool to acquire for one platform."""

    reference: ToolReference
    platform: Platform


@dataclass(slots=True)
class AcquisitionReport:
    """Outcome of acquiring a batch of tools."""

    acquired: list[AcquiredTool] = field(default_factory=list)
    failures: dict[str, AcquisitionFailure] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def failure_messages(self) -> dict[str, str]:
        """Return failure descriptions keyed by tool name."""

        return {name: failure.detail for name, failure in sorted(self.failures.items())}

    def tool(self, tool_name: str, platform: Platform) -> AcquiredTool | None:
        """Return the acquired binary for ``tool_name`` on ``platform``, if any."""

        for acquired in self.acquired:
            if acquired.tool_name == tool_name and acquired.platform is platform:
                return acquired
        return None


def resolve_target_platform(reference: ToolReference, requested: Platform | None) -> Platform:
    """Return the platform a binary for ``reference`` is stored under.

    Raises:
        UnsupportedPlatform: If the reference targets a different platform
            than ``requested``.
    """

    if requested is None or requested is Platform.ANY:
        return reference.target_platform
    if not requested.accepts(reference.target_platform):
        raise UnsupportedPlatform(
            reference.tool_name,
            f"declared for {reference.target_platform.value}, requested {requested.value}",
        )
    return reference.target_platform


class ToolAcquisitionService:
    """Acquire verified tool binaries through the content-addressed cache."""

    def __init__(self, cache: ToolCache, downloader: Downloader, *, offline: bool = False) -> None:
        self._cache = cache
        self._downloader = downloader
        self._offline = offline

    @classmethod
    def from_config(
        cls,
        config: AcquisitionConfig,
        *,
        cancel: CancellationToken | None = None,
        session: HttpSession | None = None,
    ) -> ToolAcquisitionService:
        """Build a service from the ``[acquisition]`` configuration section."""

        downloader = Downloader(session if session is not None else build_session(config), config, cancel=cancel)
        return cls(ToolCache(config.cache_dir), downloader, offline=config.offline)

    def acquire(self, reference: ToolReference, platform: Platform | None = None) -> AcquiredTool:
        """Return a verified local copy of ``reference``.

        Args:
            reference: Resolved tool reference.
            platform: Requested target platform; defaults to the reference's own.

        Returns:
            AcquiredTool: Binary whose hash matches ``expected_hash`` when declared.

        Raises:
            UnsupportedPlatform: If the reference cannot serve ``platform``.
            NetworkError: If the download fails.
            HashMismatch: If the downloaded content does not match the declared hash.
            AcquisitionFailure: If the tool has no URL, or is missing from the
                cache in offline mode.
        """

        target = resolve_target_platform(reference, platform)
        key = cache_key(reference, target)
        filename = url_filename(reference.url) if reference.url else ""
        cached = self._cache.get(key)
        if cached is not None:
            entry, blob = cached
            if reference.expected_hash is None or entry.sha256 == reference.expected_hash:
                LOGGER.debug("cache hit for %s (%s)", reference.tool_name, entry.sha256)
                return self._acquired(reference, target, blob, entry.sha256, entry.size_bytes, entry.filename, True)
        if self._offline:
            raise AcquisitionFailure(reference.tool_name, "offline cache miss")
        if reference.url is None:
            raise AcquisitionFailure(reference.tool_name, "no download URL")

        try:
            staged = self._cache.staging_file()
        except OSError as exc:
            raise AcquisitionFailure(reference.tool_name, f"unable to stage download: {exc}") from exc
        try:
            result = self._downloader.fetch(reference.tool_name, reference.url, staged)
            if reference.expected_hash is not None and result.sha256 != reference.expected_hash:
                raise HashMismatch(reference.tool_name, expected=reference.expected_hash, actual=result.sha256)
            if reference.expected_hash is None:
                LOGGER.info("no declared hash for %s; recorded sha256 %s", reference.tool_name, result.sha256)
            blob = self._cache.put(key, staged, digest=result.sha256, filename=filename, url=reference.url)
        except OSError as exc:
            raise AcquisitionFailure(reference.tool_name, f"unable to store download in cache: {exc}") from exc
        finally:
            # put() moves the staged file into the blob store on success
            staged.unlink(missing_ok=True)
        return self._acquired(reference, target, blob, result.sha256, result.size_bytes, filename, False)

    def acquire_all(
        self,
        batch: Sequence[AcquisitionRequest],
        *,
        concurrency: int,
        cancel: CancellationToken | None = None,
    ) -> AcquisitionReport:
        """Acquire every request with at most ``concurrency`` parallel downloads.

        Failures are collected per tool rather than raised. Requests not yet
        started when ``cancel`` fires are listed in :attr:`AcquisitionReport.skipped`.
        """

        report = AcquisitionReport()
        if not batch:
            return report
        runner = partial(self._acquire_guarded, cancel=cancel)
        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
            future_map = {executor.submit(runner, request): request for request in batch}
            for future in as_completed(future_map):
                request = future_map[future]
                name = request.reference.tool_name
                try:
                    acquired = future.result()
                except AcquisitionFailure as exc:
                    LOGGER.warning("acquisition failed: %s", exc)
                    report.failures[name] = exc
                    continue
                if acquired is None:
                    report.skipped.append(name)
                else:
                    report.acquired.append(acquired)
        report.acquired.sort(key=lambda tool: (tool.tool_name, tool.platform.value))
        report.skipped.sort()
        return report

    def _acquire_guarded(self, request: AcquisitionRequest, *, cancel: CancellationToken | None) -> AcquiredTool | None:
        if cancel is not None and cancel.cancelled:
            return None
        return self.acquire(request.reference, request.platform)

    @staticmethod
    def _acquired(
        reference: ToolReference,
        platform: Platform,
        blob: Path,
        digest: str,
        size: int,
        filename: str,
        from_cache: bool,
    ) -> AcquiredTool:
        return AcquiredTool(
            tool_name=reference.tool_name,
            filename=filename or reference.tool_name,
            local_path=blob,
            actual_hash=digest,
            size_bytes=size,
            platform=platform,
            acquired_at=datetime.now(UTC),
            url=reference.url,
            from_cache=from_cache,
        )


__all__ = ["AcquisitionReport", "AcquisitionRequest", "ToolAcquisitionService", "resolve_target_platform"]
