# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tool binary acquisition: download, verify, and cache."""

from __future__ import annotations

from .cache import CacheEntry, ToolCache, cache_key, sha256_file
from .downloader import Downloader, DownloadResult, build_session
from .service import AcquisitionReport, AcquisitionRequest, ToolAcquisitionService

__all__ = [
    "AcquisitionReport",
    "AcquisitionRequest",
    "CacheEntry",
    "DownloadResult",
    "Downloader",
    "ToolAcquisitionService",
    "ToolCache",
    "build_session",
    "cache_key",
    "sha256_file",
]
