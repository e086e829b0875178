# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for artifact-bundler."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..platforms import Platform


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent parsing.

    Returns:
        int: Rounded-down count representing roughly 75% of available CPU
        cores while guaranteeing a minimum of one worker.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


def default_cache_dir() -> Path:
    """Return the per-user tool cache directory."""

    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "artifact-bundler"


class ScanConfig(BaseModel):
    """Corpus discovery and parsing behaviour."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    workers: int = Field(default_factory=default_parallel_jobs, ge=1)
    include: list[str] = Field(default_factory=lambda: ["*.yaml", "*.yml"])
    exclude: list[str] = Field(default_factory=list)


class AcquisitionConfig(BaseModel):
    """Download, retry, and cache behaviour for tool binaries."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    concurrency: int = Field(default=4, ge=1, le=32)
    retries: int = Field(default=3, ge=1, le=10)
    backoff_base: float = Field(default=0.5, ge=0.0)
    backoff_cap: float = Field(default=8.0, ge=0.0)
    connect_timeout: float = Field(default=10.0, gt=0.0)
    read_timeout: float = Field(default=60.0, gt=0.0)
    cache_dir: Path = Field(default_factory=default_cache_dir)
    user_agent: str = "artifact-bundler"
    offline: bool = False


class RegistryConfig(BaseModel):
    """Known-tool registry used for name-only references."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    use_builtin: bool = True
    path: Path | None = None


class PackagingConfig(BaseModel):
    """Offline package assembly behaviour."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    allow_ambiguous: bool = False
    archive: Literal["zip", "gztar"] | None = None
    copy_workers: int = Field(default=4, ge=1)
    platforms: list[Platform] = Field(default_factory=lambda: [Platform.WINDOWS, Platform.LINUX, Platform.DARWIN])


class OutputConfig(BaseModel):
    """Console rendering preferences."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    verbose: bool = False
    emoji: bool = True
    color: bool = True


class Config(BaseModel):
    """Top-level artifact-bundler configuration."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    scan: ScanConfig = Field(default_factory=ScanConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    packaging: PackagingConfig = Field(default_factory=PackagingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    scenarios: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("scenarios")
    @classmethod
    def _lowercase_scenarios(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return {key.lower(): list(patterns) for key, patterns in value.items()}

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation of the configuration."""

        return self.model_dump(mode="json")


__all__ = [
    "AcquisitionConfig",
    "Config",
    "OutputConfig",
    "PackagingConfig",
    "RegistryConfig",
    "ScanConfig",
    "default_cache_dir",
    "default_parallel_jobs",
]
