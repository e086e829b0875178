# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Configuration models and tiered loading."""

from __future__ import annotations

from .loader import CONFIG_FILENAME, ConfigLoader, ConfigLoadResult, load_config
from .models import (
    AcquisitionConfig,
    Config,
    OutputConfig,
    PackagingConfig,
    RegistryConfig,
    ScanConfig,
)

__all__ = [
    "AcquisitionConfig",
    "CONFIG_FILENAME",
    "Config",
    "ConfigLoadResult",
    "ConfigLoader",
    "OutputConfig",
    "PackagingConfig",
    "RegistryConfig",
    "ScanConfig",
    "load_config",
]
