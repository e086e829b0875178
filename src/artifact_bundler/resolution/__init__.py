# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Dependency resolution: grouping, conflict detection, and registry lookups."""

from __future__ import annotations

from .registry import RegistryEntry, StaticToolRegistry, ToolRegistry, build_registry
from .resolver import DependencyResolver, mark_acquisition_failures

__all__ = [
    "DependencyResolver",
    "RegistryEntry",
    "StaticToolRegistry",
    "ToolRegistry",
    "build_registry",
    "mark_acquisition_failures",
]
