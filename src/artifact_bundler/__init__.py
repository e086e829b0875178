# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve tool dependencies declared by forensic artifacts and bundle them for offline use."""

from __future__ import annotations

from typing import Final

__version__: Final[str] = "0.4.0"

__all__ = ["__version__"]
