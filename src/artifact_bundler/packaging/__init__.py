# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Offline package assembly."""

from __future__ import annotations

from .builder import BuiltPackage, PackageBuilder, PackagePlan
from .manifest import MANIFEST_FILENAME, PackageManifest, VerificationResult, load_manifest, verify_package
from .selection import Selection, select_artifacts

__all__ = [
    "BuiltPackage",
    "MANIFEST_FILENAME",
    "PackageBuilder",
    "PackageManifest",
    "PackagePlan",
    "Selection",
    "VerificationResult",
    "load_manifest",
    "select_artifacts",
    "verify_package",
]
