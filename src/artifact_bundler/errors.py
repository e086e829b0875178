# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Exception hierarchy and recoverable issue kinds."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class IssueKind(str, Enum):
    """Enumerate recoverable problems captured as data rather than raised."""

    PARSE_DEGRADED = "parse-degraded"
    EXTRACTION_AMBIGUOUS = "extraction-ambiguous"
    DEPENDENCY_CONFLICT = "dependency-conflict"
    DEPENDENCY_UNRESOLVED = "dependency-unresolved"
    ACQUISITION_FAILURE = "acquisition-failure"
    PACKAGE_INCOMPLETE = "package-incomplete"
    ARTIFACT_MISSING = "artifact-missing"
    CANCELLED = "cancelled"


class BundlerError(RuntimeError):
    """Base class for errors raised by artifact-bundler."""


class ConfigError(BundlerError):
    """Raised when configuration input is invalid."""


class CorpusNotFoundError(BundlerError):
    """Raised when the artifact corpus directory does not exist."""


class RegistryError(BundlerError):
    """Raised when a tool registry document fails validation."""


class AcquisitionFailure(BundlerError):
    """Raised when a tool binary cannot be fetched or verified."""

    def __init__(self, tool_name: str, message: str) -> None:
        """Initialise the failure with the offending tool.

        Args:
            tool_name: Normalised name of the tool being acquired.
            message: Human-readable failure description.
        """

        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.detail = message


class NetworkError(AcquisitionFailure):
    """Raised when a download fails at the transport or HTTP level."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        *,
        status_code: int | None = None,
        permanent: bool = False,
        attempts: int = 1,
    ) -> None:
        """Initialise the error with HTTP status and retry metadata.

        Args:
            tool_name: Normalised name of the tool being acquired.
            message: Human-readable failure description.
            status_code: HTTP status code when the server responded.
            permanent: ``True`` when the failure was not retried.
            attempts: Number of attempts made before giving up.
        """

        super().__init__(tool_name, message)
        self.status_code = status_code
        self.permanent = permanent
        self.attempts = attempts


class HashMismatch(AcquisitionFailure):
    """Raised when a downloaded binary does not match its declared hash."""

    def __init__(self, tool_name: str, *, expected: str, actual: str) -> None:
        super().__init__(tool_name, f"hash mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class UnsupportedPlatform(AcquisitionFailure):
    """Raised when a tool cannot be provided for the requested platform."""


@dataclass(frozen=True, slots=True)
class BlockingDependency:
    """Describe one artifact/tool pair that prevents a package from being built."""

    artifact: str
    tool: str
    reason: str

    def describe(self) -> str:
        """Return a one-line description naming the artifact and tool."""

        return f"{self.artifact} -> {self.tool}: {self.reason}"


class PackageIncomplete(BundlerError):
    """Raised when a selected artifact has a dependency that cannot be satisfied."""

    def __init__(self, blocking: Sequence[BlockingDependency]) -> None:
        """Initialise the error with every blocking artifact/tool pair.

        Args:
            blocking: Pairs preventing the package from being assembled.
        """

        self.blocking = tuple(blocking)
        lines = "; ".join(entry.describe() for entry in self.blocking)
        super().__init__(f"package incomplete ({len(self.blocking)} blocking): {lines}")


class PackageOutputError(BundlerError):
    """Raised when the package output location cannot be written."""


__all__ = [
    "AcquisitionFailure",
    "BlockingDependency",
    "BundlerError",
    "ConfigError",
    "CorpusNotFoundError",
    "HashMismatch",
    "IssueKind",
    "NetworkError",
    "PackageIncomplete",
    "PackageOutputError",
    "RegistryError",
    "UnsupportedPlatform",
]
