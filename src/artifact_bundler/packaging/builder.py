# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Assemble offline packages from selected artifacts and acquired tools.

The builder refuses to produce a package with a missing dependency: every
blocking artifact/tool pair is collected first and raised together in a
single :class:`~artifact_bundler.errors.PackageIncomplete`.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections import deque
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from .. import __version__
from ..acquisition.cache import sha256_file
from ..acquisition.service import AcquisitionReport, AcquisitionRequest
from ..corpus.identity import CorpusIdentity
from ..errors import BlockingDependency, PackageIncomplete, PackageOutputError
from ..models import ArtifactDefinition, DependencyManifest, ToolReference
from ..platforms import Platform
from .manifest import ManifestArtifact, ManifestTool, PackageManifest, write_manifest

LOGGER = logging.getLogger(__name__)

ARTIFACTS_DIR = "artifacts"
TOOLS_DIR = "tools"


@dataclass(frozen=True, slots=True)
class PackagePlan:
    """Transitive closure of a selection and what stands in its way."""

    selected: tuple[str, ...]
    artifacts: tuple[str, ...]
    tools: tuple[ToolReference, ...]
    blocking: tuple[BlockingDependency, ...]
    missing_calls: tuple[tuple[str, str], ...] = ()
    excluded_tools: tuple[str, ...] = ()

    @property
    def acquisition_requests(self) -> list[AcquisitionRequest]:
        """Return one acquisition request per tool in the plan."""

        return [AcquisitionRequest(reference=tool, platform=tool.target_platform) for tool in self.tools]


@dataclass(slots=True)
class BuiltPackage:
    """Result of a completed package build."""

    output_path: Path
    manifest: PackageManifest
    manifest_path: Path
    archive_path: Path | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _CopyJob:
    source: Path
    relative: str


class PackageBuilder:
    """Compute dependency closures and write write-once package directories."""

    def __init__(
        self,
        artifacts: Mapping[str, ArtifactDefinition],
        manifest: DependencyManifest,
        *,
        corpus: CorpusIdentity,
        allow_ambiguous: bool = False,
        copy_workers: int = 4,
    ) -> None:
        self._artifacts = dict(artifacts)
        self._manifest = manifest
        self._corpus = corpus
        self._allow_ambiguous = allow_ambiguous
        self._copy_workers = max(1, copy_workers)

    def plan(self, selected: Sequence[str], *, platforms: Sequence[Platform] | None = None) -> PackagePlan:
        """Return the closure of ``selected`` and every blocking dependency.

        Args:
            selected: Artifact names chosen by the operator.
            platforms: Restrict platform-specific tools to these platforms;
                ``None`` keeps every platform.

        Returns:
            PackagePlan: Closure artifacts, required tools, and blockers.
        """

        closure, missing = self._closure(selected)
        wanted = set(platforms) if platforms else None
        tools: dict[str, ToolReference] = {}
        excluded: set[str] = set()
        blocking: list[BlockingDependency] = []
        for name in closure:
            artifact = self._artifacts[name]
            if artifact.parse_error and not artifact.queries:
                blocking.append(BlockingDependency(name, "<query source>", "degraded definition has no query source"))
            for reference in self._manifest.referenced_by(name):
                target = reference.target_platform
                if wanted is not None and target is not Platform.ANY and target not in wanted:
                    excluded.add(reference.tool_name)
                    continue
                tools[reference.tool_name] = reference
            for conflict in self._manifest.conflicts_for(name):
                blocking.append(
                    BlockingDependency(
                        name,
                        conflict.tool_name,
                        f"conflicting declarations ({len(conflict.candidates)} candidates)",
                    )
                )
            for entry in self._manifest.unresolved_for(name):
                blocking.append(BlockingDependency(name, entry.tool_name, f"unresolved: {entry.reason}"))
            for ambiguous in self._manifest.ambiguous_for(name):
                if ambiguous.reason == "untokenizable":
                    blocking.append(BlockingDependency(name, ambiguous.subject, ambiguous.describe()))
                elif not self._allow_ambiguous:
                    blocking.append(
                        BlockingDependency(name, ambiguous.subject, f"ambiguous argument at line {ambiguous.line}")
                    )
        return PackagePlan(
            selected=tuple(sorted(selected)),
            artifacts=tuple(sorted(closure)),
            tools=tuple(tools[key] for key in sorted(tools)),
            blocking=tuple(sorted(blocking, key=lambda item: (item.artifact, item.tool))),
            missing_calls=tuple(missing),
            excluded_tools=tuple(sorted(excluded)),
        )

    def build(
        self,
        plan: PackagePlan,
        acquisition: AcquisitionReport,
        output: Path,
        *,
        archive: str | None = None,
    ) -> BuiltPackage:
        """Write the package described by ``plan`` into ``output``.

        Args:
            plan: Result of :meth:`plan`.
            acquisition: Acquired binaries for ``plan.tools``.
            output: Package directory; must be absent or empty.
            archive: Optional ``shutil`` archive format (``zip`` or ``gztar``).

        Returns:
            BuiltPackage: Manifest and output locations.

        Raises:
            PackageIncomplete: If any selected artifact has an unsatisfied dependency.
            PackageOutputError: If ``output`` is not writable or not empty.
        """

        blocking = list(plan.blocking)
        acquired_tools = []
        for reference in plan.tools:
            acquired = acquisition.tool(reference.tool_name, reference.target_platform)
            if acquired is not None:
                acquired_tools.append((reference, acquired))
                continue
            failure = acquisition.failures.get(reference.tool_name)
            reason = f"acquisition failed: {failure.detail}" if failure is not None else "not acquired"
            for artifact in sorted(reference.declared_by & set(plan.artifacts)):
                blocking.append(BlockingDependency(artifact, reference.tool_name, reason))
        if blocking:
            raise PackageIncomplete(sorted(blocking, key=lambda item: (item.artifact, item.tool)))

        staging = _prepare_output(output)
        jobs: list[_CopyJob] = []
        artifact_entries: list[tuple[ArtifactDefinition, str]] = []
        for name in plan.artifacts:
            artifact = self._artifacts[name]
            relative = self._artifact_destination(artifact)
            jobs.append(_CopyJob(artifact.source_path, relative))
            artifact_entries.append((artifact, relative))

        tool_entries: list[ManifestTool] = []
        used: set[str] = set()
        for reference, acquired in acquired_tools:
            relative = _tool_destination(acquired.platform, acquired.filename, reference.tool_name, used)
            jobs.append(_CopyJob(acquired.local_path, relative))
            tool_entries.append(
                ManifestTool(
                    name=reference.tool_name,
                    platform=acquired.platform,
                    path=relative,
                    url=acquired.url,
                    sha256=acquired.actual_hash,
                    expected_hash=reference.expected_hash,
                    size_bytes=acquired.size_bytes,
                    declared_by=tuple(sorted(reference.declared_by)),
                    acquired_at=acquired.acquired_at,
                )
            )

        # Everything is written under ``staging``; ``output`` only appears once the manifest is complete.
        try:
            digests = self._copy_all(jobs, staging)
            for entry in tool_entries:
                if digests[entry.path] != entry.sha256:
                    raise PackageOutputError(f"{entry.path}: copied content does not match {entry.sha256}")

            package_manifest = PackageManifest(
                created_at=datetime.now(UTC),
                generator=f"artifact-bundler {__version__}",
                corpus=self._corpus,
                selection=plan.selected,
                artifacts=tuple(
                    ManifestArtifact(
                        name=artifact.name,
                        path=relative,
                        sha256=digests[relative],
                        tools=tuple(ref.tool_name for ref in self._manifest.referenced_by(artifact.name)),
                    )
                    for artifact, relative in artifact_entries
                ),
                tools=tuple(tool_entries),
            )
            manifest_name = write_manifest(staging, package_manifest).name
            _publish(staging, output)
        finally:
            if staging.exists():
                LOGGER.debug("removing partial package %s", staging)
                shutil.rmtree(staging, ignore_errors=True)
        manifest_path = output / manifest_name
        archive_path = _make_archive(output, archive) if archive else None
        warnings = [f"{caller} calls missing artifact {called}" for caller, called in plan.missing_calls]
        warnings.extend(f"tool {name} excluded by platform filter" for name in plan.excluded_tools)
        LOGGER.info("package written to %s (%d artifacts, %d tools)", output, len(artifact_entries), len(tool_entries))
        return BuiltPackage(
            output_path=output,
            manifest=package_manifest,
            manifest_path=manifest_path,
            archive_path=archive_path,
            warnings=warnings,
        )

    def _closure(self, selected: Sequence[str]) -> tuple[set[str], list[tuple[str, str]]]:
        closure: set[str] = set()
        missing: list[tuple[str, str]] = []
        queue = deque(name for name in selected if name in self._artifacts)
        lookup = {name.lower(): name for name in self._artifacts}
        while queue:
            name = queue.popleft()
            if name in closure:
                continue
            closure.add(name)
            for called in self._manifest.calls_for(name):
                target = lookup.get(called.lower())
                if target is None:
                    missing.append((name, called))
                elif target not in closure:
                    queue.append(target)
        return closure, sorted(set(missing))

    def _artifact_destination(self, artifact: ArtifactDefinition) -> str:
        root = Path(self._corpus.root)
        try:
            relative = artifact.source_path.resolve().relative_to(root.resolve())
        except ValueError:
            relative = Path(artifact.source_path.name)
        return str(PurePosixPath(ARTIFACTS_DIR, *relative.parts))

    def _copy_all(self, jobs: Sequence[_CopyJob], output: Path) -> dict[str, str]:
        digests: dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=self._copy_workers) as executor:
            future_map = {executor.submit(_copy_file, job, output): job for job in jobs}
            for future in as_completed(future_map):
                job = future_map[future]
                digests[job.relative] = future.result()
        return digests


def _prepare_output(output: Path) -> Path:
    """Check ``output`` is usable and return a fresh staging directory beside it."""

    if output.exists():
        if not output.is_dir():
            raise PackageOutputError(f"output path exists and is not a directory: {output}")
        if any(output.iterdir()):
            raise PackageOutputError(f"output directory is not empty: {output}")
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f".{output.name}.partial-", dir=output.parent))
    except OSError as exc:
        raise PackageOutputError(f"unable to create {output}: {exc}") from exc


def _publish(staging: Path, output: Path) -> None:
    try:
        if output.exists():
            # still empty; _prepare_output refused anything else
            output.rmdir()
        staging.rename(output)
    except OSError as exc:
        raise PackageOutputError(f"unable to move {staging} into place at {output}: {exc}") from exc


def _tool_destination(platform: Platform, filename: str, tool_name: str, used: set[str]) -> str:
    relative = str(PurePosixPath(TOOLS_DIR, platform.value, filename))
    if relative in used:
        relative = str(PurePosixPath(TOOLS_DIR, platform.value, f"{tool_name}-{filename}"))
    used.add(relative)
    return relative


def _copy_file(job: _CopyJob, output: Path) -> str:
    target = output / job.relative
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(job.source, target)
    except OSError as exc:
        raise PackageOutputError(f"unable to copy {job.source} to {target}: {exc}") from exc
    return sha256_file(target)


def _make_archive(output: Path, archive: str) -> Path:
    try:
        created = shutil.make_archive(str(output), archive, root_dir=output)
    except (OSError, ValueError) as exc:
        raise PackageOutputError(f"unable to create {archive} archive of {output}: {exc}") from exc
    return Path(created)


__all__ = ["BuiltPackage", "PackageBuilder", "PackagePlan"]
