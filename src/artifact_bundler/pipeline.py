# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Run the parse, extract, resolve, acquire, and package stages.

Every stage records its output on a :class:`RunState`; :meth:`Pipeline.report`
builds a :class:`~artifact_bundler.reporting.report.RunReport` from whatever
state exists, so a report is produced after partial failure or cancellation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .acquisition.downloader import HttpSession
from .acquisition.service import AcquisitionReport, AcquisitionRequest, ToolAcquisitionService
from .cancellation import CancellationToken
from .config.models import Config
from .corpus.identity import CorpusIdentity, identify_corpus
from .corpus.parser import ArtifactParser
from .corpus.scanner import CorpusScanner
from .errors import BlockingDependency, BundlerError, PackageIncomplete
from .extraction.extractor import ExtractionResult, ReferenceExtractor
from .models import ArtifactDefinition, DependencyManifest
from .packaging.builder import BuiltPackage, PackageBuilder, PackagePlan
from .packaging.selection import select_artifacts
from .platforms import Platform
from .reporting.report import (
    ArtifactStats,
    PackageSummary,
    RunReport,
    collect_issues,
    tool_stats,
)
from .resolution.registry import ToolRegistry, build_registry
from .resolution.resolver import DependencyResolver, mark_acquisition_failures

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunState:
    """Mutable record of everything a run has produced so far."""

    command: str
    corpus_root: Path
    cancel: CancellationToken
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    files: tuple[Path, ...] = ()
    processed: int = 0
    artifacts: dict[str, ArtifactDefinition] = field(default_factory=dict)
    degraded: list[ArtifactDefinition] = field(default_factory=list)
    duplicates: list[ArtifactDefinition] = field(default_factory=list)
    traces: list[str] = field(default_factory=list)
    identity: CorpusIdentity | None = None
    manifest: DependencyManifest | None = None
    acquisition: AcquisitionReport | None = None
    plan: PackagePlan | None = None
    package: BuiltPackage | None = None
    blocking: list[BlockingDependency] = field(default_factory=list)
    missing_calls: list[tuple[str, str]] = field(default_factory=list)
    unmatched_selection: list[str] = field(default_factory=list)
    fatal_error: str | None = None

    @property
    def parsed_cleanly(self) -> int:
        """Return the number of processed files that parsed without degradation."""

        return self.processed - len(self.degraded)


class Pipeline:
    """Coordinate the stages for one command invocation."""

    def __init__(
        self,
        config: Config,
        *,
        cancel: CancellationToken | None = None,
        registry: ToolRegistry | None = None,
        session: HttpSession | None = None,
        parser: ArtifactParser | None = None,
        extractor: ReferenceExtractor | None = None,
    ) -> None:
        self.config = config
        self.cancel = cancel if cancel is not None else CancellationToken()
        self._registry = registry
        self._session = session
        self._parser = parser or ArtifactParser()
        self._extractor = extractor or ReferenceExtractor()

    # Scan -----------------------------------------------------------------

    def scan(self, corpus_root: Path, *, command: str = "scan") -> RunState:
        """Parse and extract every definition under ``corpus_root`` and resolve dependencies.

        Args:
            corpus_root: Directory holding artifact definition files.
            command: Name of the invoking command, recorded in the report.

        Returns:
            RunState: State holding parsed artifacts and the dependency manifest.

        Raises:
            CorpusNotFoundError: If ``corpus_root`` is not a directory.
            RegistryError: If a configured registry document is invalid.
        """

        state = RunState(command=command, corpus_root=corpus_root, cancel=self.cancel)
        scanner = CorpusScanner(corpus_root, include=self.config.scan.include, exclude=self.config.scan.exclude)
        state.files = scanner.definition_files()
        registry = self._registry if self._registry is not None else build_registry(self.config.registry)
        LOGGER.debug("discovered %d definition files under %s", len(state.files), corpus_root)

        resolver = DependencyResolver(registry)
        kept: list[ExtractionResult] = []
        # Results arrive in completion order but duplicates must be decided in path order;
        # only those that finish ahead of a slower earlier file wait here.
        early: dict[int, tuple[ArtifactDefinition, ExtractionResult]] = {}
        for index, definition, extraction in self._parse_parallel(state.files):
            early[index] = (definition, extraction)
            while state.processed in early:
                self._merge(state, *early.pop(state.processed), kept)
                state.processed += 1
        resolver.add_all(kept)
        state.manifest = resolver.resolve()
        state.identity = identify_corpus(corpus_root, state.files)
        return state

    def _parse_parallel(self, paths: Sequence[Path]) -> Iterator[tuple[int, ArtifactDefinition, ExtractionResult]]:
        """Yield parse/extract results with a bounded number of tasks in flight."""

        workers = self.config.scan.workers
        pending: set[Future[tuple[int, ArtifactDefinition, ExtractionResult]]] = set()
        indexed = iter(enumerate(paths))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            while True:
                while len(pending) < workers * 2 and not self.cancel.cancelled:
                    item = next(indexed, None)
                    if item is None:
                        break
                    pending.add(executor.submit(self._process_one, *item))
                if not pending:
                    break
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    yield future.result()

    @staticmethod
    def _merge(
        state: RunState, definition: ArtifactDefinition, extraction: ExtractionResult, kept: list[ExtractionResult]
    ) -> None:
        first = state.artifacts.get(definition.name)
        if first is not None:
            duplicate = definition.model_copy(
                update={
                    "parse_error": True,
                    "parse_messages": (
                        *definition.parse_messages,
                        f"duplicate name (first defined in {first.source_path})",
                    ),
                }
            )
            state.duplicates.append(duplicate)
            state.degraded.append(duplicate)
            return
        state.artifacts[definition.name] = definition
        if definition.parse_error:
            state.degraded.append(definition)
        state.traces.extend(extraction.trace)
        kept.append(extraction)

    def _process_one(self, index: int, path: Path) -> tuple[int, ArtifactDefinition, ExtractionResult]:
        definition = self._parser.parse_file(path)
        return index, definition, self._extractor.extract(definition)

    # Acquisition ------------------------------------------------------------

    def acquire(self, state: RunState, batch: Sequence[AcquisitionRequest] | None = None) -> AcquisitionReport:
        """Acquire ``batch`` (default: every resolved tool) and record failures.

        Tools that fail are moved to the manifest's ``unresolved`` list with
        reason ``acquisition-failed``.
        """

        if state.manifest is None:
            raise BundlerError("acquire called before scan")
        if batch is None:
            batch = [
                AcquisitionRequest(reference=reference, platform=reference.target_platform)
                for reference in state.manifest.resolved
            ]
        service = ToolAcquisitionService.from_config(self.config.acquisition, cancel=self.cancel, session=self._session)
        report = service.acquire_all(batch, concurrency=self.config.acquisition.concurrency, cancel=self.cancel)
        state.acquisition = report
        state.manifest = mark_acquisition_failures(state.manifest, report.failure_messages)
        return report

    # Packaging --------------------------------------------------------------

    def package(
        self,
        state: RunState,
        selection: str | Sequence[str],
        output: Path,
        *,
        platforms: Sequence[Platform] | None = None,
        archive: str | None = None,
    ) -> BuiltPackage | None:
        """Build a package for ``selection`` into ``output``.

        Returns:
            BuiltPackage | None: The package, or ``None`` when cancelled first.

        Raises:
            BundlerError: If the selection matches no artifact.
            PackageIncomplete: If a selected artifact has an unsatisfied dependency.
            PackageOutputError: If ``output`` cannot be used.
        """

        if state.manifest is None or state.identity is None:
            raise BundlerError("package called before scan")
        if self.cancel.cancelled:
            return None
        chosen = select_artifacts(selection, state.artifacts.values(), scenarios=self.config.scenarios)
        for token in chosen.unmatched:
            state.unmatched_selection.append(token)
        if not chosen.names:
            raise BundlerError(f"selection matched no artifacts: {selection}")

        builder = PackageBuilder(
            state.artifacts,
            state.manifest,
            corpus=state.identity,
            allow_ambiguous=self.config.packaging.allow_ambiguous,
            copy_workers=self.config.packaging.copy_workers,
        )
        plan = builder.plan(chosen.names, platforms=platforms or self.config.packaging.platforms)
        state.plan = plan
        state.missing_calls.extend(plan.missing_calls)
        if plan.blocking:
            state.blocking = list(plan.blocking)
            raise PackageIncomplete(plan.blocking)
        if self.cancel.cancelled:
            return None

        acquisition = self.acquire(state, plan.acquisition_requests)
        if self.cancel.cancelled:
            return None
        try:
            built = builder.build(plan, acquisition, output, archive=archive or self.config.packaging.archive)
        except PackageIncomplete as exc:
            state.blocking = list(exc.blocking)
            raise
        state.package = built
        return built

    # Reporting --------------------------------------------------------------

    def report(self, state: RunState) -> RunReport:
        """Return the report for ``state``; never assumes a clean run."""

        cancelled = self.cancel.cancelled
        package = None
        if state.package is not None:
            package = PackageSummary(
                output_path=str(state.package.output_path),
                manifest_path=str(state.package.manifest_path),
                archive_path=str(state.package.archive_path) if state.package.archive_path else None,
                artifacts=len(state.package.manifest.artifacts),
                tools=len(state.package.manifest.tools),
            )
        return RunReport(
            command=state.command,
            started_at=state.started_at,
            finished_at=datetime.now(UTC),
            corpus=state.identity,
            artifacts=ArtifactStats(
                found=len(state.files),
                parsed_cleanly=state.parsed_cleanly,
                degraded=len(state.degraded),
                duplicates=len(state.duplicates),
            ),
            tools=tool_stats(state.manifest, state.acquisition),
            issues=collect_issues(
                degraded=state.degraded,
                manifest=state.manifest,
                acquisition=state.acquisition,
                blocking=state.blocking,
                missing_calls=sorted(set(state.missing_calls)),
                unmatched_selection=state.unmatched_selection,
                cancelled_reason=self.cancel.reason if cancelled else None,
            ),
            package=package,
            cancelled=cancelled,
            fatal_error=state.fatal_error,
        )


__all__ = ["Pipeline", "RunState"]
