# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the ``artifact-bundler package`` command."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer

from ...cancellation import cancel_on_interrupt
from ...errors import BundlerError, PackageIncomplete
from ...pipeline import Pipeline
from ...platforms import Platform
from ..options import (
    CONFIG_OPTION,
    NO_COLOR_OPTION,
    NO_EMOJI_OPTION,
    OFFLINE_OPTION,
    PATH_OPTION,
    REPORT_OPTION,
    VERBOSE_OPTION,
    WORKERS_OPTION,
)
from ..shared import CLIError, build_context, exit_with, handle_cli_errors, present


class ArchiveChoice(str, Enum):
    """Archive formats accepted by ``--archive``."""

    ZIP = "zip"
    GZTAR = "gztar"


def package_command(
    path: Path = PATH_OPTION,
    select: list[str] = typer.Option(
        ...,
        "--select",
        "-s",
        help="Artifact names, globs, tag:<tag> or scenario:<name>; repeatable or comma separated.",
    ),
    out: Path = typer.Option(
        ...,
        "--out",
        "-o",
        help="Package output directory; must be absent or empty.",
        file_okay=False,
    ),
    platform: list[Platform] | None = typer.Option(
        None,
        "--platform",
        case_sensitive=False,
        help="Restrict platform-specific tools to these platforms (repeatable).",
    ),
    archive: ArchiveChoice | None = typer.Option(
        None,
        "--archive",
        case_sensitive=False,
        help="Also produce an archive of the package directory.",
    ),
    allow_ambiguous: bool = typer.Option(
        False,
        "--allow-ambiguous",
        help="Package artifacts whose tool arguments could not be resolved statically.",
    ),
    offline: bool = OFFLINE_OPTION,
    config: Path | None = CONFIG_OPTION,
    workers: int | None = WORKERS_OPTION,
    report: Path | None = REPORT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    no_emoji: bool = NO_EMOJI_OPTION,
) -> None:
    """Build a self-contained offline package for the selected artifacts."""

    context = build_context(
        path,
        config_path=config,
        workers=workers,
        verbose=verbose,
        no_color=no_color,
        no_emoji=no_emoji,
    )
    if offline:
        context.config.acquisition.offline = True
    if allow_ambiguous:
        context.config.packaging.allow_ambiguous = True
    pipeline = Pipeline(context.config)
    with cancel_on_interrupt(pipeline.cancel):
        try:
            state = pipeline.scan(path, command="package")
        except BundlerError as exc:
            raise CLIError(str(exc)) from exc
        try:
            pipeline.package(
                state,
                select,
                out,
                platforms=platform or None,
                archive=archive.value if archive is not None else None,
            )
        except PackageIncomplete as exc:
            state.fatal_error = f"package not built: {len(exc.blocking)} blocking dependency issue(s)"
        except BundlerError as exc:
            state.fatal_error = str(exc)
    exit_with(present(pipeline.report(state), context, state=state, report_path=report))


def register(app: typer.Typer) -> None:
    """Register the package command on ``app``."""

    app.command("package")(handle_cli_errors(package_command))


__all__ = ["ArchiveChoice", "package_command", "register"]
