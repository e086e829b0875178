# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the ``artifact-bundler export`` command."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer

from ...cancellation import cancel_on_interrupt
from ...errors import BundlerError
from ...pipeline import Pipeline
from ...reporting.emitters import export_mapping
from ...reporting.report import mapping_rows
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


class MappingFormatChoice(str, Enum):
    """Output formats accepted by ``--format``."""

    JSON = "json"
    CSV = "csv"


def export_command(
    path: Path = PATH_OPTION,
    out: Path = typer.Option(
        ...,
        "--out",
        "-o",
        help="Destination file for the tool mapping.",
        dir_okay=False,
    ),
    fmt: MappingFormatChoice = typer.Option(
        MappingFormatChoice.JSON,
        "--format",
        "-f",
        case_sensitive=False,
        help="Mapping format.",
    ),
    acquire: bool = typer.Option(
        False,
        "--acquire/--no-acquire",
        help="Download every resolved tool so actual hashes appear in the mapping.",
    ),
    offline: bool = OFFLINE_OPTION,
    config: Path | None = CONFIG_OPTION,
    workers: int | None = WORKERS_OPTION,
    report: Path | None = REPORT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    no_emoji: bool = NO_EMOJI_OPTION,
) -> None:
    """Write the tool-to-artifact mapping and a statistics summary."""

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
    pipeline = Pipeline(context.config)
    with cancel_on_interrupt(pipeline.cancel):
        try:
            state = pipeline.scan(path, command="export")
        except BundlerError as exc:
            raise CLIError(str(exc)) from exc
        if acquire and not pipeline.cancel.cancelled:
            pipeline.acquire(state)

    if state.manifest is None:
        raise CLIError("scan produced no dependency manifest")
    rows = mapping_rows(state.manifest, state.acquisition)
    run_report = pipeline.report(state)
    try:
        summary = export_mapping(run_report, rows, out, fmt=fmt.value)
    except BundlerError as exc:
        state.fatal_error = str(exc)
        run_report = pipeline.report(state)
    else:
        context.logger.info(f"mapping written to {out} ({len(rows)} row(s)); summary at {summary}")
    exit_with(present(run_report, context, state=state, report_path=report))


def register(app: typer.Typer) -> None:
    """Register the export command on ``app``."""

    app.command("export")(handle_cli_errors(export_command))


__all__ = ["MappingFormatChoice", "export_command", "register"]
