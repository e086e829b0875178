# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the ``artifact-bundler scan`` command."""

from __future__ import annotations

from pathlib import Path

import typer

from ...cancellation import cancel_on_interrupt
from ...errors import BundlerError
from ...pipeline import Pipeline
from ..options import (
    CONFIG_OPTION,
    NO_COLOR_OPTION,
    NO_EMOJI_OPTION,
    PATH_OPTION,
    REPORT_OPTION,
    VERBOSE_OPTION,
    WORKERS_OPTION,
)
from ..shared import CLIError, build_context, exit_with, handle_cli_errors, present


def scan_command(
    path: Path = PATH_OPTION,
    config: Path | None = CONFIG_OPTION,
    workers: int | None = WORKERS_OPTION,
    report: Path | None = REPORT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    no_color: bool = NO_COLOR_OPTION,
    no_emoji: bool = NO_EMOJI_OPTION,
) -> None:
    """Parse the corpus, resolve tool dependencies, and print a summary."""

    context = build_context(
        path,
        config_path=config,
        workers=workers,
        verbose=verbose,
        no_color=no_color,
        no_emoji=no_emoji,
    )
    pipeline = Pipeline(context.config)
    with cancel_on_interrupt(pipeline.cancel):
        try:
            state = pipeline.scan(path, command="scan")
        except BundlerError as exc:
            raise CLIError(str(exc)) from exc
    exit_with(present(pipeline.report(state), context, state=state, report_path=report))


def register(app: typer.Typer) -> None:
    """Register the scan command on ``app``."""

    app.command("scan")(handle_cli_errors(scan_command))


__all__ = ["register", "scan_command"]
