# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the ``artifact-bundler verify`` command."""

from __future__ import annotations

from pathlib import Path

import typer

from ...errors import BundlerError
from ...packaging.manifest import verify_package
from ...reporting.report import EXIT_CLEAN, EXIT_ISSUES
from ..options import NO_COLOR_OPTION, NO_EMOJI_OPTION
from ..shared import CLIError, build_cli_logger, exit_with, handle_cli_errors


def verify_command(
    package: Path = typer.Option(
        ...,
        "--package",
        help="Package directory containing manifest.json.",
        file_okay=False,
    ),
    no_color: bool = NO_COLOR_OPTION,
    no_emoji: bool = NO_EMOJI_OPTION,
) -> None:
    """Re-hash a built package and compare it with its manifest."""

    logger = build_cli_logger(emoji=not no_emoji, no_color=no_color)
    logger.section(f"verify {package}")
    try:
        result = verify_package(package)
    except BundlerError as exc:
        raise CLIError(str(exc)) from exc
    for problem in result.problems:
        logger.fail(problem)
    if result.ok:
        logger.ok(f"{result.checked} file(s) match the manifest")
        exit_with(EXIT_CLEAN)
    logger.warn(f"{len(result.problems)} of {result.checked} file(s) do not match the manifest")
    exit_with(EXIT_ISSUES)


def register(app: typer.Typer) -> None:
    """Register the verify command on ``app``."""

    app.command("verify")(handle_cli_errors(verify_command))


__all__ = ["register", "verify_command"]
