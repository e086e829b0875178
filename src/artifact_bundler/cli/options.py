# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Typer option declarations shared by the corpus commands."""

from __future__ import annotations

import typer

PATH_OPTION = typer.Option(
    ...,
    "--path",
    "-p",
    help="Directory containing artifact definition files.",
    file_okay=False,
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Explicit configuration file; overrides every other source.",
    dir_okay=False,
)
WORKERS_OPTION = typer.Option(
    None,
    "--workers",
    "-j",
    min=1,
    help="Parse workers (default: 75% of CPU cores).",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Print extraction traces and debug logging.",
)
NO_COLOR_OPTION = typer.Option(False, "--no-color", help="Disable ANSI colour output.")
NO_EMOJI_OPTION = typer.Option(False, "--no-emoji", help="Disable emoji output.")
REPORT_OPTION = typer.Option(
    None,
    "--report",
    help="Also write the structured run report to this JSON file.",
    dir_okay=False,
)
OFFLINE_OPTION = typer.Option(
    False,
    "--offline",
    help="Use only the local tool cache; never touch the network.",
)

__all__ = [
    "CONFIG_OPTION",
    "NO_COLOR_OPTION",
    "NO_EMOJI_OPTION",
    "OFFLINE_OPTION",
    "PATH_OPTION",
    "REPORT_OPTION",
    "VERBOSE_OPTION",
    "WORKERS_OPTION",
]
