# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command registry."""

from __future__ import annotations

import typer

from . import export, package, scan, verify


def register_commands(app: typer.Typer) -> None:
    """Register every built-in command on ``app``.

    Args:
        app: Typer application receiving command registrations.
    """

    scan.register(app)
    export.register(app)
    package.register(app)
    verify.register(app)


__all__ = ["register_commands"]
