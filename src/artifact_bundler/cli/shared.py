# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (logging, errors, run context)."""

from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.text import Text

from ..config.loader import load_config
from ..config.models import Config, OutputConfig
from ..errors import ConfigError
from ..logging import configure_logging
from ..logging import fail as core_fail
from ..logging import info as core_info
from ..logging import ok as core_ok
from ..logging import section as core_section
from ..logging import warn as core_warn
from ..pipeline import RunState
from ..reporting.emitters import write_json_report
from ..reporting.report import EXIT_FATAL, RunReport
from ..reporting.summary import render_summary

CommandCallable = Callable[..., None]


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = EXIT_FATAL) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around the status helpers respecting CLI emoji and colour settings."""

    console: Console
    use_emoji: bool
    use_color: bool = True
    debug_enabled: bool = False

    def fail(self, message: str) -> None:
        """Log a failure message honouring emoji preferences."""

        core_fail(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def warn(self, message: str) -> None:
        """Log a warning message honouring emoji preferences."""

        core_warn(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def ok(self, message: str) -> None:
        """Log a success message honouring emoji preferences."""

        core_ok(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def info(self, message: str) -> None:
        """Log an informational message honouring emoji preferences."""

        core_info(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def section(self, title: str) -> None:
        """Render a section header honouring colour preferences."""

        core_section(title, use_color=self.use_color)

    def debug(self, message: str) -> None:
        """Emit a dimmed trace line when debug output is enabled."""

        if self.debug_enabled:
            text = Text("[trace] ", style="bold cyan" if self.use_color else "")
            text.append(message, style="dim" if self.use_color else "")
            self.console.print(text)


def build_cli_logger(*, emoji: bool, debug: bool = False, no_color: bool = False) -> CLILogger:
    """Return a :class:`CLILogger` bound to a dedicated Rich console.

    Args:
        emoji: Whether log output may include emoji glyphs.
        debug: Whether trace output should be enabled.
        no_color: Whether terminal colour output should be disabled.

    Returns:
        CLILogger: Logger instance for the current command.
    """

    console = Console(no_color=no_color, highlight=False)
    return CLILogger(console=console, use_emoji=emoji, use_color=not no_color, debug_enabled=debug)


@dataclass(slots=True)
class CommandContext:
    """Configuration and console plumbing resolved for one command."""

    corpus_root: Path
    config: Config
    logger: CLILogger

    @property
    def output(self) -> OutputConfig:
        """Return the effective output preferences."""

        return self.config.output


def build_context(
    corpus_root: Path,
    *,
    config_path: Path | None,
    workers: int | None,
    verbose: bool,
    no_color: bool,
    no_emoji: bool,
) -> CommandContext:
    """Load configuration for ``corpus_root`` and apply command-line overrides.

    Raises:
        CLIError: If the corpus is missing or the configuration is invalid.
    """

    if not corpus_root.is_dir():
        raise CLIError(f"artifact corpus not found: {corpus_root}")
    try:
        config = load_config(corpus_root, explicit=config_path)
        if workers is not None:
            config.scan.workers = workers
    except (ConfigError, ValueError) as exc:
        raise CLIError(str(exc)) from exc
    if verbose:
        config.output.verbose = True
    if no_color:
        config.output.color = False
    if no_emoji:
        config.output.emoji = False
    configure_logging(verbose=config.output.verbose, use_color=config.output.color)
    logger = build_cli_logger(
        emoji=config.output.emoji,
        debug=config.output.verbose,
        no_color=not config.output.color,
    )
    return CommandContext(corpus_root=corpus_root, config=config, logger=logger)


def present(report: RunReport, context: CommandContext, *, state: RunState | None, report_path: Path | None) -> int:
    """Render ``report``, optionally write it as JSON, and return the exit code."""

    if state is not None:
        for line in state.traces:
            context.logger.debug(line)
    render_summary(report, context.output)
    if report_path is not None:
        write_json_report(report, report_path)
        context.logger.info(f"report written to {report_path}")
    if report.fatal_error is not None:
        context.logger.fail(report.fatal_error)
    elif report.exit_code:
        context.logger.warn(f"completed with {len(report.issues)} issue(s)")
    else:
        context.logger.ok("clean run")
    return report.exit_code


def exit_with(code: int) -> None:
    """Terminate the command with ``code``."""

    raise typer.Exit(code=code)


def handle_cli_errors(command: CommandCallable) -> CommandCallable:
    """Translate :class:`CLIError` raised by ``command`` into a Typer exit."""

    @functools.wraps(command)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            command(*args, **kwargs)
        except CLIError as exc:
            core_fail(str(exc), use_emoji=False)
            raise typer.Exit(code=exc.exit_code) from exc

    return wrapper


__all__ = [
    "CLIError",
    "CLILogger",
    "CommandContext",
    "build_cli_logger",
    "build_context",
    "exit_with",
    "handle_cli_errors",
    "present",
]
