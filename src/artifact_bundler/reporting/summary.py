# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Rich rendering of the human-readable run summary."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config.models import OutputConfig
from ..console import get_console_manager
from .report import RunReport

_ISSUE_LIMIT = 50


def create_stats_panel(report: RunReport, cfg: OutputConfig) -> Panel:
    """Create a panel with artifact and tool counts.

    Args:
        report: Run report to summarise.
        cfg: Output preferences controlling colour and emoji.

    Returns:
        Panel: Rich panel containing the statistics table.
    """

    table = Table(show_header=False, box=box.SIMPLE, pad_edge=False, expand=False)
    label_style = "yellow" if cfg.color else None
    value_style = "orange1" if cfg.color else None
    table.add_column(style=label_style, justify="left", no_wrap=True)
    table.add_column(style=value_style, justify="right", no_wrap=True)

    artifacts = report.artifacts
    tools = report.tools
    rows = [
        ("Artifacts found", artifacts.found),
        ("- parsed cleanly", artifacts.parsed_cleanly),
        ("- degraded", artifacts.degraded),
        ("- duplicate names", artifacts.duplicates),
        ("Tools referenced", tools.referenced),
        ("- resolved", tools.resolved),
        ("- conflicting", tools.conflicting),
        ("- unresolved", tools.unresolved),
        ("- inferred from URL", tools.inferred),
        ("Ambiguous arguments", tools.ambiguous),
    ]
    if tools.acquired or tools.acquisition_failed:
        rows.append(("Tools acquired", tools.acquired))
        rows.append(("- failed", tools.acquisition_failed))
    for label, value in rows:
        table.add_row(Text(label), Text(str(value)))

    title_text = f"{report.command} summary"
    if cfg.emoji:
        title_text = f"📦 {title_text}"
    title = f"[yellow]{title_text}[/yellow]" if cfg.color else title_text
    panel = Panel.fit(table, title=title, padding=(0, 1))
    if cfg.color:
        panel.border_style = "yellow"
    return panel


def create_issue_table(report: RunReport, cfg: OutputConfig) -> Table | None:
    """Return a table listing reported issues, or ``None`` for a clean run."""

    if not report.issues:
        return None
    table = Table(box=box.SIMPLE_HEAD, expand=False, title=f"{len(report.issues)} issue(s)")
    table.add_column("kind", style="magenta" if cfg.color else None, no_wrap=True)
    table.add_column("artifact", overflow="fold")
    table.add_column("tool", style="cyan" if cfg.color else None, overflow="fold")
    table.add_column("message", overflow="fold")
    for issue in report.issues[:_ISSUE_LIMIT]:
        table.add_row(issue.kind.value, issue.artifact or "-", issue.tool or "-", issue.message)
    if len(report.issues) > _ISSUE_LIMIT:
        table.caption = f"{len(report.issues) - _ISSUE_LIMIT} more in the JSON report"
    return table


def render_summary(report: RunReport, cfg: OutputConfig, *, console: Console | None = None) -> None:
    """Print the statistics panel, issue table, and package location."""

    target = console or get_console_manager().get(color=cfg.color, emoji=cfg.emoji)
    target.print(create_stats_panel(report, cfg))
    issues = create_issue_table(report, cfg)
    if issues is not None:
        target.print(issues)
    if report.package is not None:
        target.print(Text(f"package: {report.package.output_path}"))
        if report.package.archive_path:
            target.print(Text(f"archive: {report.package.archive_path}"))
    if report.fatal_error:
        target.print(Text(f"fatal: {report.fatal_error}", style="red" if cfg.color else ""))


__all__ = ["create_issue_table", "create_stats_panel", "render_summary"]
