# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Structured reports, mapping exports, and console summaries."""

from __future__ import annotations

from .emitters import export_mapping, summary_path_for, write_json_report, write_mapping
from .report import EXIT_CLEAN, EXIT_FATAL, EXIT_ISSUES, Issue, MappingRow, RunReport, mapping_rows
from .summary import render_summary

__all__ = [
    "EXIT_CLEAN",
    "EXIT_FATAL",
    "EXIT_ISSUES",
    "Issue",
    "MappingRow",
    "RunReport",
    "export_mapping",
    "mapping_rows",
    "render_summary",
    "summary_path_for",
    "write_json_report",
    "write_mapping",
]
