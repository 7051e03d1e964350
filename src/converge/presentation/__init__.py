"""Presentation layer - human-readable plans and apply reports."""

from .human_formatter import format_plan, format_report, format_action

__all__ = ["format_plan", "format_report", "format_action"]
