"""Command-line interface package for the scan engine."""

from .app import build_parser, create_service, main, render_rules, render_table, run

__all__ = [
    "build_parser",
    "create_service",
    "main",
    "render_rules",
    "render_table",
    "run",
]
