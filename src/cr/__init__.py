"""Cucumber report generator.

This package merges a directory of Cucumber JSON result files into a single
document and renders it through a Jinja2 template into an HTML report.
"""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "errors",
    "helpers",
    "merge",
    "report",
]
