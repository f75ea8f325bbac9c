"""Console helpers for the command line entry point."""

from .console import console, header, ok, fail, report

__all__ = ["console", "header", "ok", "fail", "report"]
