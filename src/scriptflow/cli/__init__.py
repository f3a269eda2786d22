"""Command-line interface for scriptflow."""

from .main import cli, cli_main

__all__ = ["cli", "cli_main"]
