"""CLI error handling utilities with styled output.

This module provides the Ensure class for asserting invariants in CLI commands
with consistent, user-friendly error messages. All errors use red "Error:" prefix
for visual consistency.
"""

from pathlib import Path

import click

from lilyenv.cli.output import user_output


class Ensure:
    """Helper class for asserting invariants with consistent error handling."""

    @staticmethod
    def invariant(condition: bool, error_message: str) -> None:
        """Ensure condition is true, otherwise output styled error and exit.

        Raises:
            SystemExit: If condition is false (with exit code 1)
        """
        if not condition:
            user_output(click.style("Error: ", fg="red") + error_message)
            raise SystemExit(1)

    @staticmethod
    def directory_exists(path: Path, error_message: str | None = None) -> None:
        """Ensure path exists and is a directory."""
        if not path.is_dir():
            message = error_message or f"Directory not found: {path}"
            user_output(click.style("Error: ", fg="red") + message)
            raise SystemExit(1)
