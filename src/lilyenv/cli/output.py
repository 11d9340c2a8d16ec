"""Output utilities for CLI commands with clear intent.

user_output is for people: progress, confirmations and errors, on stderr.
machine_output is for data another program or the shell may consume, on stdout.
"""

from typing import Any

import click
from rich.console import Console


def user_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, err=True, nl=nl)


def machine_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, nl=nl)


def table_console() -> Console:
    """Console for rich tables, which are meant for people and go to stderr."""
    return Console(stderr=True, width=120)
