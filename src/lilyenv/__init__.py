"""Manage standalone Python interpreters and per-project virtualenvs."""

__version__ = "0.4.0"
