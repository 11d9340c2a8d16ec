"""Interactive shell detection and spawning."""

import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

DEFAULT_SHELL = "bash"


class Shell(ABC):
    """Abstract interface for the user's interactive shell."""

    @abstractmethod
    def detect_shell(self, environ: Mapping[str, str]) -> str:
        """Return the shell the user invoked lilyenv from."""
        ...

    @abstractmethod
    def spawn(self, shell: str, *, env: Mapping[str, str], cwd: Path | None) -> int:
        """Run an interactive shell until it exits and return its exit code."""
        ...


class RealShell(Shell):
    """Production implementation using $SHELL and subprocess."""

    def detect_shell(self, environ: Mapping[str, str]) -> str:
        return environ.get("SHELL") or DEFAULT_SHELL

    def spawn(self, shell: str, *, env: Mapping[str, str], cwd: Path | None) -> int:
        return subprocess.run([shell], env=dict(env), cwd=cwd, check=False).returncode


def shell_name(shell: str) -> str:
    """Name of a shell given either its name or its path, e.g. ``/bin/zsh`` -> ``zsh``."""
    return Path(shell).name
