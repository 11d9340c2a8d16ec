"""Data a shell needs to enter a virtualenv."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from lilyenv.core.registry import InstalledInterpreter, Virtualenv

TERMINFO_DIRS = "/etc/terminfo:/lib/terminfo:/usr/share/terminfo"


@dataclass(frozen=True)
class ActivationDescriptor:
    virtualenv: Path
    bin_dir: Path
    library_path: Path
    label: str

    @property
    def prompt(self) -> str:
        return f"{self.label} "

    def environment(self, base_env: Mapping[str, str]) -> dict[str, str]:
        """Environment for the activated shell, derived from the caller's."""
        env = dict(base_env)
        path = env.get("PATH")
        env["PATH"] = f"{self.bin_dir}{os.pathsep}{path}" if path else str(self.bin_dir)
        env["VIRTUAL_ENV"] = str(self.virtualenv)
        env["VIRTUAL_ENV_PROMPT"] = self.prompt
        env["LD_LIBRARY_PATH"] = str(self.library_path)
        env["TERMINFO_DIRS"] = TERMINFO_DIRS
        env.pop("PYTHONHOME", None)
        return env


def build_activation(venv: Virtualenv, interpreter: InstalledInterpreter) -> ActivationDescriptor:
    """Pure transformation of a ready virtualenv and its interpreter."""
    return ActivationDescriptor(
        virtualenv=venv.path,
        bin_dir=venv.bin_dir,
        library_path=interpreter.library_dir,
        label=f"{venv.project} ({venv.build})",
    )
