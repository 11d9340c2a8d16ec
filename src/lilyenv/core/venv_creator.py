"""Virtualenv creation through an installed interpreter's own venv module."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from lilyenv.core.errors import VenvCreationFailed
from lilyenv.core.subprocess import run_subprocess_with_context

logger = logging.getLogger(__name__)


class VenvCreator(ABC):
    """Abstract interface for materializing a virtualenv."""

    @abstractmethod
    def create(self, python: Path, target: Path, *, prompt: str) -> None:
        """Create a virtualenv at target using the given interpreter executable.

        Raises:
            VenvCreationFailed: If the interpreter could not create the environment
        """
        ...


class RealVenvCreator(VenvCreator):
    """Runs ``<python> -m venv`` in a subprocess."""

    def create(self, python: Path, target: Path, *, prompt: str) -> None:
        logger.debug("Creating virtualenv %s with %s", target, python)
        try:
            run_subprocess_with_context(
                [str(python), "-m", "venv", "--prompt", prompt, str(target)],
                operation_context=f"create virtualenv at {target}",
            )
        except RuntimeError as e:
            raise VenvCreationFailed(str(e)) from e
