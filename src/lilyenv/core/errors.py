"""Error taxonomy for lilyenv operations.

Core code raises these exceptions; the CLI layer catches LilyenvError once,
reports the stage and message, and exits with the error's exit code.
"""


class LilyenvError(Exception):
    """Base class for every user-reportable lilyenv failure."""

    exit_code = 1
    stage = "lilyenv"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(LilyenvError):
    """Malformed version or project input. Raised before any mutation."""

    exit_code = 2
    stage = "Invalid input"


class ConfigError(LilyenvError):
    """Configuration file holds a value of the wrong type."""

    exit_code = 2
    stage = "Configuration"


class ResolutionError(LilyenvError):
    """The catalog could not produce a single build for a version request."""

    exit_code = 3
    stage = "ResolutionFailed"


class NotFoundError(ResolutionError):
    """No build matches the request.

    `alternatives` holds the names of the closest available builds, for display only.
    """

    def __init__(self, message: str, alternatives: list[str] | None = None) -> None:
        if alternatives:
            message = f"{message}\nClosest available: {', '.join(alternatives)}"
        super().__init__(message)
        self.alternatives = alternatives or []


class AmbiguousError(ResolutionError):
    """More than one distinct catalog entry claims the selected build."""


class DownloadFailed(LilyenvError):
    """Network, checksum or extraction failure while installing an interpreter."""

    exit_code = 4
    stage = "DownloadFailed"


class CatalogUnavailable(DownloadFailed):
    """The remote catalog could not be fetched."""


class ChecksumMismatch(DownloadFailed):
    """The downloaded archive does not match the catalog checksum."""


class VenvCreationFailed(LilyenvError):
    """The interpreter could not materialize a virtualenv."""

    exit_code = 5
    stage = "VenvCreationFailed"


class LockContention(LilyenvError):
    """Another invocation held the store lock for longer than the lock timeout."""

    exit_code = 6
    stage = "Store locked"


class StateCorruption(LilyenvError):
    """The on-disk registry cannot be read. Nothing is written over it."""

    exit_code = 7
    stage = "StateCorruption"


class DependentVirtualenvs(LilyenvError):
    """An interpreter cannot be removed while virtualenvs still use it."""

    stage = "Remove python"


class UnknownProject(LilyenvError):
    stage = "Project"


class UnknownVirtualenv(LilyenvError):
    stage = "Virtualenv"


class UnsupportedPlatform(LilyenvError):
    stage = "Platform"


class RemovalFailed(LilyenvError):
    """A directory in the store could not be deleted. Its record is kept."""

    stage = "Remove"
