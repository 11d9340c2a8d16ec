"""Clock abstraction for testing.

Records carry installed-at and created-at timestamps; routing the clock
through this ABC keeps those timestamps deterministic in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract clock for dependency injection."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        ...
