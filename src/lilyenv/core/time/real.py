"""Real clock implementation."""

from datetime import UTC, datetime

from lilyenv.core.time.abc import Time


class RealTime(Time):
    """Production implementation using the system clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)
