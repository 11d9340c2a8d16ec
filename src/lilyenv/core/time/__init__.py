from lilyenv.core.time.abc import Time
from lilyenv.core.time.real import RealTime

__all__ = ["RealTime", "Time"]
