from lilyenv.core.network.abc import Network
from lilyenv.core.network.real import RealNetwork

__all__ = ["Network", "RealNetwork"]
