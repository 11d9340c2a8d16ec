"""Network collaborator interface.

Architecture:
- Network: Abstract base class defining the interface
- RealNetwork: Production implementation talking to GitHub over HTTPS
- FakeNetwork (tests/fakes): In-memory catalog and archive bytes
"""

from abc import ABC, abstractmethod
from pathlib import Path

from lilyenv.core.catalog import CatalogEntry


class Network(ABC):
    """Abstract interface for fetching the build catalog and archives.

    Both operations are fallible and bounded in time. Implementations raise
    CatalogUnavailable or DownloadFailed rather than library exceptions.
    """

    @abstractmethod
    def fetch_catalog(self, platform: str) -> list[CatalogEntry]:
        """Fetch every downloadable build for the given target triple.

        Raises:
            CatalogUnavailable: If the catalog cannot be fetched or parsed
        """
        ...

    @abstractmethod
    def download(self, url: str, destination: Path) -> None:
        """Stream the file at url into destination.

        Raises:
            DownloadFailed: On any transport error or timeout
        """
        ...
