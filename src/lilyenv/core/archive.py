"""Archive extraction for downloaded interpreter builds."""

import tarfile
from abc import ABC, abstractmethod
from pathlib import Path

import zstandard


class Archive(ABC):
    """Abstract interface for unpacking a downloaded archive.

    Extraction always targets a scratch directory owned by the caller, which
    renames it into place only after everything succeeded.
    """

    @abstractmethod
    def extract(self, archive_path: Path, destination: Path) -> None:
        """Unpack archive_path into the existing directory destination."""
        ...


class TarArchive(Archive):
    """Unpacks ``.tar.gz``, ``.tar.bz2`` and ``.tar.zst`` archives."""

    def extract(self, archive_path: Path, destination: Path) -> None:
        name = archive_path.name
        if name.endswith(".tar.zst"):
            with archive_path.open("rb") as compressed:
                reader = zstandard.ZstdDecompressor().stream_reader(compressed)
                with reader, tarfile.open(fileobj=reader, mode="r|") as tar:
                    tar.extractall(path=destination, filter="tar")
            return

        if name.endswith(".tar.gz"):
            mode = "r:gz"
        elif name.endswith(".tar.bz2"):
            mode = "r:bz2"
        else:
            raise ValueError(f"Unsupported archive format: {name}")
        with tarfile.open(archive_path, mode=mode) as tar:
            tar.extractall(path=destination, filter="tar")
