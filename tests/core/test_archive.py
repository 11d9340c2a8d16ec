"""Tests for TarArchive against real compressed tarballs."""

import io
import tarfile
from pathlib import Path

import pytest
import zstandard

from lilyenv.core.archive import TarArchive


def _tar_bytes(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


FILES = {
    "python/bin/python3": b"#!/bin/sh\n",
    "python/lib/python3.12/os.py": b"# os\n",
}


def test_extract_tar_gz(tmp_path: Path) -> None:
    archive_path = tmp_path / "cpython-3.12.2+20250115-x86_64-unknown-linux-gnu-install_only.tar.gz"
    with tarfile.open(archive_path, mode="w:gz") as tar:
        for name, content in FILES.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    destination = tmp_path / "out"
    destination.mkdir()

    TarArchive().extract(archive_path, destination)

    assert (destination / "python" / "bin" / "python3").read_bytes() == b"#!/bin/sh\n"
    assert (destination / "python" / "lib" / "python3.12" / "os.py").exists()


def test_extract_tar_zst(tmp_path: Path) -> None:
    archive_path = tmp_path / "cpython-3.12.2+20250115-x86_64-unknown-linux-gnu-debug-full.tar.zst"
    archive_path.write_bytes(zstandard.ZstdCompressor().compress(_tar_bytes(FILES)))
    destination = tmp_path / "out"
    destination.mkdir()

    TarArchive().extract(archive_path, destination)

    assert (destination / "python" / "bin" / "python3").read_bytes() == b"#!/bin/sh\n"


def test_extract_rejects_unknown_format(tmp_path: Path) -> None:
    archive_path = tmp_path / "cpython-3.12.2.zip"
    archive_path.write_bytes(b"PK")

    with pytest.raises(ValueError, match="Unsupported archive format"):
        TarArchive().extract(archive_path, tmp_path)


def test_extract_refuses_paths_outside_destination(tmp_path: Path) -> None:
    archive_path = tmp_path / "evil.tar.gz"
    with tarfile.open(archive_path, mode="w:gz") as tar:
        info = tarfile.TarInfo("../escaped")
        info.size = 0
        tar.addfile(info, io.BytesIO(b""))
    destination = tmp_path / "out"
    destination.mkdir()

    with pytest.raises(tarfile.TarError):
        TarArchive().extract(archive_path, destination)

    assert not (tmp_path / "escaped").exists()
