"""Installed interpreter builds: install, list and remove.

An install runs in three steps so that the store lock is never held while
downloading:

1. Under the lock, return the existing record or reserve the build.
2. Unlocked, download into the cache, verify the checksum and unpack into a
   hidden scratch directory next to the final one.
3. Under the lock again, rename the scratch directory into place and record
   it. If another invocation got there first, the scratch copy is discarded.

A record therefore never exists without a complete interpreter directory.
"""

import hashlib
import logging
import os
import shutil
import tarfile
from collections.abc import Sequence
from pathlib import Path

import zstandard

from lilyenv.core.archive import Archive
from lilyenv.core.catalog import CatalogEntry, find_entry
from lilyenv.core.errors import (
    AmbiguousError,
    ChecksumMismatch,
    DependentVirtualenvs,
    DownloadFailed,
    NotFoundError,
    RemovalFailed,
)
from lilyenv.core.layout import discard_tree
from lilyenv.core.network import Network
from lilyenv.core.registry import InstalledInterpreter, Reservation
from lilyenv.core.registry_store import RegistryStore
from lilyenv.core.time import Time
from lilyenv.core.versions import BuildId, VersionSpec, matches

logger = logging.getLogger(__name__)

# Upstream archives are built with this prefix baked into their configuration
PLACEHOLDER_PREFIX = "/install"
SYSCONFIG_PREFIXES = ("'", " ", "=")
HASH_CHUNK_SIZE = 1024 * 1024


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hoist_install_tree(install_dir: Path) -> None:
    """Move ``python/install`` up to ``python/`` for full (non install-only) archives."""
    python_dir = install_dir / "python"
    nested = python_dir / "install"
    if not nested.is_dir():
        return
    staging = install_dir / "install"
    nested.rename(staging)
    shutil.rmtree(python_dir)
    staging.rename(python_dir)


def rewrite_placeholder_paths(python_root: Path, final_root: Path) -> None:
    """Point the interpreter's recorded install prefix at its final location.

    Args:
        python_root: The ``python`` directory as currently unpacked
        final_root: Where that directory will live once renamed into place
    """
    prefix = str(final_root)
    for sysconfig in python_root.glob("lib/python3*/_sysconfigdata_*.py"):
        text = sysconfig.read_text(encoding="utf-8")
        for lead in SYSCONFIG_PREFIXES:
            text = text.replace(f"{lead}{PLACEHOLDER_PREFIX}", f"{lead}{prefix}")
        sysconfig.write_text(text, encoding="utf-8")

    pkgconfig = python_root / "lib" / "pkgconfig"
    if not pkgconfig.is_dir():
        return
    for pc_file in pkgconfig.iterdir():
        if pc_file.is_symlink() or not pc_file.is_file():
            continue
        text = pc_file.read_text(encoding="utf-8")
        pc_file.write_text(text.replace(f"={PLACEHOLDER_PREFIX}", f"={prefix}"), encoding="utf-8")


class InterpreterStore:
    """Idempotent management of the ``pythons/`` subtree of the store."""

    def __init__(
        self,
        registry_store: RegistryStore,
        *,
        network: Network,
        archive: Archive,
        time: Time,
    ) -> None:
        self._registry_store = registry_store
        self._layout = registry_store.layout
        self._network = network
        self._archive = archive
        self._time = time

    def list_installed(self) -> list[InstalledInterpreter]:
        """Installed interpreters, newest first."""
        registry = self._registry_store.snapshot()
        return sorted(
            registry.interpreters.values(),
            key=lambda record: (record.build.precedence, record.build.variant.value),
            reverse=True,
        )

    def get(self, build: BuildId) -> InstalledInterpreter | None:
        return self._registry_store.snapshot().interpreters.get(build)

    def find_installed(self, spec: VersionSpec) -> InstalledInterpreter | None:
        """Newest installed interpreter satisfying the request, if any."""
        for record in self.list_installed():
            if matches(spec, record.build):
                return record
        return None

    def select(self, spec: VersionSpec) -> InstalledInterpreter:
        """The single installed interpreter matching a version request.

        Raises:
            NotFoundError: If none matches
            AmbiguousError: If several match
        """
        candidates = [record for record in self.list_installed() if matches(spec, record.build)]
        if not candidates:
            raise NotFoundError(f"Python {spec} is not installed.")
        if len(candidates) > 1:
            names = ", ".join(record.build.name for record in candidates)
            raise AmbiguousError(f"{spec} matches several installed builds: {names}")
        return candidates[0]

    def ensure_installed(
        self, build: BuildId, catalog: Sequence[CatalogEntry]
    ) -> InstalledInterpreter:
        """Return the installed interpreter for build, installing it if needed.

        No network access happens when the build is already installed.

        Raises:
            NotFoundError: If the build must be installed but is not in the catalog
            DownloadFailed: If fetching, verifying or unpacking the archive fails
        """
        with self._registry_store.transaction() as registry:
            existing = registry.interpreters.get(build)
            if existing is not None:
                logger.debug("%s already installed at %s", build, existing.directory)
                return existing
            entry = find_entry(catalog, build)
            other = registry.installing.get(build)
            if other is not None and other.pid != os.getpid():
                logger.debug("%s is also being installed by pid %d", build, other.pid)
            registry.installing[build] = Reservation(
                build=build, pid=os.getpid(), started_at=self._time.now()
            )

        scratch = self._layout.temp_python_dir(build)
        try:
            self._unpack(entry, scratch)
        except (OSError, tarfile.TarError, zstandard.ZstdError, ValueError) as e:
            self._abandon(build, scratch)
            raise DownloadFailed(f"Could not install {build}: {e}") from e
        except Exception:
            self._abandon(build, scratch)
            raise

        try:
            return self._commit(build, scratch)
        except OSError as e:
            self._abandon(build, scratch)
            raise DownloadFailed(f"Could not install {build}: {e}") from e

    def remove(self, build: BuildId) -> InstalledInterpreter:
        """Delete an installed interpreter and its record.

        Raises:
            NotFoundError: If the build is not installed
            DependentVirtualenvs: If any virtualenv still uses the build
        """
        with self._registry_store.transaction() as registry:
            record = registry.interpreters.get(build)
            if record is None:
                raise NotFoundError(f"Python {build} is not installed.")
            dependents = registry.dependents(build)
            if dependents:
                names = ", ".join(f"{venv.project} ({venv.build})" for venv in dependents)
                raise DependentVirtualenvs(
                    f"Python {build} is used by: {names}. Remove those virtualenvs first."
                )
            try:
                discard_tree(record.directory)
            except OSError as e:
                raise RemovalFailed(f"Could not remove Python {build}: {e}") from e
            del registry.interpreters[build]
            return record

    def _fetch_archive(self, entry: CatalogEntry) -> Path:
        """Return a verified local copy of the entry's archive."""
        if not entry.sha256:
            raise DownloadFailed(f"No checksum is published for {entry.filename}; refusing to install it.")
        expected = entry.sha256.lower()

        downloads = self._layout.downloads_dir
        downloads.mkdir(parents=True, exist_ok=True)
        cached = downloads / entry.filename
        if cached.exists() and file_sha256(cached) == expected:
            logger.debug("Reusing cached archive %s", cached)
            return cached

        partial = downloads / f"{entry.filename}.{os.getpid()}.part"
        try:
            logger.debug("Downloading %s", entry.url)
            self._network.download(entry.url, partial)
            actual = file_sha256(partial)
            if actual != expected:
                raise ChecksumMismatch(
                    f"Checksum mismatch for {entry.filename}: expected {expected}, got {actual}"
                )
            os.replace(partial, cached)
        finally:
            partial.unlink(missing_ok=True)
        return cached

    def _unpack(self, entry: CatalogEntry, scratch: Path) -> None:
        archive_path = self._fetch_archive(entry)
        scratch.mkdir(parents=True)
        self._archive.extract(archive_path, scratch)
        hoist_install_tree(scratch)
        if not (scratch / "python" / "bin" / "python3").exists():
            raise DownloadFailed(f"{entry.filename} does not contain a python interpreter")
        rewrite_placeholder_paths(scratch / "python", self._layout.python_dir(entry.build) / "python")

    def _abandon(self, build: BuildId, scratch: Path) -> None:
        shutil.rmtree(scratch, ignore_errors=True)
        with self._registry_store.transaction() as registry:
            registry.installing.pop(build, None)

    def _commit(self, build: BuildId, scratch: Path) -> InstalledInterpreter:
        final_dir = self._layout.python_dir(build)
        with self._registry_store.transaction() as registry:
            registry.installing.pop(build, None)
            if self._layout.is_installed(build):
                logger.debug("%s was installed concurrently; discarding %s", build, scratch)
                shutil.rmtree(scratch, ignore_errors=True)
            else:
                discard_tree(final_dir)
                scratch.rename(final_dir)
            record = registry.interpreters.get(build)
            if record is None:
                record = InstalledInterpreter(
                    build=build, directory=final_dir, installed_at=self._time.now()
                )
                registry.interpreters[build] = record
            return record
