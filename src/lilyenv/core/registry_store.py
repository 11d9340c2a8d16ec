"""Loading and saving the registry under the store lock."""

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from lilyenv.core.errors import LockContention, ParseError, StateCorruption
from lilyenv.core.layout import (
    TEMP_PREFIX,
    TRASH_PREFIX,
    StoreLayout,
    discard_tree,
    pid_alive,
    sweep_scratch,
)
from lilyenv.core.registry import (
    InstalledInterpreter,
    Registry,
    registry_from_json,
    registry_to_json,
)
from lilyenv.core.time import Time
from lilyenv.core.versions import BuildId

logger = logging.getLogger(__name__)


class RegistryStore:
    """Reads and writes ``registry.json`` for one store root.

    Mutations happen inside ``transaction()``, which holds an exclusive file
    lock for the whole read-modify-write. Readers use ``snapshot()`` and never
    take the lock: writes replace the file atomically, so a reader always sees
    the last complete version.
    """

    def __init__(self, layout: StoreLayout, *, lock_timeout: float, time: Time) -> None:
        self._layout = layout
        self._lock_timeout = lock_timeout
        self._time = time

    @property
    def layout(self) -> StoreLayout:
        return self._layout

    def snapshot(self) -> Registry:
        """Read-only view of the registry, reconciled with the disk in memory."""
        registry = self._load()
        self._reconcile(registry)
        return registry

    @contextmanager
    def transaction(self, *, adopting: Path | None = None) -> Iterator[Registry]:
        """Lock the store and yield the registry for mutation.

        The registry is written back only when the block completes without an
        exception and something changed. The lock is released on every path.
        Unrecorded virtualenv directories are deleted first, except ``adopting``,
        which the caller is about to record.

        Raises:
            LockContention: If the lock could not be acquired within lock_timeout
            StateCorruption: If the registry file cannot be read
        """
        self._layout.root.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(self._layout.lock_path), timeout=self._lock_timeout)
        try:
            lock.acquire()
        except Timeout:
            raise LockContention(
                f"Another lilyenv process has held {self._layout.lock_path} "
                f"for more than {self._lock_timeout:g}s. Try again later."
            ) from None

        try:
            registry = self._load()
            before = registry_to_json(registry)
            self._reconcile(registry)
            self._sweep(registry, adopting)
            yield registry
            if registry_to_json(registry) != before:
                self._save(registry)
        finally:
            lock.release()

    def _load(self) -> Registry:
        path = self._layout.registry_path
        if not path.exists():
            return Registry()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateCorruption(
                f"Could not read the registry at {path} ({e}).\n"
                "Refusing to continue; inspect or move the file aside."
            ) from e
        return registry_from_json(data, self._layout)

    def _save(self, registry: Registry) -> None:
        path = self._layout.registry_path
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        tmp_path.write_text(json.dumps(registry_to_json(registry), indent=2) + "\n", encoding="utf-8")
        os.replace(tmp_path, path)
        logger.debug("Saved registry to %s", path)

    def _reconcile(self, registry: Registry) -> None:
        """Make the records agree with the directories on disk."""
        for build, record in list(registry.interpreters.items()):
            if not record.executable.exists():
                logger.debug("Dropping record for missing interpreter %s", build)
                del registry.interpreters[build]

        pythons_dir = self._layout.pythons_dir
        if pythons_dir.exists():
            for entry in sorted(pythons_dir.iterdir()):
                if entry.name.startswith((TEMP_PREFIX, TRASH_PREFIX)) or not entry.is_dir():
                    continue
                try:
                    build = BuildId.parse_name(entry.name)
                except ParseError:
                    continue
                if build in registry.interpreters or not self._layout.is_installed(build):
                    continue
                logger.debug("Adopting unrecorded interpreter %s", build)
                registry.interpreters[build] = InstalledInterpreter(
                    build=build,
                    directory=entry,
                    installed_at=self._time.now(),
                )

        for key, venv in list(registry.virtualenvs.items()):
            if not venv.path.exists():
                logger.debug("Dropping record for missing virtualenv %s", venv.path)
                del registry.virtualenvs[key]

        for build, reservation in list(registry.installing.items()):
            if not pid_alive(reservation.pid):
                logger.debug("Dropping stale install reservation for %s", build)
                del registry.installing[build]

    def _sweep(self, registry: Registry, adopting: Path | None) -> None:
        sweep_scratch(self._layout.pythons_dir)
        sweep_scratch(self._layout.virtualenvs_dir)
        if self._layout.virtualenvs_dir.exists():
            for project_dir in self._layout.virtualenvs_dir.iterdir():
                if project_dir.is_dir() and not project_dir.name.startswith(
                    (TEMP_PREFIX, TRASH_PREFIX)
                ):
                    sweep_scratch(project_dir)
                    self._drop_untracked_virtualenvs(registry, project_dir, adopting)

    @staticmethod
    def _drop_untracked_virtualenvs(
        registry: Registry, project_dir: Path, adopting: Path | None
    ) -> None:
        # creation and recording share one transaction, so an unrecorded
        # virtualenv was left behind by a process that died in between
        recorded = {venv.path for venv in registry.virtualenvs.values()}
        for entry in sorted(project_dir.iterdir()):
            if entry.name.startswith((TEMP_PREFIX, TRASH_PREFIX)) or not entry.is_dir():
                continue
            if entry in recorded or entry == adopting:
                continue
            try:
                build = BuildId.parse_name(entry.name)
            except ParseError:
                continue
            if (project_dir.name, build) in registry.virtualenvs:
                continue
            logger.debug("Removing untracked virtualenv %s", entry)
            try:
                discard_tree(entry)
            except OSError as e:
                logger.warning("Could not remove untracked virtualenv %s: %s", entry, e)
