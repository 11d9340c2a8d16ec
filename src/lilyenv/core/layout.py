"""On-disk layout of the lilyenv store.

    <root>/
      ├── pythons/<build-name>/python/...      installed interpreters
      ├── pythons/.tmp-<build-name>-<pid>-<id>  in-progress installs
      ├── virtualenvs/<project>/<build-name>/  project virtualenvs
      ├── registry.json
      └── registry.lock
    <cache_dir>/downloads/<archive>             downloaded archives
"""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path

from lilyenv.core.versions import BuildId

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp-"
TRASH_PREFIX = ".trash-"


@dataclass(frozen=True)
class StoreLayout:
    root: Path
    cache_dir: Path

    @property
    def pythons_dir(self) -> Path:
        return self.root / "pythons"

    @property
    def virtualenvs_dir(self) -> Path:
        return self.root / "virtualenvs"

    @property
    def registry_path(self) -> Path:
        return self.root / "registry.json"

    @property
    def lock_path(self) -> Path:
        return self.root / "registry.lock"

    @property
    def downloads_dir(self) -> Path:
        return self.cache_dir / "downloads"

    def python_dir(self, build: BuildId) -> Path:
        return self.pythons_dir / build.name

    def python_executable(self, build: BuildId) -> Path:
        return self.python_dir(build) / "python" / "bin" / "python3"

    def project_dir(self, project: str) -> Path:
        return self.virtualenvs_dir / project

    def virtualenv_dir(self, project: str, build: BuildId) -> Path:
        return self.project_dir(project) / build.name

    def temp_python_dir(self, build: BuildId) -> Path:
        """Fresh scratch directory name for installing build, unique per process."""
        return self.pythons_dir / f"{TEMP_PREFIX}{build.name}-{os.getpid()}-{uuid.uuid4().hex[:8]}"

    def is_installed(self, build: BuildId) -> bool:
        """The interpreter directory holds a usable interpreter."""
        return self.python_executable(build).exists()


def discard_tree(path: Path) -> None:
    """Remove a directory tree so that it is never observed half-deleted.

    The tree is first renamed to a hidden trash sibling, which is atomic, and
    only then deleted.
    """
    if not path.exists():
        return
    trash = path.with_name(f"{TRASH_PREFIX}{uuid.uuid4().hex}")
    path.rename(trash)
    shutil.rmtree(trash, ignore_errors=True)


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def temp_dir_owner(path: Path) -> int | None:
    """Process id encoded in a scratch directory name, if any."""
    if not path.name.startswith(TEMP_PREFIX):
        return None
    parts = path.name.rsplit("-", 2)
    if len(parts) != 3 or not parts[1].isdigit():
        return None
    return int(parts[1])


def sweep_scratch(directory: Path) -> None:
    """Delete leftover trash directories and scratch installs of dead processes."""
    if not directory.exists():
        return
    for entry in directory.iterdir():
        if entry.name.startswith(TRASH_PREFIX):
            shutil.rmtree(entry, ignore_errors=True)
            continue
        owner = temp_dir_owner(entry)
        if owner is not None and not pid_alive(owner):
            logger.debug("Removing abandoned install directory %s", entry)
            shutil.rmtree(entry, ignore_errors=True)
