"""The persisted registry aggregate and its JSON representation.

The registry is loaded per invocation, mutated in memory and written back by
the command that changed it. Directories are never stored: they are derived
from the store layout, so moving the store root does not invalidate records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from lilyenv.core.errors import LilyenvError, StateCorruption
from lilyenv.core.layout import StoreLayout
from lilyenv.core.versions import BuildId

REGISTRY_FORMAT = 1


@dataclass(frozen=True)
class InstalledInterpreter:
    """An interpreter build present in the store."""

    build: BuildId
    directory: Path
    installed_at: datetime

    @property
    def python_root(self) -> Path:
        return self.directory / "python"

    @property
    def executable(self) -> Path:
        return self.python_root / "bin" / "python3"

    @property
    def library_dir(self) -> Path:
        return self.python_root / "lib"


@dataclass(frozen=True)
class Project:
    name: str
    directory: Path | None = None
    shell: str | None = None


@dataclass(frozen=True)
class Virtualenv:
    """A project virtualenv built from one interpreter build."""

    project: str
    build: BuildId
    path: Path
    created_at: datetime

    @property
    def key(self) -> tuple[str, BuildId]:
        return (self.project, self.build)

    @property
    def bin_dir(self) -> Path:
        return self.path / "bin"


@dataclass(frozen=True)
class Reservation:
    """Marks a build as being installed by another invocation."""

    build: BuildId
    pid: int
    started_at: datetime


@dataclass
class Registry:
    interpreters: dict[BuildId, InstalledInterpreter] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)
    virtualenvs: dict[tuple[str, BuildId], Virtualenv] = field(default_factory=dict)
    shell: str | None = None
    installing: dict[BuildId, Reservation] = field(default_factory=dict)

    def virtualenvs_for(self, project: str) -> list[Virtualenv]:
        """Virtualenvs of one project, newest build first."""
        venvs = [venv for (name, _), venv in self.virtualenvs.items() if name == project]
        return sorted(venvs, key=lambda venv: (venv.build.precedence, venv.build.variant.value), reverse=True)

    def dependents(self, build: BuildId) -> list[Virtualenv]:
        """Virtualenvs built from the given interpreter."""
        return [venv for venv in self.virtualenvs.values() if venv.build == build]


def _dump_time(value: datetime) -> str:
    return value.isoformat()


def registry_to_json(registry: Registry) -> dict[str, Any]:
    return {
        "format": REGISTRY_FORMAT,
        "shell": registry.shell,
        "interpreters": {
            build.name: {"installed_at": _dump_time(record.installed_at)}
            for build, record in sorted(registry.interpreters.items(), key=lambda item: item[0].name)
        },
        "projects": {
            name: {
                "directory": None if project.directory is None else str(project.directory),
                "shell": project.shell,
            }
            for name, project in sorted(registry.projects.items())
        },
        "virtualenvs": [
            {
                "project": venv.project,
                "build": venv.build.name,
                "created_at": _dump_time(venv.created_at),
            }
            for venv in sorted(registry.virtualenvs.values(), key=lambda v: (v.project, v.build.name))
        ],
        "installing": {
            build.name: {"pid": reservation.pid, "started_at": _dump_time(reservation.started_at)}
            for build, reservation in registry.installing.items()
        },
    }


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


def registry_from_json(data: Any, layout: StoreLayout) -> Registry:
    """Rebuild a Registry from its JSON form. Unknown keys are ignored.

    Raises:
        StateCorruption: If the data does not have the registry structure
    """
    try:
        if not isinstance(data, dict):
            raise TypeError("registry is not a JSON object")

        registry = Registry(shell=_optional_str(data.get("shell")))

        for name, record in dict(data.get("interpreters", {})).items():
            build = BuildId.parse_name(name)
            registry.interpreters[build] = InstalledInterpreter(
                build=build,
                directory=layout.python_dir(build),
                installed_at=datetime.fromisoformat(record["installed_at"]),
            )

        for name, record in dict(data.get("projects", {})).items():
            directory = _optional_str(record.get("directory"))
            registry.projects[name] = Project(
                name=name,
                directory=None if directory is None else Path(directory),
                shell=_optional_str(record.get("shell")),
            )

        for record in list(data.get("virtualenvs", [])):
            project = record["project"]
            build = BuildId.parse_name(record["build"])
            registry.projects.setdefault(project, Project(name=project))
            registry.virtualenvs[(project, build)] = Virtualenv(
                project=project,
                build=build,
                path=layout.virtualenv_dir(project, build),
                created_at=datetime.fromisoformat(record["created_at"]),
            )

        for name, record in dict(data.get("installing", {})).items():
            build = BuildId.parse_name(name)
            registry.installing[build] = Reservation(
                build=build,
                pid=int(record["pid"]),
                started_at=datetime.fromisoformat(record["started_at"]),
            )
    except (KeyError, TypeError, ValueError, AttributeError, LilyenvError) as e:
        raise StateCorruption(
            f"The registry at {layout.registry_path} is corrupt ({e}).\n"
            "Refusing to continue; inspect or move the file aside."
        ) from e

    return registry
