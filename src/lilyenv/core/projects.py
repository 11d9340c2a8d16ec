"""Projects and their virtualenvs."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from lilyenv.core.errors import (
    AmbiguousError,
    ParseError,
    RemovalFailed,
    UnknownProject,
    UnknownVirtualenv,
    VenvCreationFailed,
)
from lilyenv.core.layout import discard_tree
from lilyenv.core.registry import InstalledInterpreter, Project, Registry, Virtualenv
from lilyenv.core.registry_store import RegistryStore
from lilyenv.core.shell import Shell
from lilyenv.core.time import Time
from lilyenv.core.venv_creator import VenvCreator
from lilyenv.core.versions import BuildId, VersionSpec, matches

logger = logging.getLogger(__name__)


def validate_project_name(name: str) -> str:
    """Project names become directory names, so they must be a single path component.

    Raises:
        ParseError: If the name cannot be used as a directory name
    """
    if not name or name in (".", ".."):
        raise ParseError(f"{name!r} is not a valid project name")
    if "/" in name or "\\" in name:
        raise ParseError(f"{name!r} is not a valid project name: it must not contain a path separator")
    if name.startswith("."):
        raise ParseError(f"{name!r} is not a valid project name: it must not start with '.'")
    return name


@dataclass(frozen=True)
class ProjectListing:
    """Virtualenvs grouped by project, each group newest build first.

    An empty listing means no virtualenvs exist yet; it is not an error.
    """

    groups: list[tuple[str, list[Virtualenv]]]

    @property
    def is_empty(self) -> bool:
        return not any(venvs for _, venvs in self.groups)


class ProjectRegistry:
    """Project records plus the virtualenvs owned by each project."""

    def __init__(self, registry_store: RegistryStore, *, time: Time) -> None:
        self._registry_store = registry_store
        self._layout = registry_store.layout
        self._time = time

    def get_project(self, name: str) -> Project | None:
        return self._registry_store.snapshot().projects.get(name)

    def get_or_create_project(self, name: str) -> Project:
        validate_project_name(name)
        with self._registry_store.transaction() as registry:
            project = registry.projects.get(name)
            if project is None:
                project = Project(name=name)
                registry.projects[name] = project
            return project

    def set_directory(self, name: str, directory: Path | None) -> Project:
        """Set or clear the directory a project's shells start in.

        Setting creates the project if needed; clearing requires it to exist.
        """
        validate_project_name(name)
        with self._registry_store.transaction() as registry:
            project = registry.projects.get(name)
            if project is None:
                if directory is None:
                    raise UnknownProject(f"Project {name} does not exist.")
                project = Project(name=name)
            project = replace(project, directory=directory)
            registry.projects[name] = project
            return project

    def set_shell(self, name: str | None, shell: str) -> None:
        """Set the shell for one project, or the global default when name is None."""
        with self._registry_store.transaction() as registry:
            if name is None:
                registry.shell = shell
                return
            validate_project_name(name)
            project = registry.projects.get(name, Project(name=name))
            registry.projects[name] = replace(project, shell=shell)

    def resolve_shell(self, name: str, shell: Shell, environ: Mapping[str, str]) -> str:
        """Shell to launch for a project: its own preference, the global one, or the caller's."""
        registry = self._registry_store.snapshot()
        project = registry.projects.get(name)
        if project is not None and project.shell:
            return project.shell
        if registry.shell:
            return registry.shell
        return shell.detect_shell(environ)

    def global_shell(self) -> str | None:
        return self._registry_store.snapshot().shell

    def remove_project(self, name: str) -> list[Virtualenv]:
        """Remove a project together with every virtualenv it owns.

        Returns:
            The removed virtualenvs

        Raises:
            UnknownProject: If the project does not exist
        """
        validate_project_name(name)
        with self._registry_store.transaction() as registry:
            if name not in registry.projects:
                raise UnknownProject(f"Project {name} does not exist.")
            removed = registry.virtualenvs_for(name)
            try:
                discard_tree(self._layout.project_dir(name))
            except OSError as e:
                raise RemovalFailed(f"Could not remove project {name}: {e}") from e
            for venv in removed:
                del registry.virtualenvs[venv.key]
            del registry.projects[name]
            logger.debug("Removed project %s with %d virtualenvs", name, len(removed))
            return removed

    def get_virtualenv(self, project: str, build: BuildId) -> Virtualenv | None:
        return self._registry_store.snapshot().virtualenvs.get((project, build))

    def add_virtualenv(self, project: str, build: BuildId, directory: Path) -> Virtualenv:
        """Record a virtualenv that already exists on disk, creating its project if needed."""
        validate_project_name(project)
        with self._registry_store.transaction(adopting=directory) as registry:
            return self._record_virtualenv(registry, project, build, directory)

    def ensure_virtualenv(
        self, project: str, interpreter: InstalledInterpreter, creator: VenvCreator
    ) -> Virtualenv:
        """Return the project's virtualenv for the interpreter, creating it if needed.

        Creation happens under the store lock, so a concurrent invocation for
        the same project and build waits and then reuses the result.

        Raises:
            VenvCreationFailed: If the virtualenv could not be created; no record is kept
        """
        validate_project_name(project)
        build = interpreter.build
        with self._registry_store.transaction() as registry:
            existing = registry.virtualenvs.get((project, build))
            if existing is not None:
                logger.debug("Reusing virtualenv %s", existing.path)
                return existing

            target = self._layout.virtualenv_dir(project, build)
            try:
                discard_tree(target)
                target.parent.mkdir(parents=True, exist_ok=True)
                creator.create(interpreter.executable, target, prompt=f"{project} ({build})")
            except OSError as e:
                discard_tree(target)
                raise VenvCreationFailed(f"Could not create {target}: {e}") from e
            except VenvCreationFailed:
                discard_tree(target)
                raise
            return self._record_virtualenv(registry, project, build, target)

    def _record_virtualenv(
        self, registry: Registry, project: str, build: BuildId, directory: Path
    ) -> Virtualenv:
        existing = registry.virtualenvs.get((project, build))
        if existing is not None:
            return existing
        registry.projects.setdefault(project, Project(name=project))
        venv = Virtualenv(project=project, build=build, path=directory, created_at=self._time.now())
        registry.virtualenvs[venv.key] = venv
        return venv

    def remove_virtualenv(self, project: str, build: BuildId) -> Virtualenv:
        """Delete one virtualenv. The project itself is kept.

        Raises:
            UnknownVirtualenv: If the project has no virtualenv for that build
        """
        validate_project_name(project)
        with self._registry_store.transaction() as registry:
            venv = registry.virtualenvs.get((project, build))
            if venv is None:
                raise UnknownVirtualenv(f"Project {project} has no virtualenv for Python {build}.")
            try:
                discard_tree(venv.path)
            except OSError as e:
                raise RemovalFailed(f"Could not remove {venv.path}: {e}") from e
            del registry.virtualenvs[venv.key]
            return venv

    def find_virtualenv(self, project: str, spec: VersionSpec) -> Virtualenv:
        """The single virtualenv of a project matching a version request.

        Raises:
            UnknownVirtualenv: If none matches
            AmbiguousError: If several match
        """
        validate_project_name(project)
        registry = self._registry_store.snapshot()
        candidates = [venv for venv in registry.virtualenvs_for(project) if matches(spec, venv.build)]
        if not candidates:
            raise UnknownVirtualenv(f"Project {project} has no virtualenv for Python {spec}.")
        if len(candidates) > 1:
            names = ", ".join(venv.build.name for venv in candidates)
            raise AmbiguousError(f"{spec} matches several virtualenvs of {project}: {names}")
        return candidates[0]

    def list(self, project: str | None = None) -> ProjectListing:
        """Virtualenvs of one project, or of every project.

        Raises:
            UnknownProject: If a project is named but does not exist
        """
        registry = self._registry_store.snapshot()
        if project is not None:
            if project not in registry.projects:
                raise UnknownProject(f"Project {project} does not exist.")
            return ProjectListing(groups=[(project, registry.virtualenvs_for(project))])
        return ProjectListing(
            groups=[(name, registry.virtualenvs_for(name)) for name in sorted(registry.projects)]
        )


def site_packages_dir(venv: Virtualenv) -> Path:
    """The site-packages directory inside a virtualenv.

    Raises:
        UnknownVirtualenv: If the virtualenv has no site-packages directory
    """
    candidates = sorted((venv.path / "lib").glob("python*/site-packages"))
    if not candidates:
        raise UnknownVirtualenv(f"No site-packages directory found in {venv.path}")
    return candidates[0]
