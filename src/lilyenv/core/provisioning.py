"""Provisioning: from a version request to a ready, activatable virtualenv.

Each step is a named state. Every state is reachable again on a later run
without redoing the work of the states before it, which is what makes
repeated and interrupted invocations safe:

    Requested -> Resolved -> InterpreterReady -> VirtualenvReady -> Activated

Failures halt the chain with ResolutionError, DownloadFailed or
VenvCreationFailed and never leave a partial record behind.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from lilyenv.core.activation import ActivationDescriptor, build_activation
from lilyenv.core.catalog import CatalogEntry, resolve, upgrade_spec
from lilyenv.core.errors import AmbiguousError, ParseError
from lilyenv.core.interpreters import InterpreterStore
from lilyenv.core.network import Network
from lilyenv.core.projects import ProjectRegistry, validate_project_name
from lilyenv.core.registry import InstalledInterpreter, Virtualenv
from lilyenv.core.registry_store import RegistryStore
from lilyenv.core.venv_creator import VenvCreator
from lilyenv.core.versions import BuildId, VersionSpec, matches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requested:
    spec: VersionSpec


@dataclass(frozen=True)
class Resolved:
    build: BuildId
    # "virtualenv", "installed" or "catalog"
    source: str


@dataclass(frozen=True)
class InterpreterReady:
    interpreter: InstalledInterpreter


@dataclass(frozen=True)
class VirtualenvReady:
    virtualenv: Virtualenv
    interpreter: InstalledInterpreter


@dataclass(frozen=True)
class Activated:
    descriptor: ActivationDescriptor


ProvisioningState = Requested | Resolved | InterpreterReady | VirtualenvReady | Activated


@dataclass(frozen=True)
class UpgradeResult:
    target: BuildId
    up_to_date: bool
    migrated: list[Virtualenv] = field(default_factory=list)
    removed: list[BuildId] = field(default_factory=list)


class Provisioner:
    """Drives the provisioning states for one invocation.

    The remote catalog is fetched at most once, and only when nothing
    installed locally satisfies the request.
    """

    def __init__(
        self,
        registry_store: RegistryStore,
        *,
        interpreters: InterpreterStore,
        projects: ProjectRegistry,
        network: Network,
        venv_creator: VenvCreator,
        platform: Callable[[], str],
    ) -> None:
        self._registry_store = registry_store
        self._interpreters = interpreters
        self._projects = projects
        self._network = network
        self._venv_creator = venv_creator
        self._platform = platform
        self._catalog: list[CatalogEntry] | None = None
        self._trace: list[ProvisioningState] = []

    @property
    def trace(self) -> list[ProvisioningState]:
        """States entered so far, in order."""
        return list(self._trace)

    def catalog(self) -> list[CatalogEntry]:
        if self._catalog is None:
            self._catalog = self._network.fetch_catalog(self._platform())
            logger.debug("Catalog has %d builds", len(self._catalog))
        return self._catalog

    def _enter(self, state: ProvisioningState) -> None:
        logger.debug("Provisioning state: %s", state)
        self._trace.append(state)


    # Transitions

    def request(self, spec: VersionSpec) -> Requested:
        state = Requested(spec)
        self._enter(state)
        return state

    def resolve(
        self, requested: Requested, *, project: str | None = None, exact_latest: bool = True
    ) -> Resolved:
        """Pick the build for a request, preferring what already exists locally.

        An existing virtualenv of the project wins, then an installed
        interpreter, then the newest match in the remote catalog.

        Raises:
            NotFoundError: If nothing matches
            AmbiguousError: If exact_latest is False and several builds match
        """
        spec = requested.spec
        registry = self._registry_store.snapshot()
        state: Resolved | None = None

        if project is not None:
            venv_builds = [
                venv.build for venv in registry.virtualenvs_for(project) if matches(spec, venv.build)
            ]
            if venv_builds:
                self._check_exact(spec, venv_builds, exact_latest)
                state = Resolved(venv_builds[0], source="virtualenv")

        if state is None:
            installed = sorted(
                (build for build in registry.interpreters if matches(spec, build)),
                key=lambda build: build.precedence,
                reverse=True,
            )
            if installed:
                self._check_exact(spec, installed, exact_latest)
                state = Resolved(installed[0], source="installed")

        if state is None:
            state = Resolved(resolve(self.catalog(), spec, exact_latest=exact_latest), source="catalog")

        self._enter(state)
        return state

    def ensure_interpreter(self, resolved: Resolved) -> InterpreterReady:
        interpreter = self._interpreters.get(resolved.build)
        if interpreter is None:
            interpreter = self._interpreters.ensure_installed(resolved.build, self.catalog())
        state = InterpreterReady(interpreter)
        self._enter(state)
        return state

    def ensure_virtualenv(self, project: str, ready: InterpreterReady) -> VirtualenvReady:
        venv = self._projects.ensure_virtualenv(project, ready.interpreter, self._venv_creator)
        state = VirtualenvReady(venv, ready.interpreter)
        self._enter(state)
        return state

    def activated(self, ready: VirtualenvReady) -> Activated:
        state = Activated(build_activation(ready.virtualenv, ready.interpreter))
        self._enter(state)
        return state

    # Commands

    def download(self, spec: VersionSpec, *, exact_latest: bool = True) -> InstalledInterpreter:
        """Requested -> InterpreterReady."""
        resolved = self.resolve(self.request(spec), exact_latest=exact_latest)
        return self.ensure_interpreter(resolved).interpreter

    def virtualenv(self, project: str, spec: VersionSpec) -> Virtualenv:
        """Requested -> VirtualenvReady."""
        validate_project_name(project)
        resolved = self.resolve(self.request(spec), project=project)
        ready = self.ensure_interpreter(resolved)
        return self.ensure_virtualenv(project, ready).virtualenv

    def activate(self, project: str, spec: VersionSpec) -> ActivationDescriptor:
        """Requested -> Activated."""
        validate_project_name(project)
        resolved = self.resolve(self.request(spec), project=project)
        ready = self.ensure_interpreter(resolved)
        return self.activated(self.ensure_virtualenv(project, ready)).descriptor

    def upgrade(self, spec: VersionSpec, *, project: str | None = None) -> UpgradeResult:
        """Move a ``major.minor`` series to its newest stable bugfix release.

        Virtualenvs on superseded builds are recreated on the new build (their
        installed packages are not carried over), and superseded interpreters
        are removed once no virtualenv uses them. When the newest build is
        installed and nothing still uses an older one, nothing is done.

        Raises:
            ParseError: If the request is not of the form ``major.minor``
        """
        if spec.minor is None or spec.patch is not None or spec.prerelease is not None:
            raise ParseError(f"Only x.y Python versions can be upgraded, not {spec}")
        if project is not None:
            validate_project_name(project)
        self.request(spec)

        newest = self._interpreters.find_installed(spec)
        wanted = upgrade_spec(newest.build) if newest is not None else spec
        resolved = Resolved(resolve(self.catalog(), wanted), source="catalog")
        self._enter(resolved)
        target = resolved.build

        registry = self._registry_store.snapshot()
        stale = [
            venv
            for venv in registry.virtualenvs.values()
            if matches(spec, venv.build)
            and venv.build != target
            and (project is None or venv.project == project)
        ]
        if target in registry.interpreters and not stale:
            logger.debug("%s is already the newest %s build", target, spec)
            return UpgradeResult(target=target, up_to_date=True)

        ready = self.ensure_interpreter(resolved)
        migrated = []
        for venv in sorted(stale, key=lambda v: (v.project, v.build.name)):
            # the old virtualenv goes only once its replacement exists
            migrated.append(self.ensure_virtualenv(venv.project, ready).virtualenv)
            self._projects.remove_virtualenv(venv.project, venv.build)

        superseded = [
            build for build in registry.interpreters if matches(spec, build) and build != target
        ]
        registry = self._registry_store.snapshot()
        removed = []
        for build in sorted(superseded, key=lambda b: b.precedence):
            if build in registry.interpreters and not registry.dependents(build):
                self._interpreters.remove(build)
                removed.append(build)
        return UpgradeResult(target=target, up_to_date=False, migrated=migrated, removed=removed)

    @staticmethod
    def _check_exact(spec: VersionSpec, builds: list[BuildId], exact_latest: bool) -> None:
        if not exact_latest and len(set(builds)) > 1:
            names = ", ".join(build.name for build in builds)
            raise AmbiguousError(f"{spec} matches several builds: {names}")
