"""Application context with dependency injection."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from lilyenv.core.archive import Archive, TarArchive
from lilyenv.core.global_config import (
    FilesystemGlobalConfigStore,
    GlobalConfig,
    GlobalConfigStore,
    InMemoryGlobalConfigStore,
)
from lilyenv.core.interpreters import InterpreterStore
from lilyenv.core.layout import StoreLayout
from lilyenv.core.network import Network, RealNetwork
from lilyenv.core.platforms import current_platform
from lilyenv.core.projects import ProjectRegistry
from lilyenv.core.provisioning import Provisioner
from lilyenv.core.registry_store import RegistryStore
from lilyenv.core.shell import RealShell, Shell
from lilyenv.core.time import RealTime, Time
from lilyenv.core.venv_creator import RealVenvCreator, VenvCreator


@dataclass(frozen=True)
class LilyenvContext:
    """Immutable context holding all dependencies for lilyenv operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.

    The stores built by the accessor methods are cheap and stateless apart
    from the files they read, so commands create them on demand.
    """

    network: Network
    archive: Archive
    venv_creator: VenvCreator
    shell: Shell
    time: Time
    config_store: GlobalConfigStore
    global_config: GlobalConfig
    environ: Mapping[str, str]
    cwd: Path  # Current working directory at CLI invocation
    platform: str | None  # Target triple; detected on first use when None

    @property
    def layout(self) -> StoreLayout:
        return StoreLayout(root=self.global_config.store_root, cache_dir=self.global_config.cache_dir)

    def target_platform(self) -> str:
        if self.platform is not None:
            return self.platform
        return current_platform()

    def registry_store(self) -> RegistryStore:
        return RegistryStore(
            self.layout, lock_timeout=self.global_config.lock_timeout, time=self.time
        )

    def interpreter_store(self) -> InterpreterStore:
        return InterpreterStore(
            self.registry_store(), network=self.network, archive=self.archive, time=self.time
        )

    def project_registry(self) -> ProjectRegistry:
        return ProjectRegistry(self.registry_store(), time=self.time)

    def provisioner(self) -> Provisioner:
        registry_store = self.registry_store()
        return Provisioner(
            registry_store,
            interpreters=InterpreterStore(
                registry_store, network=self.network, archive=self.archive, time=self.time
            ),
            projects=ProjectRegistry(registry_store, time=self.time),
            network=self.network,
            venv_creator=self.venv_creator,
            platform=self.target_platform,
        )

    @staticmethod
    def for_test(
        network: Network | None = None,
        archive: Archive | None = None,
        venv_creator: VenvCreator | None = None,
        shell: Shell | None = None,
        time: Time | None = None,
        config_store: GlobalConfigStore | None = None,
        global_config: GlobalConfig | None = None,
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        platform: str = "x86_64-unknown-linux-gnu",
    ) -> "LilyenvContext":
        """Create test context with optional pre-configured integration classes.

        Every integration defaults to an empty fake. Tests touching the store
        should pass a global_config rooted in a temporary directory.

        Example:
            >>> network = FakeNetwork(catalog=[catalog_entry("3.12.2")])
            >>> ctx = LilyenvContext.for_test(network=network, global_config=store_config(tmp_path))
        """
        from tests.fakes.archive import FakeArchive
        from tests.fakes.network import FakeNetwork
        from tests.fakes.shell import FakeShell
        from tests.fakes.time import FakeTime
        from tests.fakes.venv_creator import FakeVenvCreator

        if network is None:
            network = FakeNetwork()

        if archive is None:
            archive = FakeArchive()

        if venv_creator is None:
            venv_creator = FakeVenvCreator()

        if shell is None:
            shell = FakeShell()

        if time is None:
            time = FakeTime()

        if global_config is None:
            global_config = GlobalConfig(
                store_root=Path("/test/lilyenv/store"),
                cache_dir=Path("/test/lilyenv/cache"),
            )

        if config_store is None:
            config_store = InMemoryGlobalConfigStore()

        if environ is None:
            environ = {"PATH": "/usr/bin:/bin", "SHELL": "/bin/bash"}

        if cwd is None:
            cwd = Path("/test/default/cwd")

        return LilyenvContext(
            network=network,
            archive=archive,
            venv_creator=venv_creator,
            shell=shell,
            time=time,
            config_store=config_store,
            global_config=global_config,
            environ=environ,
            cwd=cwd,
            platform=platform,
        )


def create_context(config_store: GlobalConfigStore | None = None) -> LilyenvContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.

    Raises:
        ConfigError: If the config file is malformed
    """
    if config_store is None:
        config_store = FilesystemGlobalConfigStore()
    environ = dict(os.environ)
    global_config = config_store.load(environ)

    return LilyenvContext(
        network=RealNetwork(
            timeout=global_config.network_timeout,
            releases=global_config.catalog_releases,
            token=global_config.github_token,
        ),
        archive=TarArchive(),
        venv_creator=RealVenvCreator(),
        shell=RealShell(),
        time=RealTime(),
        config_store=config_store,
        global_config=global_config,
        environ=environ,
        cwd=Path.cwd(),
        platform=None,
    )
