"""Tests for project records and their virtualenvs."""

from pathlib import Path

import pytest

from lilyenv.core.errors import (
    AmbiguousError,
    ParseError,
    RemovalFailed,
    UnknownProject,
    UnknownVirtualenv,
    VenvCreationFailed,
)
from lilyenv.core.interpreters import InterpreterStore
from lilyenv.core.projects import ProjectRegistry, site_packages_dir, validate_project_name
from lilyenv.core.registry import InstalledInterpreter, Project
from lilyenv.core.versions import BuildId, parse_spec
from tests.fakes.network import catalog_entry
from tests.fakes.shell import FakeShell
from tests.fakes.venv_creator import FakeVenvCreator
from tests.test_utils.env_helpers import LilyenvTestEnv, lilyenv_env


def _install(env: LilyenvTestEnv, *names: str) -> list[InstalledInterpreter]:
    catalog = [catalog_entry(name) for name in names]
    store: InterpreterStore = env.ctx.interpreter_store()
    return [store.ensure_installed(entry.build, catalog) for entry in catalog]


@pytest.mark.parametrize("name", ["api", "my-project", "proj_2", "Web.App"])
def test_valid_project_names(name: str) -> None:
    assert validate_project_name(name) == name


@pytest.mark.parametrize("name", ["", ".", "..", ".hidden", "a/b", "a\\b"])
def test_invalid_project_names(name: str) -> None:
    with pytest.raises(ParseError):
        validate_project_name(name)


def test_ensure_virtualenv_creates_once(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    projects = env.ctx.project_registry()

    first = projects.ensure_virtualenv("api", interpreter, env.venv_creator)
    second = projects.ensure_virtualenv("api", interpreter, env.venv_creator)

    assert first == second
    assert first.path == env.ctx.layout.virtualenv_dir("api", interpreter.build)
    assert env.venv_creator.create_calls == [
        (interpreter.executable, first.path, "api (3.12.2)")
    ]
    assert env.registry().projects == {"api": Project(name="api")}


def test_failed_virtualenv_creation_leaves_nothing(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    creator = FakeVenvCreator(fail_with=VenvCreationFailed("ensurepip failed"))
    projects = env.ctx.project_registry()

    with pytest.raises(VenvCreationFailed, match="ensurepip failed"):
        projects.ensure_virtualenv("api", interpreter, creator)

    assert env.registry().virtualenvs == {}
    assert not env.ctx.layout.virtualenv_dir("api", interpreter.build).exists()


def test_os_error_during_creation_is_venv_creation_failed(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    creator = FakeVenvCreator(fail_with=PermissionError("read-only file system"))

    with pytest.raises(VenvCreationFailed, match="read-only file system"):
        env.ctx.project_registry().ensure_virtualenv("api", interpreter, creator)

    assert env.registry().virtualenvs == {}


def test_remove_project_cascades_only_to_its_virtualenvs(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    old, new = _install(env, "3.11.9", "3.12.2")
    projects = env.ctx.project_registry()
    api_old = projects.ensure_virtualenv("api", old, env.venv_creator)
    projects.ensure_virtualenv("api", new, env.venv_creator)
    web = projects.ensure_virtualenv("web", new, env.venv_creator)

    removed = projects.remove_project("api")

    assert sorted(venv.build.name for venv in removed) == ["3.11.9", "3.12.2"]
    assert not api_old.path.exists()
    assert not env.ctx.layout.project_dir("api").exists()
    registry = env.registry()
    assert list(registry.projects) == ["web"]
    assert list(registry.virtualenvs.values()) == [web]
    assert web.path.exists()
    assert set(registry.interpreters) == {old.build, new.build}


def test_remove_unknown_project(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)

    with pytest.raises(UnknownProject, match="Project ghost does not exist"):
        env.ctx.project_registry().remove_project("ghost")


def test_remove_virtualenv_keeps_project(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    projects = env.ctx.project_registry()
    venv = projects.ensure_virtualenv("api", interpreter, env.venv_creator)

    projects.remove_virtualenv("api", interpreter.build)

    assert not venv.path.exists()
    assert env.registry().virtualenvs == {}
    assert "api" in env.registry().projects
    with pytest.raises(UnknownVirtualenv):
        projects.remove_virtualenv("api", interpreter.build)


def _refuse_discard(path: Path) -> None:
    raise OSError(f"Device or resource busy: {path}")


def test_removal_that_cannot_delete_keeps_records(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    projects = env.ctx.project_registry()
    venv = projects.ensure_virtualenv("api", interpreter, env.venv_creator)
    monkeypatch.setattr("lilyenv.core.projects.discard_tree", _refuse_discard)

    with pytest.raises(RemovalFailed, match="Device or resource busy"):
        projects.remove_virtualenv("api", interpreter.build)
    with pytest.raises(RemovalFailed, match="Could not remove project api"):
        projects.remove_project("api")

    registry = env.registry()
    assert list(registry.projects) == ["api"]
    assert list(registry.virtualenvs.values()) == [venv]
    assert venv.path.is_dir()


def test_find_virtualenv(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    old, new = _install(env, "3.12.1", "3.12.2")
    projects = env.ctx.project_registry()
    projects.ensure_virtualenv("api", old, env.venv_creator)
    projects.ensure_virtualenv("api", new, env.venv_creator)

    assert projects.find_virtualenv("api", parse_spec("3.12.1")).build == old.build
    with pytest.raises(AmbiguousError):
        projects.find_virtualenv("api", parse_spec("3.12"))
    with pytest.raises(UnknownVirtualenv):
        projects.find_virtualenv("api", parse_spec("3.13"))


def test_set_and_clear_directory(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    projects = env.ctx.project_registry()

    projects.set_directory("api", tmp_path / "src")
    assert env.registry().projects["api"].directory == tmp_path / "src"

    projects.set_directory("api", None)
    assert env.registry().projects["api"] == Project(name="api")

    with pytest.raises(UnknownProject):
        projects.set_directory("ghost", None)


def test_resolve_shell_prefers_project_then_global_then_environment(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    projects = env.ctx.project_registry()
    shell = FakeShell(detected_shell="/usr/bin/dash")

    assert projects.resolve_shell("api", shell, {}) == "/usr/bin/dash"

    projects.set_shell(None, "zsh")
    assert projects.global_shell() == "zsh"
    assert projects.resolve_shell("api", shell, {}) == "zsh"

    projects.set_shell("api", "fish")
    assert projects.resolve_shell("api", shell, {}) == "fish"
    assert projects.resolve_shell("web", shell, {}) == "zsh"


def test_list_groups_by_project(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    old, new = _install(env, "3.11.9", "3.12.2")
    projects = env.ctx.project_registry()
    projects.ensure_virtualenv("web", old, env.venv_creator)
    projects.ensure_virtualenv("api", old, env.venv_creator)
    projects.ensure_virtualenv("api", new, env.venv_creator)

    listing = projects.list()

    assert not listing.is_empty
    assert [(name, [venv.build.name for venv in venvs]) for name, venvs in listing.groups] == [
        ("api", ["3.12.2", "3.11.9"]),
        ("web", ["3.11.9"]),
    ]
    assert [venv.build.name for venv in projects.list("web").groups[0][1]] == ["3.11.9"]


def test_empty_listing_is_not_an_error(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    projects = env.ctx.project_registry()
    projects.set_directory("api", tmp_path)

    assert projects.list().is_empty
    assert projects.list("api").is_empty
    with pytest.raises(UnknownProject):
        projects.list("ghost")


def test_site_packages_dir(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    (interpreter,) = _install(env, "3.12.2")
    venv = env.ctx.project_registry().ensure_virtualenv("api", interpreter, env.venv_creator)

    assert site_packages_dir(venv) == venv.path / "lib" / "python3.12" / "site-packages"


def test_add_virtualenv_records_existing_directory(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)
    build = BuildId(3, 12, 2)
    directory = env.ctx.layout.virtualenv_dir("api", build)
    directory.mkdir(parents=True)
    projects: ProjectRegistry = env.ctx.project_registry()

    venv = projects.add_virtualenv("api", build, directory)

    assert projects.get_virtualenv("api", build) == venv
    assert projects.get_project("api") == Project(name="api")
