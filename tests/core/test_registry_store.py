"""Tests for RegistryStore locking, persistence and reconciliation with the disk."""

import json
import os
from pathlib import Path

import pytest
from filelock import FileLock

from lilyenv.core.errors import LockContention, StateCorruption
from lilyenv.core.layout import StoreLayout
from lilyenv.core.registry import Project, Reservation, Virtualenv
from lilyenv.core.registry_store import RegistryStore
from lilyenv.core.versions import BuildId
from tests.fakes.time import DEFAULT_NOW, FakeTime

BUILD = BuildId(3, 12, 2)


def _store(tmp_path: Path, *, lock_timeout: float = 5.0) -> RegistryStore:
    layout = StoreLayout(root=tmp_path / "store", cache_dir=tmp_path / "cache")
    return RegistryStore(layout, lock_timeout=lock_timeout, time=FakeTime())


def _install_on_disk(layout: StoreLayout, build: BuildId) -> None:
    executable = layout.python_executable(build)
    executable.parent.mkdir(parents=True)
    executable.write_text("#!/bin/sh\n", encoding="utf-8")


def test_snapshot_of_missing_registry_is_empty(tmp_path: Path) -> None:
    store = _store(tmp_path)

    registry = store.snapshot()

    assert registry.interpreters == {}
    assert registry.projects == {}
    assert not store.layout.registry_path.exists()


def test_transaction_persists_changes(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with store.transaction() as registry:
        registry.projects["api"] = Project(name="api", shell="zsh")

    assert store.snapshot().projects == {"api": Project(name="api", shell="zsh")}
    data = json.loads(store.layout.registry_path.read_text(encoding="utf-8"))
    assert data["projects"]["api"] == {"directory": None, "shell": "zsh"}


def test_unchanged_transaction_does_not_write(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.layout.root.mkdir(parents=True)
    store.layout.registry_path.write_text('{"format": 1}', encoding="utf-8")

    with store.transaction() as registry:
        assert registry.projects == {}

    assert store.layout.registry_path.read_text(encoding="utf-8") == '{"format": 1}'


def test_failed_transaction_discards_changes_and_releases_lock(tmp_path: Path) -> None:
    store = _store(tmp_path, lock_timeout=0.1)

    with pytest.raises(RuntimeError):
        with store.transaction() as registry:
            registry.projects["api"] = Project(name="api")
            raise RuntimeError("boom")

    with store.transaction() as registry:
        assert registry.projects == {}


def test_held_lock_raises_lock_contention(tmp_path: Path) -> None:
    store = _store(tmp_path, lock_timeout=0.1)
    store.layout.root.mkdir(parents=True)
    holder = FileLock(str(store.layout.lock_path))

    with holder:
        with pytest.raises(LockContention, match="Another lilyenv process"):
            with store.transaction():
                pass


def test_corrupt_registry_is_reported_and_kept(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.layout.root.mkdir(parents=True)
    store.layout.registry_path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StateCorruption):
        store.snapshot()
    with pytest.raises(StateCorruption):
        with store.transaction():
            pass

    assert store.layout.registry_path.read_text(encoding="utf-8") == "{not json"


def test_reconcile_adopts_unrecorded_interpreter(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _install_on_disk(store.layout, BUILD)
    (store.layout.pythons_dir / "not-a-build").mkdir()
    (store.layout.pythons_dir / "3.11.9").mkdir()

    registry = store.snapshot()

    assert list(registry.interpreters) == [BUILD]
    assert registry.interpreters[BUILD].installed_at == DEFAULT_NOW
    assert not store.layout.registry_path.exists()


def test_reconcile_is_persisted_by_next_transaction(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _install_on_disk(store.layout, BUILD)

    with store.transaction():
        pass

    data = json.loads(store.layout.registry_path.read_text(encoding="utf-8"))
    assert list(data["interpreters"]) == ["3.12.2"]


def test_reconcile_drops_records_of_missing_directories(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _install_on_disk(store.layout, BUILD)
    with store.transaction() as registry:
        venv = Virtualenv(
            project="api",
            build=BUILD,
            path=store.layout.virtualenv_dir("api", BUILD),
            created_at=DEFAULT_NOW,
        )
        registry.virtualenvs[venv.key] = venv
        registry.projects["api"] = Project(name="api")

    # The virtualenv directory was never created and the interpreter is deleted by hand
    (store.layout.python_executable(BUILD)).unlink()

    registry = store.snapshot()

    assert registry.interpreters == {}
    assert registry.virtualenvs == {}
    assert "api" in registry.projects


def test_reconcile_drops_reservations_of_dead_processes(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = _store(tmp_path)
    with store.transaction() as registry:
        registry.installing[BUILD] = Reservation(build=BUILD, pid=os.getpid(), started_at=DEFAULT_NOW)

    assert BUILD in store.snapshot().installing

    monkeypatch.setattr("lilyenv.core.registry_store.pid_alive", lambda pid: False)
    assert store.snapshot().installing == {}


def test_transaction_sweeps_leftover_scratch_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = _store(tmp_path)
    pythons = store.layout.pythons_dir
    trash = pythons / ".trash-0123abcd"
    abandoned = pythons / ".tmp-3.12.2-999999-0123abcd"
    running = pythons / f".tmp-3.12.2-{os.getpid()}-4567cdef"
    venv_trash = store.layout.project_dir("api") / ".trash-89abcdef"
    for directory in (trash, abandoned, running, venv_trash):
        directory.mkdir(parents=True)
    monkeypatch.setattr(
        "lilyenv.core.layout.pid_alive", lambda pid: pid == os.getpid()
    )

    with store.transaction():
        pass

    assert not trash.exists()
    assert not abandoned.exists()
    assert not venv_trash.exists()
    assert running.exists()


def test_transaction_removes_unrecorded_virtualenv_directories(tmp_path: Path) -> None:
    store = _store(tmp_path)
    layout = store.layout
    recorded = layout.virtualenv_dir("api", BUILD)
    recorded.mkdir(parents=True)
    with store.transaction(adopting=recorded) as registry:
        venv = Virtualenv(project="api", build=BUILD, path=recorded, created_at=DEFAULT_NOW)
        registry.virtualenvs[venv.key] = venv
        registry.projects["api"] = Project(name="api")

    orphan = layout.virtualenv_dir("api", BuildId(3, 11, 9))
    other_orphan = layout.virtualenv_dir("web", BUILD)
    unrelated = layout.project_dir("api") / "notes"
    adopted = layout.virtualenv_dir("tools", BUILD)
    for directory in (orphan, other_orphan, unrelated, adopted):
        directory.mkdir(parents=True)

    store.snapshot()
    assert orphan.exists()

    with store.transaction(adopting=adopted):
        pass

    assert recorded.is_dir()
    assert not orphan.exists()
    assert not other_orphan.exists()
    assert unrelated.is_dir()
    assert adopted.is_dir()
