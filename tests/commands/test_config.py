"""CLI tests for the config command group."""

from pathlib import Path

from click.testing import CliRunner

from lilyenv.cli.cli import cli
from lilyenv.core.context import LilyenvContext
from lilyenv.core.global_config import InMemoryGlobalConfigStore
from tests.test_utils.env_helpers import store_config


def _context(tmp_path: Path, store: InMemoryGlobalConfigStore | None = None) -> LilyenvContext:
    config = store_config(tmp_path)
    if store is None:
        store = InMemoryGlobalConfigStore()
    return LilyenvContext.for_test(
        config_store=store,
        global_config=store.load({"LILYENV_HOME": str(config.store_root), "GITHUB_TOKEN": "ghp_x"}),
    )


def test_config_list(tmp_path: Path) -> None:
    ctx = _context(tmp_path)

    result = CliRunner().invoke(cli, ["config", "list"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert f"store_root={(tmp_path / 'store').resolve()}\n" in result.stdout
    assert "github_token=********\n" in result.stdout
    assert "ghp_x" not in result.output


def test_config_get(tmp_path: Path) -> None:
    ctx = _context(tmp_path)

    result = CliRunner().invoke(cli, ["config", "get", "lock_timeout"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert result.stdout == "30.0\n"


def test_config_get_invalid_key(tmp_path: Path) -> None:
    ctx = _context(tmp_path)

    result = CliRunner().invoke(cli, ["config", "get", "colour"], obj=ctx)

    assert result.exit_code == 1
    assert "Invalid key: colour" in result.stderr


def test_config_set_persists(tmp_path: Path) -> None:
    store = InMemoryGlobalConfigStore()
    ctx = _context(tmp_path, store)

    result = CliRunner().invoke(cli, ["config", "set", "lock_timeout", "2.5"], obj=ctx)

    assert result.exit_code == 0, result.output
    assert "Set lock_timeout=2.5" in result.stderr
    assert store.load({}).lock_timeout == 2.5


def test_config_set_invalid_value(tmp_path: Path) -> None:
    ctx = _context(tmp_path)

    result = CliRunner().invoke(cli, ["config", "set", "lock_timeout", "soon"], obj=ctx)

    assert result.exit_code == 2
    assert "Error: Configuration: Invalid value for lock_timeout" in result.stderr
