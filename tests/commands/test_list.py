"""CLI tests for the list command."""

from pathlib import Path

from click.testing import CliRunner

from lilyenv.cli.cli import cli
from tests.fakes.network import catalog_entry
from tests.test_utils.env_helpers import lilyenv_env

CATALOG = [catalog_entry("3.13.1"), catalog_entry("3.12.2"), catalog_entry("3.11.9")]


def _with_virtualenvs(tmp_path: Path):
    env = lilyenv_env(tmp_path, catalog=CATALOG)
    runner = CliRunner()
    for project, version in [("web", "3.11"), ("api", "3.12"), ("api", "3.13")]:
        result = runner.invoke(cli, ["virtualenv", project, version], obj=env.ctx)
        assert result.exit_code == 0, result.output
    return env


def test_list_all_projects(tmp_path: Path) -> None:
    env = _with_virtualenvs(tmp_path)

    result = CliRunner().invoke(cli, ["list"], obj=env.ctx)

    assert result.exit_code == 0, result.output
    assert result.stdout == "api: 3.13.1 3.12.2\nweb: 3.11.9\n"


def test_list_one_project(tmp_path: Path) -> None:
    env = _with_virtualenvs(tmp_path)

    result = CliRunner().invoke(cli, ["list", "api"], obj=env.ctx)

    assert result.exit_code == 0, result.output
    assert result.stdout == "3.13.1 3.12.2\n"


def test_list_empty_store(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)

    result = CliRunner().invoke(cli, ["list"], obj=env.ctx)

    assert result.exit_code == 0
    assert result.stdout == ""
    assert "No virtualenvs yet" in result.stderr


def test_list_unknown_project(tmp_path: Path) -> None:
    env = lilyenv_env(tmp_path)

    result = CliRunner().invoke(cli, ["list", "ghost"], obj=env.ctx)

    assert result.exit_code == 1
    assert "Error: Project: Project ghost does not exist." in result.stderr
