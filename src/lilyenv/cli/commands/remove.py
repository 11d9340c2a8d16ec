"""Commands that delete virtualenvs, projects and Python builds."""

import click

from lilyenv.cli.output import user_output
from lilyenv.core.context import LilyenvContext
from lilyenv.core.versions import parse_spec


@click.command("remove-virtualenv")
@click.argument("project")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Remove the virtualenv of a debug build.")
@click.pass_obj
def remove_virtualenv_cmd(ctx: LilyenvContext, project: str, version: str, debug: bool) -> None:
    """Remove the PROJECT virtualenv for Python VERSION."""
    spec = parse_spec(version, debug=debug)
    projects = ctx.project_registry()
    venv = projects.find_virtualenv(project, spec)
    projects.remove_virtualenv(venv.project, venv.build)
    user_output(f"Removed virtualenv {venv.project} ({venv.build})")


@click.command("remove-project")
@click.argument("project")
@click.pass_obj
def remove_project_cmd(ctx: LilyenvContext, project: str) -> None:
    """Remove PROJECT and all of its virtualenvs."""
    removed = ctx.project_registry().remove_project(project)
    user_output(f"Removed project {project} and {len(removed)} virtualenv(s)")


@click.command("remove-python")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Remove a debug build.")
@click.pass_obj
def remove_python_cmd(ctx: LilyenvContext, version: str, debug: bool) -> None:
    """Remove an installed Python VERSION.

    Refuses while any virtualenv still uses it; remove those virtualenvs first.
    """
    spec = parse_spec(version, debug=debug)
    interpreters = ctx.interpreter_store()
    interpreter = interpreters.select(spec)
    interpreters.remove(interpreter.build)
    user_output(f"Removed Python {interpreter.build}")
