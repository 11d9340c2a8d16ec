"""Commands that change project and shell preferences."""

from pathlib import Path

import click

from lilyenv.cli.ensure import Ensure
from lilyenv.cli.output import user_output
from lilyenv.core.context import LilyenvContext


@click.command("set-project-directory")
@click.argument("project")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def set_project_directory_cmd(ctx: LilyenvContext, project: str, directory: Path) -> None:
    """Set the directory shells of PROJECT start in."""
    if not directory.is_absolute():
        directory = ctx.cwd / directory
    directory = directory.resolve()
    Ensure.directory_exists(directory)
    ctx.project_registry().set_directory(project, directory)
    user_output(f"Default directory of {project} is now {directory}")


@click.command("unset-project-directory")
@click.argument("project")
@click.pass_obj
def unset_project_directory_cmd(ctx: LilyenvContext, project: str) -> None:
    """Stop starting shells of PROJECT in a fixed directory."""
    ctx.project_registry().set_directory(project, None)
    user_output(f"Default directory of {project} removed")


@click.command("set-shell")
@click.argument("shell")
@click.option("--project", help="Only use SHELL for this project.")
@click.pass_obj
def set_shell_cmd(ctx: LilyenvContext, shell: str, project: str | None) -> None:
    """Set the shell started by activate, globally or for one project."""
    Ensure.invariant(bool(shell.strip()), "Shell must not be empty")
    ctx.project_registry().set_shell(project, shell)
    if project is None:
        user_output(f"Default shell is now {shell}")
    else:
        user_output(f"Shell of {project} is now {shell}")
