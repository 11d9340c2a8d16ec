import click

from lilyenv.cli.output import machine_output, user_output
from lilyenv.core.context import LilyenvContext


@click.command("list")
@click.argument("project", required=False)
@click.pass_obj
def list_cmd(ctx: LilyenvContext, project: str | None) -> None:
    """List all virtualenvs, or those of PROJECT, newest Python first."""
    listing = ctx.project_registry().list(project)

    if project is not None:
        venvs = listing.groups[0][1]
        machine_output(" ".join(venv.build.name for venv in venvs))
        return

    if listing.is_empty:
        user_output("No virtualenvs yet. Create one with: lilyenv virtualenv PROJECT VERSION")
        return

    for name, venvs in listing.groups:
        machine_output(f"{name}: {' '.join(venv.build.name for venv in venvs)}")
