import click

from lilyenv.cli.output import user_output
from lilyenv.core.context import LilyenvContext
from lilyenv.core.versions import parse_spec


@click.command("virtualenv")
@click.argument("project")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Use a debug build of Python.")
@click.pass_obj
def virtualenv_cmd(ctx: LilyenvContext, project: str, version: str, debug: bool) -> None:
    """Create a virtualenv for PROJECT with Python VERSION.

    The Python build is downloaded first if it is not installed yet. Running
    the command again reuses the existing virtualenv.
    """
    spec = parse_spec(version, debug=debug)
    venv = ctx.provisioner().virtualenv(project, spec)
    user_output(f"Virtualenv {venv.project} ({venv.build}) is ready at {venv.path}")
