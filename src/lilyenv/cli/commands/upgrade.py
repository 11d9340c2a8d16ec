import click

from lilyenv.cli.output import user_output
from lilyenv.core.context import LilyenvContext
from lilyenv.core.versions import parse_spec


@click.command("upgrade")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Upgrade the debug builds of the series.")
@click.option("--project", help="Only move the virtualenvs of this project.")
@click.pass_obj
def upgrade_cmd(ctx: LilyenvContext, version: str, debug: bool, project: str | None) -> None:
    """Upgrade a Python VERSION (major.minor) to its latest bugfix release.

    Virtualenvs on older builds of the series are recreated on the new build.
    Packages installed in them are not carried over.
    """
    spec = parse_spec(version, debug=debug)
    result = ctx.provisioner().upgrade(spec, project=project)

    if result.up_to_date:
        user_output(f"Python {result.target} is already up to date.")
        return

    user_output(f"Python {spec} is now {result.target}.")
    for venv in result.migrated:
        user_output(
            click.style("Warning: ", fg="yellow")
            + f"recreated virtualenv {venv.project} on {venv.build}; "
            "reinstall its packages."
        )
    for build in result.removed:
        user_output(f"Removed Python {build}, which nothing uses anymore.")
