import logging
import os

import click

from lilyenv.cli.commands.activate import activate_cmd, site_packages_cmd
from lilyenv.cli.commands.config import config_group
from lilyenv.cli.commands.download import download_cmd, pythons_cmd
from lilyenv.cli.commands.list import list_cmd
from lilyenv.cli.commands.project import (
    set_project_directory_cmd,
    set_shell_cmd,
    unset_project_directory_cmd,
)
from lilyenv.cli.commands.remove import (
    remove_project_cmd,
    remove_python_cmd,
    remove_virtualenv_cmd,
)
from lilyenv.cli.commands.shell_config import shell_config_cmd
from lilyenv.cli.commands.upgrade import upgrade_cmd
from lilyenv.cli.commands.virtualenv import virtualenv_cmd
from lilyenv.cli.output import user_output
from lilyenv.core.context import create_context
from lilyenv.core.errors import LilyenvError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

# Enable debug logging if LILYENV_DEBUG environment variable is set
if os.getenv("LILYENV_DEBUG"):
    logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")


class LilyenvGroup(click.Group):
    """Reports LilyenvError raised by any command and exits with its code."""

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except LilyenvError as e:
            user_output(click.style("Error: ", fg="red") + f"{e.stage}: {e.message}")
            raise SystemExit(e.exit_code) from None


@click.group(cls=LilyenvGroup, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="lilyenv")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Manage standalone Python builds and per-project virtualenvs."""
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context()


cli.add_command(activate_cmd)
cli.add_command(config_group)
cli.add_command(download_cmd)
cli.add_command(list_cmd)
cli.add_command(pythons_cmd)
cli.add_command(remove_project_cmd)
cli.add_command(remove_python_cmd)
cli.add_command(remove_virtualenv_cmd)
cli.add_command(set_project_directory_cmd)
cli.add_command(set_shell_cmd)
cli.add_command(shell_config_cmd)
cli.add_command(site_packages_cmd)
cli.add_command(unset_project_directory_cmd)
cli.add_command(upgrade_cmd)
cli.add_command(virtualenv_cmd)


def main() -> None:
    """CLI entry point used by the `lilyenv` console script."""
    cli()
