"""Commands that start an interactive shell: activate and site-packages."""

import click

from lilyenv.cli.ensure import Ensure
from lilyenv.core.context import LilyenvContext
from lilyenv.core.projects import site_packages_dir
from lilyenv.core.versions import parse_spec


@click.command("activate")
@click.argument("project")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Use a debug build of Python.")
@click.pass_obj
def activate_cmd(ctx: LilyenvContext, project: str, version: str, debug: bool) -> None:
    """Start a shell with the PROJECT virtualenv for Python VERSION activated.

    Anything missing (the Python build, the virtualenv) is created first. The
    shell starts in the project's default directory when one is set.
    """
    spec = parse_spec(version, debug=debug)
    descriptor = ctx.provisioner().activate(project, spec)

    projects = ctx.project_registry()
    record = projects.get_project(project)
    cwd = record.directory if record is not None else None
    if cwd is not None:
        Ensure.directory_exists(
            cwd,
            f"Default directory of {project} no longer exists: {cwd}\n"
            f"Change it with: lilyenv set-project-directory {project} DIRECTORY",
        )

    shell = projects.resolve_shell(project, ctx.shell, ctx.environ)
    exit_code = ctx.shell.spawn(shell, env=descriptor.environment(ctx.environ), cwd=cwd)
    if exit_code != 0:
        raise SystemExit(exit_code)


@click.command("site-packages")
@click.argument("project")
@click.argument("version")
@click.option("--debug", is_flag=True, help="Use the virtualenv of a debug build.")
@click.pass_obj
def site_packages_cmd(ctx: LilyenvContext, project: str, version: str, debug: bool) -> None:
    """Start a shell in the site-packages directory of a PROJECT virtualenv."""
    spec = parse_spec(version, debug=debug)
    projects = ctx.project_registry()
    venv = projects.find_virtualenv(project, spec)
    shell = projects.resolve_shell(project, ctx.shell, ctx.environ)
    exit_code = ctx.shell.spawn(shell, env=ctx.environ, cwd=site_packages_dir(venv))
    if exit_code != 0:
        raise SystemExit(exit_code)
