"""Commands for the interpreter store: download and pythons."""

import click
from rich.table import Table

from lilyenv.cli.output import table_console, user_output
from lilyenv.core.catalog import group_by_series
from lilyenv.core.context import LilyenvContext
from lilyenv.core.versions import parse_spec


def _format_size(size: int | None) -> str:
    if size is None:
        return "-"
    return f"{size / (1024 * 1024):.1f} MiB"


def _print_available(ctx: LilyenvContext) -> None:
    """Print every downloadable build, newest series first. Never writes state."""
    catalog = ctx.network.fetch_catalog(ctx.target_platform())
    installed = set(ctx.registry_store().snapshot().interpreters)

    groups = group_by_series(catalog)
    if not groups:
        user_output("No Python builds are available for this platform.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("series", style="cyan", no_wrap=True)
    table.add_column("build", no_wrap=True)
    table.add_column("release", no_wrap=True)
    table.add_column("size", justify="right", no_wrap=True)
    table.add_column("installed", no_wrap=True)

    for series, entries in groups:
        for index, entry in enumerate(entries):
            table.add_row(
                series if index == 0 else "",
                entry.build.name,
                entry.release_tag,
                _format_size(entry.size),
                "yes" if entry.build in installed else "",
            )

    table_console().print(table)


@click.command("download")
@click.argument("version", required=False)
@click.option("--debug", is_flag=True, help="Download a debug build.")
@click.option(
    "--exact",
    is_flag=True,
    help="Fail instead of picking the newest build when VERSION matches several.",
)
@click.pass_obj
def download_cmd(ctx: LilyenvContext, version: str | None, debug: bool, exact: bool) -> None:
    """Download a Python VERSION, or list the versions available to download."""
    if version is None:
        _print_available(ctx)
        return

    spec = parse_spec(version, debug=debug)
    interpreter = ctx.provisioner().download(spec, exact_latest=not exact)
    user_output(f"Python {interpreter.build} is installed at {interpreter.directory}")


@click.command("pythons")
@click.pass_obj
def pythons_cmd(ctx: LilyenvContext) -> None:
    """List installed Python builds, newest first."""
    interpreters = ctx.interpreter_store().list_installed()
    if not interpreters:
        user_output("No Python builds installed yet. Install one with: lilyenv download VERSION")
        return

    registry = ctx.registry_store().snapshot()
    table = Table(show_header=True, header_style="bold")
    table.add_column("build", style="cyan", no_wrap=True)
    table.add_column("installed", no_wrap=True)
    table.add_column("virtualenvs", justify="right", no_wrap=True)
    table.add_column("path", overflow="fold")
    for interpreter in interpreters:
        table.add_row(
            interpreter.build.name,
            interpreter.installed_at.strftime("%Y-%m-%d %H:%M"),
            str(len(registry.dependents(interpreter.build))),
            str(interpreter.directory),
        )
    table_console().print(table)
