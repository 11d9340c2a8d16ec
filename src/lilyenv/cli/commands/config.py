import click

from lilyenv.cli.ensure import Ensure
from lilyenv.cli.output import machine_output, user_output
from lilyenv.core.context import LilyenvContext
from lilyenv.core.global_config import CONFIG_KEYS, GlobalConfig


def _display_value(config: GlobalConfig, key: str) -> str:
    value = getattr(config, key)
    if value is None:
        return ""
    if key == "github_token":
        return "********"
    return str(value)


@click.group("config")
def config_group() -> None:
    """Manage lilyenv configuration."""


@config_group.command("list")
@click.pass_obj
def config_list(ctx: LilyenvContext) -> None:
    """Print a list of configuration keys and values."""
    user_output(click.style(f"Configuration ({ctx.config_store.path()}):", bold=True))
    for key in CONFIG_KEYS:
        machine_output(f"{key}={_display_value(ctx.global_config, key)}")


@config_group.command("get")
@click.argument("key", metavar="KEY")
@click.pass_obj
def config_get(ctx: LilyenvContext, key: str) -> None:
    """Print the value of a given configuration key."""
    Ensure.invariant(key in CONFIG_KEYS, f"Invalid key: {key}")
    machine_output(_display_value(ctx.global_config, key))


@config_group.command("set")
@click.argument("key", metavar="KEY")
@click.argument("value", metavar="VALUE")
@click.pass_obj
def config_set(ctx: LilyenvContext, key: str, value: str) -> None:
    """Update configuration with a value for the given key."""
    ctx.config_store.set_value(key, value)
    shown = "********" if key == "github_token" else value
    user_output(f"Set {key}={shown}")
