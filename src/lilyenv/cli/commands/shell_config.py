import click

from lilyenv.cli.ensure import Ensure
from lilyenv.cli.output import machine_output
from lilyenv.core.context import LilyenvContext
from lilyenv.core.shell import shell_name

BASH_CONFIG = """\
# lilyenv: show the active virtualenv in the prompt
if [[ -n "$VIRTUAL_ENV_PROMPT" ]]; then
    PS1="$VIRTUAL_ENV_PROMPT$PS1"
fi
# lilyenv: command completion
eval "$(_LILYENV_COMPLETE=bash_source lilyenv)"
"""

ZSH_CONFIG = """\
# lilyenv: show the active virtualenv in the prompt
if [[ -n "$VIRTUAL_ENV_PROMPT" ]]; then
    PROMPT="$VIRTUAL_ENV_PROMPT$PROMPT"
fi
# lilyenv: command completion
eval "$(_LILYENV_COMPLETE=zsh_source lilyenv)"
"""

FISH_CONFIG = """\
# lilyenv: show the active virtualenv in the prompt
if set -q VIRTUAL_ENV_PROMPT
    functions -c fish_prompt _lilyenv_original_prompt
    function fish_prompt
        printf '%s' "$VIRTUAL_ENV_PROMPT"
        _lilyenv_original_prompt
    end
end
# lilyenv: command completion
_LILYENV_COMPLETE=fish_source lilyenv | source
"""

SHELL_CONFIGS = {"bash": BASH_CONFIG, "zsh": ZSH_CONFIG, "fish": FISH_CONFIG}


@click.command("shell-config")
@click.option("--shell", "shell_override", help="Print the config for this shell instead.")
@click.pass_obj
def shell_config_cmd(ctx: LilyenvContext, shell_override: str | None) -> None:
    """Print the snippet to add to your shell's config file."""
    shell = shell_override or ctx.project_registry().global_shell()
    if shell is None:
        shell = ctx.shell.detect_shell(ctx.environ)
    name = shell_name(shell)
    Ensure.invariant(
        name in SHELL_CONFIGS,
        f"Unknown shell: {name}. Supported shells: {', '.join(SHELL_CONFIGS)}",
    )
    machine_output(SHELL_CONFIGS[name], nl=False)
