"""CLI app definition and command registration."""

from typing import Annotated

import typer

from lousy_agents.utils import console
from lousy_agents.version import get_version


def _version_callback(value: bool):
    if value:
        console.print(get_version())
        raise typer.Exit()


app = typer.Typer(
    help="Scaffold and maintain GitHub Copilot configuration: setup-steps workflow, agents, skills.",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit.", callback=_version_callback, is_eager=True),
    ] = False,
) -> None:
    """Scaffold and maintain GitHub Copilot configuration."""

# Register commands from submodules
from lousy_agents import copilot_setup as _copilot_setup_mod
from lousy_agents import lint as _lint_mod
from lousy_agents import scaffold as _scaffold_mod

_copilot_setup_mod.register(app)
_lint_mod.register(app)
_scaffold_mod.register(app)
