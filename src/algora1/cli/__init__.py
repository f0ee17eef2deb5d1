"""
algora1 CLI — provision the trading host and open its control panel.

Running ``algora1`` with no subcommand performs the whole setup (or the
fast path when the instance is already up). Subcommands live in their
own modules and are registered below.

Entry point: algora1.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import guarded, open_store


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="algora1")
@click.option("--config-home", envvar="ALGORA1_CONFIG_HOME", type=click.Path(),
              help="Configuration directory (default ~/.config/algora1_setup).")
@click.option("--verbose", is_flag=True, help="Debug-level logging to the log file.")
@click.option("--connect/--no-connect", default=None,
              help="Attach to the control panel when done (default: ask).")
@click.pass_context
def main(ctx: click.Context, config_home, verbose: bool, connect):
    """algora1 — automated investment engine deployment.

    Provisions one Google Cloud instance, installs the engines and the
    control panel, then connects you to it.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_home"] = config_home
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is not None:
        return

    from ..ui import ConsoleOperator, console
    from ..workflow import SetupFlow

    store = open_store(config_home, verbose)
    console.print()
    console.print("  [bold]🚀 algora1 Installer[/]")
    console.print("  [dim]Automated investment engine deployment.[/]")
    flow = SetupFlow(store, ConsoleOperator())
    guarded(lambda: flow.run(connect=connect))


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from .local import register_local_commands
from .status import register_status_commands

register_local_commands(main)
register_status_commands(main)
