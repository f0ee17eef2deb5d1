"""
Remote entry points, installed as shims on the instance:

    /usr/local/bin/algora1          -> python -m algora1.remote menu
    /usr/local/bin/algora1-session  -> python -m algora1.remote session
"""

from __future__ import annotations

import sys

import click

from .. import __version__
from ..config import setup_file_logging
from ..errors import Algora1Error
from ..ui import ConsoleOperator, console
from . import state_dir
from .engines import EngineProcessMonitor
from .logs import LogManager
from .menu import ControlPanel
from .multiplexer import ScreenMultiplexer
from .secrets import CredentialsFile
from .session import bootstrap, login_shell
from .supervisor import RemoteSessionSupervisor

PANEL_LOG = "panel.log"


@click.group()
@click.version_option(version=__version__, prog_name="algora1")
@click.option("--verbose", is_flag=True, help="Debug-level logging to ~/.algora1/panel.log.")
def main(verbose: bool):
    """algora1 control panel (runs on the instance)."""
    setup_file_logging(state_dir() / PANEL_LOG, verbose)


@main.command("menu")
def menu_cmd():
    """Operator menu: sessions, live updates, log clearing."""
    mux = ScreenMultiplexer()
    if not mux.available():
        console.print("[bold red]screen is not installed.[/] Re-run the installer.")
        sys.exit(1)
    operator = ConsoleOperator()
    monitor = EngineProcessMonitor()
    supervisor = RemoteSessionSupervisor(mux, monitor, operator)
    panel = ControlPanel(supervisor, LogManager(), operator)
    try:
        code = panel.run()
    except (KeyboardInterrupt, click.Abort):
        console.print()
        code = 0
    except Algora1Error as exc:
        console.print(f"[bold red]{exc}[/]")
        code = 1
    sys.exit(code)


@main.command("session")
def session_cmd():
    """Bootstrap for a new screen session; ends in a login shell."""
    try:
        bootstrap(EngineProcessMonitor(), CredentialsFile(), ConsoleOperator())
    except (KeyboardInterrupt, click.Abort):
        # Still hand over a shell; the session must stay usable.
        console.print()
        login_shell()
