"""Operator control panel: the ``algora1`` command on the instance."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import click
from rich.console import Console
from rich.panel import Panel

from ..errors import OperatorCancelled
from ..ui import Operator, console
from .logs import LogManager, log_name
from .supervisor import RemoteSessionSupervisor

logger = logging.getLogger("algora1.remote.menu")

RUNNING_SESSIONS = "Running sessions"
LIVE_UPDATES = "Live portfolio updates"
CLEAR_LOG = "Clear log"
CLEAR_ALL = "Clear all logs"
BACK = "Back"
EXIT = "Exit"

MAIN_OPTIONS = [RUNNING_SESSIONS, LIVE_UPDATES, CLEAR_LOG, EXIT]


def _echo(line: str) -> None:
    click.echo(line, nl=False)


class ControlPanel:
    """Main menu loop.

    Args:
        supervisor: Session rule keeper.
        logs: Engine log files.
        operator: Prompts.
        out: Console for the header.
        write: Sink for tailed log lines.
    """

    def __init__(
        self,
        supervisor: RemoteSessionSupervisor,
        logs: LogManager,
        operator: Operator,
        out: Console = console,
        write: Callable[[str], None] = _echo,
    ) -> None:
        self.supervisor = supervisor
        self.logs = logs
        self.operator = operator
        self.console = out
        self.write = write

    def header(self) -> None:
        self.console.print(
            Panel(
                "[bold]algora1 — Control Panel[/]\nOne-session mode enabled.",
                border_style="magenta",
                padding=(1, 2),
            )
        )

    def run(self) -> int:
        """Loop until Exit. Returns the process exit code."""
        self.header()
        while True:
            try:
                # A second session can appear between any two menu visits.
                if self.supervisor.enforce_single_session() is None:
                    continue
            except OperatorCancelled:
                return 0

            selection = self.operator.choose("Select an option", MAIN_OPTIONS)
            if selection == RUNNING_SESSIONS:
                self.supervisor.menu()
            elif selection == LIVE_UPDATES:
                self.live_updates()
            elif selection == CLEAR_LOG:
                self.clear_log()
            else:
                return 0

    def live_updates(self) -> Optional[int]:
        """Tail the running engine's log, or one the operator picks.

        Ctrl+C ends the tail and comes back here.
        """
        engine = self.supervisor.monitor.running_engine()
        if engine:
            self.operator.info(f"Engine detected: {engine}")
        else:
            choice = self.operator.choose(LIVE_UPDATES, self.logs.names() + [BACK])
            if choice == BACK:
                return None
            engine = self.logs.engine_for_log(choice)
            if engine is None:
                return None

        self.operator.info(f"Tailing: {log_name(engine)} (Ctrl+C to return)")
        count = self.logs.tail(engine, self.write)
        self.console.print()
        return count

    def clear_log(self) -> None:
        choice = self.operator.choose(CLEAR_LOG, self.logs.names() + [CLEAR_ALL, BACK])
        if choice == BACK:
            return
        if choice == CLEAR_ALL:
            if self.operator.confirm("Clear ALL investing logs?", default=False):
                cleared = [self._clear(name) for name in self.logs.names()]
                if all(cleared):
                    self.operator.ok("All logs cleared.")
            return
        if self.logs.engine_for_log(choice) is None:
            return
        if self.operator.confirm(f"Clear '{choice}'?", default=False):
            if self._clear(choice):
                self.operator.ok(f"Cleared: {choice}")

    def _clear(self, filename: str) -> bool:
        engine = self.logs.engine_for_log(filename)
        try:
            self.logs.clear(engine)
        except OSError as exc:
            logger.warning("Could not clear %s: %s", filename, exc)
            self.operator.warn(f"Could not clear {filename}: {exc}")
            return False
        return True
