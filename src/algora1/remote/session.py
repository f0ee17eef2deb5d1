"""
Session bootstrap — the first thing a new screen session runs.

Offers to start an engine only when none is running anywhere on the
host, then hands the terminal to a login shell so the operator can work
in or detach from the session.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.panel import Panel

from .. import ENGINE_NAMES
from ..ui import Operator, console
from .engines import EngineProcessMonitor, StartResult
from .secrets import CredentialsFile

logger = logging.getLogger("algora1.remote.session")

RUN_ENGINE = "Run investment engine"
BACK = "Back"


def offer_engine(
    monitor: EngineProcessMonitor,
    credentials: CredentialsFile,
    operator: Operator,
) -> StartResult | None:
    """Ask whether to run an engine and run it in the foreground.

    Returns:
        The start result, or None when nothing was attempted.
    """
    running = monitor.running_engine()
    if running:
        operator.warn(f"{running} appears to be running already. Skipping engine prompt.")
        return None

    if operator.choose("Run investment engine?", [RUN_ENGINE, BACK]) != RUN_ENGINE:
        return None
    engine = operator.choose("Select engine", list(ENGINE_NAMES))

    operator.ok(f"Starting {engine}…")
    result = monitor.start_engine(engine, credentials)
    if result.blocked_by:
        operator.warn(f"{result.blocked_by} started in the meantime; not starting {engine}.")
    elif result.missing:
        operator.warn(f"Missing keys in this session: {' '.join(result.missing)}")
        operator.warn(f"Fix: re-run the installer or edit {credentials.path}")
    elif result.error:
        operator.warn(f"Could not start {engine}: {result.error}")
    else:
        operator.info(f"{engine} exited with code {result.returncode}")
    return result


def bootstrap(
    monitor: EngineProcessMonitor,
    credentials: CredentialsFile,
    operator: Operator,
    out: Console = console,
) -> None:
    out.print(Panel("algora1 session\nOne-session mode enabled", border_style="magenta"))
    offer_engine(monitor, credentials, operator)
    login_shell()


def login_shell() -> None:
    """Replace this process with a login shell."""
    logger.debug("Handing over to a login shell")
    os.execvp("bash", ["bash", "-l"])
