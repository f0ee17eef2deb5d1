"""Shared pieces for the CLI command modules."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Optional, TypeVar

from ..config import ConfigStore, setup_file_logging
from ..errors import Algora1Error, OperatorCancelled
from ..ui import console

LOG_FILE = "algora1.log"

T = TypeVar("T")


def open_store(config_home: Optional[str], verbose: bool = False) -> ConfigStore:
    """ConfigStore for ``config_home`` with file logging switched on."""
    store = ConfigStore(Path(config_home) if config_home else None)
    store.ensure_dir()
    setup_file_logging(store.home / LOG_FILE, verbose)
    return store


def guarded(action: Callable[[], T]) -> T:
    """Run ``action``; report algora1 errors in red and exit 1."""
    try:
        return action()
    except OperatorCancelled as exc:
        console.print(f"\n  [yellow]Cancelled.[/] {exc}")
        sys.exit(1)
    except Algora1Error as exc:
        console.print(f"\n  [bold red]Error:[/] {exc}")
        sys.exit(1)
