"""
Remote control panel — runs on the provisioned instance.

One screen session, one engine process, both enforced by looking at the
live system right before every change.

Installed entry points:
    /usr/local/bin/algora1           the operator menu
    /usr/local/bin/algora1-session   bootstrap run inside a new screen session
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

MENU_COMMAND = "/usr/local/bin/algora1"
SESSION_COMMAND = "/usr/local/bin/algora1-session"

INSTALL_ROOT = "/opt/algora1"
REMOTE_LIB = f"{INSTALL_ROOT}/lib"
REMOTE_VENV = f"{INSTALL_ROOT}/venv"

DEFAULT_SESSION_NAME = "investing"


def state_dir(home: Optional[Path] = None) -> Path:
    """Per-user state directory for the engine registry and panel log."""
    return (home or Path.home()) / ".algora1"
