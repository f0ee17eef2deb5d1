"""
Control-panel installation on the instance.

Runs on every successful run, fast path included, so the installed menu
always matches the local version:

  1. ``screen`` and ``python3-venv`` from apt
  2. this package copied to /opt/algora1/lib, a venv at /opt/algora1/venv
  3. two shims in /usr/local/bin: ``algora1`` and ``algora1-session``

Credentials travel on ssh stdin, never on a command line.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Optional

from .errors import CommandError
from .models import ConfigurationProfile
from .remote import MENU_COMMAND, REMOTE_LIB, REMOTE_VENV, SESSION_COMMAND
from .remote.secrets import CREDENTIALS_RELPATH, render_credentials
from .ssh import RemoteShell

logger = logging.getLogger("algora1.remote_install")

UPLOAD_STAGING = "/tmp/algora1-upload"

# What the remote entry points import.
REMOTE_REQUIREMENTS = ("click", "rich", "pydantic>=2", "pyyaml", "psutil")

PACKAGE_DIR = Path(__file__).resolve().parent

MOTD_SCRIPT = "/etc/update-motd.d/00-algora1-header"

MOTD_BANNER = r"""#!/bin/sh

printf "\n"
printf "\033[1mWelcome to algora1\033[0m\n\n"
printf "Company Site :  https://www.algora1.com\n\n"

printf "\033[1mControl Panel\033[0m\n"
printf "Run: \033[38;5;39malgora1\033[0m\n\n"

printf "\033[1mMain Menu\033[0m\n"
printf "  • Running sessions\n"
printf "  • Live portfolio updates\n"
printf "  • Clear log\n"
printf "  • Exit\n\n"

printf "\033[1mOne-session mode:\033[0m only one screen session allowed at a time.\n\n"
"""


def shim(subcommand: str) -> str:
    """Launcher script for ``python -m algora1.remote <subcommand>``."""
    return (
        "#!/bin/sh\n"
        f"PYTHONPATH={REMOTE_LIB} exec {REMOTE_VENV}/bin/python "
        f'-m algora1.remote {subcommand} "$@"\n'
    )


def _heredoc(path: str, body: str, marker: str) -> str:
    return f"sudo tee {path} >/dev/null <<'{marker}'\n{body}{marker}\nsudo chmod 755 {path}\n"


def install_script() -> str:
    """The bash script run remotely (via ``bash -s``) to install the panel."""
    requirements = " ".join(shlex.quote(r) for r in REMOTE_REQUIREMENTS)
    return (
        "set -euo pipefail\n"
        "export DEBIAN_FRONTEND=noninteractive\n"
        "if ! command -v screen >/dev/null 2>&1 || ! dpkg -s python3-venv >/dev/null 2>&1; then\n"
        "  sudo apt-get update -y\n"
        "  sudo apt-get install -y screen python3-venv\n"
        "fi\n"
        f"sudo mkdir -p {REMOTE_LIB}\n"
        f"sudo rm -rf {REMOTE_LIB}/algora1\n"
        f"sudo cp -r {UPLOAD_STAGING}/algora1 {REMOTE_LIB}/\n"
        f"sudo find {REMOTE_LIB} -name __pycache__ -prune -exec rm -rf {{}} +\n"
        f"rm -rf {UPLOAD_STAGING}\n"
        f"[ -x {REMOTE_VENV}/bin/python ] || sudo python3 -m venv {REMOTE_VENV}\n"
        f"sudo {REMOTE_VENV}/bin/pip install -q --upgrade {requirements}\n"
        + _heredoc(MENU_COMMAND, shim("menu"), "ALGORA1_MENU")
        + _heredoc(SESSION_COMMAND, shim("session"), "ALGORA1_SESSION")
    )


class ControlPanelInstaller:
    """Pushes the remote side of this package to the instance.

    Args:
        shell: Remote shell to the instance.
        package_dir: Local ``algora1`` package directory to upload.
    """

    def __init__(self, shell: RemoteShell, package_dir: Optional[Path] = None) -> None:
        self.shell = shell
        self.package_dir = package_dir or PACKAGE_DIR

    def install(self, host: str) -> None:
        """Install or refresh the control panel.

        Raises:
            CommandError: If any remote step fails.
        """
        self.shell.check(host, f"rm -rf {UPLOAD_STAGING} && mkdir -p {UPLOAD_STAGING}")
        self.shell.upload(host, self.package_dir, f"{UPLOAD_STAGING}/", recursive=True)
        self.shell.check(host, "bash -s", stdin=install_script(), timeout=900)
        logger.info("Control panel installed on %s", host)

    def write_credentials(self, host: str, profile: ConfigurationProfile) -> None:
        """Write the engine credentials file (0600) from the profile."""
        target = f"$HOME/{CREDENTIALS_RELPATH}"
        command = (
            "umask 077 && "
            f'mkdir -p "$(dirname "{target}")" && '
            f'cat > "{target}" && chmod 600 "{target}"'
        )
        self.shell.check(host, command, stdin=render_credentials(profile.credential_env()))
        logger.info("Credentials written on %s", host)

    def customize_motd(self, host: str) -> bool:
        """Replace the login banner. Failures are logged, never raised."""
        script = (
            "sudo chmod -x /etc/update-motd.d/* 2>/dev/null || true\n"
            + _heredoc(MOTD_SCRIPT, MOTD_BANNER, "ALGORA1_MOTD")
        )
        try:
            self.shell.check(host, "bash -s", stdin=script, timeout=60)
        except (CommandError, OSError) as exc:
            logger.warning("Login banner not installed on %s: %s", host, exc)
            return False
        return True
