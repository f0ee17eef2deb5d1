"""
Preflight system checks — detect the local tools provisioning relies on.

Checks for:
  - OpenSSH client (ssh, scp, ssh-keygen) — required, never auto-installed
  - Google Cloud CLI (gcloud) — required, auto-install offered

Each check returns a result with:
  - Whether the tool is installed
  - Current version (if installed)
  - Platform-specific auto-install command
  - Manual download URL as fallback
"""

from __future__ import annotations

import platform
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import MissingToolError

GCLOUD_DOWNLOAD_URL = "https://cloud.google.com/sdk/docs/install"


class ToolStatus(str, Enum):
    """Status of a system tool."""
    INSTALLED = "installed"
    MISSING = "missing"


@dataclass
class ToolCheck:
    """Result of checking a single system tool."""

    name: str
    status: ToolStatus
    required: bool
    version: str = ""
    install_cmd: str = ""
    download_url: str = ""
    install_note: str = ""

    @property
    def installed(self) -> bool:
        """Whether the tool is installed."""
        return self.status == ToolStatus.INSTALLED

    @property
    def ok(self) -> bool:
        """Whether this check passes (installed, or optional and missing)."""
        return self.installed or not self.required


@dataclass
class PreflightResult:
    """Combined result of all preflight checks."""

    ssh: ToolCheck
    gcloud: ToolCheck

    @property
    def checks(self) -> list[ToolCheck]:
        return [self.ssh, self.gcloud]

    @property
    def all_ok(self) -> bool:
        """True if all required tools pass."""
        return all(c.ok for c in self.checks)

    @property
    def required_missing(self) -> list[ToolCheck]:
        """List of required tools that are missing."""
        return [c for c in self.checks if c.required and not c.installed]


# ---------------------------------------------------------------------------
# Platform detection
# ---------------------------------------------------------------------------

def _system() -> str:
    """Canonical platform name."""
    return platform.system()


def detect_os() -> str:
    """Return 'macos' or 'linux'.

    Raises:
        MissingToolError: On any other platform.
    """
    system = _system()
    if system == "Darwin":
        return "macos"
    if system == "Linux":
        return "linux"
    raise MissingToolError("a supported OS", f"{system} is not macOS or Linux")


def _has_pkg_manager(name: str) -> bool:
    """Check if a package manager is available."""
    return shutil.which(name) is not None


def _detect_linux_pkg_manager() -> Optional[str]:
    """Detect the Linux package manager."""
    for mgr in ("apt-get", "dnf", "yum"):
        if _has_pkg_manager(mgr):
            return mgr
    return None


def _first_line(cmd: list[str]) -> str:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired):
        return ""
    # ssh -V prints to stderr
    text = (result.stdout or result.stderr or "").strip()
    return text.split("\n")[0][:60]


# ---------------------------------------------------------------------------
# Individual tool checks
# ---------------------------------------------------------------------------

def check_ssh() -> ToolCheck:
    """Check the OpenSSH client trio.

    Returns:
        ToolCheck for OpenSSH. Missing if any of ssh/scp/ssh-keygen is absent.
    """
    missing = [t for t in ("ssh", "scp", "ssh-keygen") if not shutil.which(t)]
    if not missing:
        return ToolCheck(
            name="OpenSSH",
            status=ToolStatus.INSTALLED,
            required=True,
            version=_first_line(["ssh", "-V"]),
        )

    if _system() == "Linux":
        mgr = _detect_linux_pkg_manager()
        cmds = {
            "apt-get": "sudo apt-get install -y openssh-client",
            "dnf": "sudo dnf install -y openssh-clients",
            "yum": "sudo yum install -y openssh-clients",
        }
        install_cmd = cmds.get(mgr, "")
    else:
        install_cmd = ""

    return ToolCheck(
        name="OpenSSH",
        status=ToolStatus.MISSING,
        required=True,
        install_cmd=install_cmd,
        download_url="https://www.openssh.com/portable.html",
        install_note="Missing: " + ", ".join(missing),
    )


def check_gcloud() -> ToolCheck:
    """Check if the Google Cloud CLI is installed.

    Returns:
        ToolCheck for gcloud.
    """
    if shutil.which("gcloud"):
        return ToolCheck(
            name="gcloud",
            status=ToolStatus.INSTALLED,
            required=True,
            version=_first_line(["gcloud", "--version"]),
        )

    system = _system()
    if system == "Darwin":
        install_cmd = (
            "brew install --cask google-cloud-sdk" if _has_pkg_manager("brew") else ""
        )
    elif system == "Linux":
        mgr = _detect_linux_pkg_manager()
        cmds = {
            "apt-get": "sudo apt-get install -y google-cloud-cli",
            "dnf": "sudo dnf install -y google-cloud-cli",
            "yum": "sudo yum install -y google-cloud-cli",
        }
        install_cmd = cmds.get(mgr, "")
    else:
        install_cmd = ""

    return ToolCheck(
        name="gcloud",
        status=ToolStatus.MISSING,
        required=True,
        install_cmd=install_cmd,
        download_url=GCLOUD_DOWNLOAD_URL,
        install_note="gcloud talks to Google Cloud for every provisioning step.",
    )


# ---------------------------------------------------------------------------
# Auto-install
# ---------------------------------------------------------------------------

def auto_install_tool(check: ToolCheck) -> bool:
    """Attempt to auto-install a tool using its platform install command.

    Args:
        check: ToolCheck with install_cmd populated.

    Returns:
        True if install succeeded.
    """
    if check.installed:
        return True
    if not check.install_cmd:
        return False

    try:
        result = subprocess.run(
            check.install_cmd.split(),
            capture_output=True, text=True, timeout=600,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return False


# ---------------------------------------------------------------------------
# Full preflight
# ---------------------------------------------------------------------------

def run_preflight() -> PreflightResult:
    """Run all preflight checks.

    Returns:
        PreflightResult with all tool checks.
    """
    return PreflightResult(ssh=check_ssh(), gcloud=check_gcloud())


def require(check: ToolCheck) -> None:
    """Raise if a required tool is missing.

    Raises:
        MissingToolError: With the install command or URL as a hint.
    """
    if check.ok:
        return
    raise MissingToolError(check.name, check.install_cmd or check.download_url)
