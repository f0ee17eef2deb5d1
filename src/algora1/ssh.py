"""
Remote shell channel — thin wrappers around the OpenSSH client.

All remote work goes through ``ssh``/``scp`` with a dedicated ed25519 key
pair. Only the public half ever leaves this machine (as instance metadata).
Secrets travel on stdin, never on a command line where ``ps`` could see them.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional

from . import KEY_NAME
from .errors import CommandError

logger = logging.getLogger("algora1.ssh")

CONNECT_TIMEOUT = 5


def default_key_path() -> Path:
    return Path.home() / ".ssh" / KEY_NAME


class RemoteShell:
    """SSH access to the instance as the operating user.

    Args:
        user: Remote login name.
        key_path: Private key path. Defaults to ``~/.ssh/ssh_key1``.
    """

    def __init__(self, user: str, key_path: Optional[Path] = None) -> None:
        self.user = user
        self.key_path = key_path or default_key_path()

    @property
    def public_key_path(self) -> Path:
        return self.key_path.with_name(self.key_path.name + ".pub")

    # -------------------------------------------------------------------
    # Key material
    # -------------------------------------------------------------------

    def ensure_key(self) -> bool:
        """Generate the key pair if either half is missing.

        Returns:
            True if a new pair was generated.

        Raises:
            CommandError: If ssh-keygen fails.
        """
        if self.key_path.exists() and self.public_key_path.exists():
            return False

        if self.key_path.exists():
            # Private half survived; rebuild the public half from it.
            cmd = ["ssh-keygen", "-y", "-f", str(self.key_path)]
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
            if result.returncode != 0:
                raise CommandError(cmd, result.returncode, result.stderr)
            self.public_key_path.write_text(result.stdout, encoding="utf-8")
            os.chmod(self.public_key_path, 0o644)
            return False

        ssh_dir = self.key_path.parent
        ssh_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(ssh_dir, 0o700)

        cmd = [
            "ssh-keygen", "-q", "-t", "ed25519",
            "-f", str(self.key_path), "-N", "", "-C", self.user,
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
        if result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr)

        os.chmod(self.key_path, 0o600)
        os.chmod(self.public_key_path, 0o644)
        logger.info("Generated SSH key pair at %s", self.key_path)
        return True

    def public_key(self) -> str:
        return self.public_key_path.read_text(encoding="utf-8").strip()

    def forget_host(self, host: str) -> None:
        """Drop a stale known_hosts entry (the IP may have been reused)."""
        subprocess.run(
            ["ssh-keygen", "-R", host], capture_output=True, text=True, timeout=10,
        )

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------

    def _options(self, batch: bool = True) -> List[str]:
        opts = [
            "-i", str(self.key_path),
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", f"ConnectTimeout={CONNECT_TIMEOUT}",
            "-o", "LogLevel=ERROR",
        ]
        if batch:
            opts += ["-o", "BatchMode=yes"]
        return opts

    def _target(self, host: str) -> str:
        return f"{self.user}@{host}"

    def run(
        self,
        host: str,
        command: str,
        stdin: Optional[str] = None,
        timeout: int = 300,
    ) -> subprocess.CompletedProcess:
        """Run a remote command non-interactively.

        Args:
            host: Instance address.
            command: Shell command executed by the remote login shell.
            stdin: Text fed to the remote command's stdin.
            timeout: Seconds before giving up.

        Returns:
            CompletedProcess (returncode 124 on timeout).
        """
        cmd = ["ssh", *self._options(), self._target(host), command]
        try:
            return subprocess.run(
                cmd, input=stdin, capture_output=True, text=True, timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Remote command timed out on %s", host)
            return subprocess.CompletedProcess(cmd, 124, stdout="", stderr="timed out")

    def check(
        self, host: str, command: str, stdin: Optional[str] = None, timeout: int = 600,
    ) -> subprocess.CompletedProcess:
        """Like ``run`` but raise on failure.

        Raises:
            CommandError: On non-zero exit.
        """
        result = self.run(host, command, stdin=stdin, timeout=timeout)
        if result.returncode != 0:
            # Keep the remote command itself out of the error; it may be long.
            raise CommandError(["ssh", self._target(host)], result.returncode, result.stderr or "")
        return result

    def is_reachable(self, host: str) -> bool:
        result = self.run(host, "echo ok", timeout=CONNECT_TIMEOUT + 10)
        return result.returncode == 0 and "ok" in (result.stdout or "")

    def remote_file_exists(self, host: str, path: str) -> bool:
        return self.run(host, f"test -f '{path}'", timeout=30).returncode == 0

    def upload(
        self, host: str, local: Path, remote: str, recursive: bool = False,
    ) -> None:
        """Copy a local file (or directory) to the instance.

        Raises:
            CommandError: If scp fails.
        """
        cmd = ["scp", "-q", *self._options()]
        if recursive:
            cmd.append("-r")
        cmd += [str(local), f"{self._target(host)}:{remote}"]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=900)
        if result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr)

    def attach(self, host: str, command: Optional[str] = None) -> None:
        """Replace this process with an interactive ssh session."""
        argv = ["ssh", "-tt", *self._options(batch=False), self._target(host)]
        if command:
            argv.append(command)
        logger.info("Attaching to %s", host)
        os.execvp("ssh", argv)
