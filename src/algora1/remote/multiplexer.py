"""GNU screen wrapper: list, reap, create, quit and attach sessions."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import time
from typing import Callable, List

from . import SESSION_COMMAND

logger = logging.getLogger("algora1.remote.multiplexer")

SESSION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# "\t12345.investing\t(12/01/2025 10:00:00 AM)\t(Detached)"
_SESSION_LINE = re.compile(r"^\s*(\d+\.\S+)\s+(.*)$")


def session_name_problem(name: str) -> str | None:
    """Return why ``name`` cannot be used as a session name, or None."""
    if not name:
        return "Session name cannot be empty."
    if not SESSION_NAME_PATTERN.match(name):
        return "Invalid name. Use letters/numbers/_/- only."
    return None


def parse_screen_listing(output: str) -> List[str]:
    """Extract live session ids (``pid.name``) from ``screen -ls`` output.

    Dead sockets are left out; they are not selectable.
    """
    sessions = []
    for line in output.splitlines():
        match = _SESSION_LINE.match(line)
        if not match:
            continue
        if "(Dead" in match.group(2):
            continue
        sessions.append(match.group(1))
    return sessions


def session_label(session_id: str) -> str:
    """``12345.investing`` -> ``investing``."""
    return session_id.split(".", 1)[-1]


class ScreenMultiplexer:
    """Session bookkeeping is screen's; the one-session rule is not.

    Args:
        binary: screen executable.
        bootstrap: Command each new session runs.
        sleep: Sleep used while waiting for a session to vanish.
    """

    def __init__(
        self,
        binary: str = "screen",
        bootstrap: str = SESSION_COMMAND,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.binary = binary
        self.bootstrap = bootstrap
        self.sleep = sleep

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=15)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("screen %s failed: %s", " ".join(args), exc)
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr=str(exc))

    def reap(self) -> None:
        """Remove dead session sockets."""
        self._run("-wipe")

    def list_sessions(self) -> List[str]:
        """Live sessions, after reaping stale ones.

        ``screen -ls`` exits 1 when there are no sockets, so the exit code
        is ignored and only the listing is parsed.
        """
        if not self.available():
            return []
        self.reap()
        return parse_screen_listing(self._run("-ls").stdout or "")

    def create(self, name: str) -> bool:
        """Start a detached session running the bootstrap in ``$HOME``.

        Returns:
            True if screen accepted the session.

        Raises:
            ValueError: If the name is invalid.
        """
        problem = session_name_problem(name)
        if problem:
            raise ValueError(problem)
        result = self._run(
            "-S", name, "-dm", "bash", "-lc", f'cd "$HOME" && exec {self.bootstrap}',
        )
        if result.returncode != 0:
            logger.error(
                "screen -dm %s exited %d: %s", name, result.returncode, (result.stderr or "").strip(),
            )
            return False
        logger.info("Created screen session %s", name)
        return True

    def quit(self, session_id: str, attempts: int = 20, delay: float = 0.1) -> bool:
        """Terminate a session and wait until it is gone from the listing.

        Returns:
            True if the session disappeared within the wait.
        """
        if not session_id:
            return True
        self._run("-S", session_id, "-X", "quit")
        for _ in range(attempts):
            if session_id not in self.list_sessions():
                logger.info("Deleted screen session %s", session_id)
                return True
            self.sleep(delay)
        logger.warning("Session %s still listed after quit", session_id)
        return False

    def quit_all(self) -> None:
        for session_id in self.list_sessions():
            self.quit(session_id)

    def attach(self, session_id: str) -> None:
        """Replace this process with ``screen -r``."""
        os.execvp(self.binary, [self.binary, "-r", session_id])
