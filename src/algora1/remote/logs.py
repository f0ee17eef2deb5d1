"""
Log Manager — one append-only log per engine in the operator's home.

Tailing is the one operation meant to be interrupted. Ctrl+C while
following a log must stop the follow and nothing else: the engine lives in
another screen session, and the menu loop that called ``tail`` keeps
running. The previous SIGINT handler is put back on the way out so the
next Ctrl+C reaches whoever owned it before.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional

from .. import ENGINE_NAMES

logger = logging.getLogger("algora1.remote.logs")

TAIL_BACKLOG_LINES = 10


def log_name(engine: str) -> str:
    """Deterministic log filename for an engine, e.g. ``tsla_investing.log``."""
    return f"{engine.lower()}_investing.log"


class LogManager:
    """Per-engine log files.

    Args:
        home: Directory holding the logs (the operating user's home).
    """

    def __init__(self, home: Optional[Path] = None) -> None:
        self.home = home or Path.home()

    def path(self, engine: str) -> Path:
        if engine not in ENGINE_NAMES:
            raise ValueError(f"Unknown engine: {engine}")
        return self.home / log_name(engine)

    def names(self) -> List[str]:
        return [log_name(engine) for engine in ENGINE_NAMES]

    def engine_for_log(self, filename: str) -> Optional[str]:
        for engine in ENGINE_NAMES:
            if log_name(engine) == filename:
                return engine
        return None

    def ensure(self, engine: str) -> Path:
        """Create the log if missing; never touches existing content."""
        path = self.path(engine)
        path.touch(exist_ok=True)
        return path

    def clear(self, engine: str) -> Path:
        """Truncate an engine's log to zero bytes, creating it if absent.

        The file keeps its path and inode so an open ``tail`` keeps working.
        """
        path = self.ensure(engine)
        os.truncate(path, 0)
        logger.info("Cleared %s", path)
        return path

    def tail(
        self,
        engine: str,
        write: Callable[[str], object],
        stop: Optional[threading.Event] = None,
        poll_interval: float = 0.5,
        backlog: int = TAIL_BACKLOG_LINES,
    ) -> int:
        """Stream an engine's log until cancelled.

        Args:
            engine: Engine whose log to follow.
            write: Sink for each line (newline included).
            stop: Set to end the follow. SIGINT also ends it when called from
                the main thread.
            poll_interval: Seconds between checks for new data.
            backlog: Existing lines to show before following; 0 starts at
                the end of the file.

        Returns:
            Number of lines written.
        """
        stop = stop or threading.Event()
        path = self.ensure(engine)

        interrupted = False

        def _on_sigint(signum, frame) -> None:
            # May run while stop.wait holds the Event lock; no locking here.
            nonlocal interrupted
            interrupted = True

        previous = None
        in_main = threading.current_thread() is threading.main_thread()
        if in_main:
            previous = signal.getsignal(signal.SIGINT)
            signal.signal(signal.SIGINT, _on_sigint)

        written = 0
        try:
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                if backlog:
                    for line in deque(iter(fh.readline, ""), maxlen=backlog):
                        write(line)
                        written += 1
                else:
                    fh.seek(0, os.SEEK_END)
                position = fh.tell()

                while not (interrupted or stop.is_set()):
                    if path.stat().st_size < position:
                        # Cleared underneath us; follow from the top.
                        fh.seek(0)
                    line = fh.readline()
                    if line:
                        write(line)
                        written += 1
                        position = fh.tell()
                        continue
                    position = fh.tell()
                    stop.wait(poll_interval)
        finally:
            if in_main:
                if previous is None:
                    previous = signal.default_int_handler
                signal.signal(signal.SIGINT, previous)
        logger.debug("Tail of %s ended after %d line(s)", path, written)
        return written
