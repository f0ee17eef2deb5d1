"""
Engine Process Monitor — at most one engine running per instance.

An engine is an opaque executable named after itself (``BEXP``, ``PMNY``,
``TSLA``, ``NVDA``) sitting in the operator's home. Starting one records
its PID in ``~/.algora1/engine.json``; the record is trusted only while
that PID is alive and still looks like the engine. Otherwise the process
table is scanned for anything whose name matches an engine, so an engine
started by hand is still seen.

Usage:
    monitor = EngineProcessMonitor()
    monitor.running_engine()          # "TSLA" or None
    monitor.start_engine("NVDA", CredentialsFile())
"""

from __future__ import annotations

import json
import logging
import os
import stat
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import psutil

from .. import ENGINE_NAMES
from . import state_dir
from .logs import LogManager
from .secrets import CredentialsFile, missing_credentials

logger = logging.getLogger("algora1.remote.engines")

REGISTRY_FILE = "engine.json"


def _basename(value: Optional[str]) -> str:
    """Terminal path segment: ``/home/u/TSLA`` and ``./TSLA`` -> ``TSLA``."""
    if not value:
        return ""
    return value.rstrip("/").rsplit("/", 1)[-1]


def engine_for_process(name: Optional[str], exe: Optional[str], cmdline: Optional[List[str]]) -> Optional[str]:
    """Which engine a process is, judged by name, executable or argv[0].

    Matching is exact and case-sensitive on the last path segment.
    """
    candidates = [_basename(name), _basename(exe)]
    if cmdline:
        candidates.append(_basename(cmdline[0]))
    for candidate in candidates:
        if candidate in ENGINE_NAMES:
            return candidate
    return None


@dataclass
class StartResult:
    """Outcome of a start request. ``started`` is False when nothing spawned."""

    engine: str
    started: bool = False
    blocked_by: Optional[str] = None
    missing: List[str] = field(default_factory=list)
    pid: Optional[int] = None
    returncode: Optional[int] = None
    error: Optional[str] = None


class EngineRegistry:
    """The PID record of the engine this panel started.

    Args:
        home: Operator home; the record lives under ``~/.algora1``.
    """

    def __init__(self, home: Optional[Path] = None) -> None:
        self.path = state_dir(home) / REGISTRY_FILE

    def record(self, engine: str, pid: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "engine": engine,
            "pid": pid,
            "started_at": datetime.now(timezone.utc).isoformat(),
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable engine registry %s: %s", self.path, exc)
            return None
        if not isinstance(data, dict) or data.get("engine") not in ENGINE_NAMES:
            return None
        if not isinstance(data.get("pid"), int):
            return None
        return data

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class EngineProcessMonitor:
    """Detects and starts engines.

    Args:
        home: Directory holding the engine binaries and their logs.
        registry: PID record; defaults to one under ``home``.
        process_iter: Process table source (``psutil.process_iter``).
    """

    def __init__(
        self,
        home: Optional[Path] = None,
        registry: Optional[EngineRegistry] = None,
        process_iter: Callable[..., Iterable] = psutil.process_iter,
    ) -> None:
        self.home = home or Path.home()
        self.registry = registry or EngineRegistry(self.home)
        self.logs = LogManager(self.home)
        self._process_iter = process_iter

    def _registered_engine(self) -> Optional[str]:
        data = self.registry.load()
        if data is None:
            return None
        try:
            proc = psutil.Process(data["pid"])
            if not proc.is_running() or proc.status() == psutil.STATUS_ZOMBIE:
                raise psutil.NoSuchProcess(data["pid"])
            found = engine_for_process(proc.name(), None, proc.cmdline())
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            found = None
        if found != data["engine"]:
            self.registry.clear()
            return None
        return found

    def _scan(self) -> Optional[str]:
        for proc in self._process_iter(["pid", "name", "exe", "cmdline"]):
            info = getattr(proc, "info", None) or {}
            found = engine_for_process(info.get("name"), info.get("exe"), info.get("cmdline"))
            if found:
                logger.debug("Found %s as pid %s", found, info.get("pid"))
                return found
        return None

    def running_engine(self) -> Optional[str]:
        """Name of the engine currently running on this host, or None."""
        return self._registered_engine() or self._scan()

    def binary(self, engine: str) -> Path:
        if engine not in ENGINE_NAMES:
            raise ValueError(f"Unknown engine: {engine}")
        return self.home / engine

    def start_engine(
        self,
        engine: str,
        credentials: CredentialsFile,
        wait: bool = True,
    ) -> StartResult:
        """Start ``engine`` in the foreground unless another one is running.

        Nothing is spawned when an engine is already running or when any
        required credential is missing; the result says which.

        Args:
            engine: Engine to start.
            credentials: Source of the four trading credentials.
            wait: Block until the engine exits.

        Returns:
            StartResult describing what happened.
        """
        result = StartResult(engine=engine)
        path = self.binary(engine)

        running = self.running_engine()
        if running:
            result.blocked_by = running
            return result

        env = credentials.resolve_env()
        result.missing = missing_credentials(env)
        if result.missing:
            logger.warning("Not starting %s; missing %s", engine, ", ".join(result.missing))
            return result

        if not path.exists():
            result.error = f"{path} not found"
            return result

        # Someone may have started one while credentials were read.
        running = self.running_engine()
        if running:
            result.blocked_by = running
            return result

        mode = path.stat().st_mode
        os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.logs.ensure(engine)

        try:
            proc = subprocess.Popen([str(path)], cwd=str(self.home), env=env)
        except OSError as exc:
            result.error = str(exc)
            logger.error("Failed to start %s: %s", engine, exc)
            return result

        result.started = True
        result.pid = proc.pid
        self.registry.record(engine, proc.pid)
        logger.info("Started %s as pid %d", engine, proc.pid)

        if not wait:
            return result
        try:
            result.returncode = self._wait(proc)
        finally:
            self.registry.clear()
        logger.info("%s exited with %s", engine, result.returncode)
        return result

    @staticmethod
    def _wait(proc: subprocess.Popen) -> int:
        # Ctrl+C goes to the engine too; let it shut down before returning.
        while True:
            try:
                return proc.wait()
            except KeyboardInterrupt:
                continue
