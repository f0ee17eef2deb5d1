"""
Remote Session Supervisor — the one-session rule.

screen happily keeps any number of sessions, so the rule lives here.
Every decision starts from a fresh listing: the state is whatever the
multiplexer shows right now, never what this process last did.

States:
    NO_SESSION        nothing listed; "start" is offered
    SESSION_ACTIVE    exactly one; "connect" and "delete" are offered
    POLICY_VIOLATION  more than one; only "delete all" or "exit"
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from ..errors import OperatorCancelled
from ..ui import Operator
from . import DEFAULT_SESSION_NAME
from .engines import EngineProcessMonitor
from .multiplexer import ScreenMultiplexer, session_label, session_name_problem

logger = logging.getLogger("algora1.remote.supervisor")

START = "Start new session"
CONNECT = "Connect to session"
DELETE = "Delete session"
DELETE_ALL = "Delete ALL sessions"
BACK = "Back"
EXIT = "Exit"


class SessionState(str, Enum):
    NO_SESSION = "no-session"
    SESSION_ACTIVE = "session-active"
    POLICY_VIOLATION = "policy-violation"


def classify(sessions: List[str]) -> SessionState:
    if not sessions:
        return SessionState.NO_SESSION
    if len(sessions) == 1:
        return SessionState.SESSION_ACTIVE
    return SessionState.POLICY_VIOLATION


class RemoteSessionSupervisor:
    """Session lifecycle behind the "Running sessions" menu.

    Args:
        multiplexer: screen wrapper.
        monitor: Engine monitor, consulted before destructive actions.
        operator: Who answers prompts.
    """

    def __init__(
        self,
        multiplexer: ScreenMultiplexer,
        monitor: EngineProcessMonitor,
        operator: Operator,
    ) -> None:
        self.mux = multiplexer
        self.monitor = monitor
        self.operator = operator

    def sessions(self) -> List[str]:
        return self.mux.list_sessions()

    def enforce_single_session(self) -> Optional[List[str]]:
        """Resolve a multi-session listing before anything else is offered.

        Returns:
            The listing that was checked (zero or one session), or None
            when sessions survived the bulk delete.

        Raises:
            OperatorCancelled: If the operator chose to exit instead.
        """
        sessions = self.sessions()
        if classify(sessions) is not SessionState.POLICY_VIOLATION:
            return sessions

        logger.warning("Policy violation: %d sessions: %s", len(sessions), sessions)
        self.operator.warn(
            f"{len(sessions)} sessions are running; only one is allowed."
        )
        self.operator.key_values((str(i), s) for i, s in enumerate(sessions, 1))
        choice = self.operator.choose("Resolve before continuing", [DELETE_ALL, EXIT])
        if choice == EXIT:
            raise OperatorCancelled("Exited with more than one session running")

        self.mux.quit_all()
        remaining = self.sessions()
        if remaining:
            self.operator.warn(f"Still listed: {', '.join(remaining)}")
            return None
        self.operator.ok("All sessions deleted.")
        return remaining

    def ask_session_name(self) -> str:
        while True:
            name = self.operator.ask("Session name", default=DEFAULT_SESSION_NAME)
            problem = session_name_problem(name)
            if problem is None:
                return name
            self.operator.warn(problem)

    def start(self, attach: bool = True) -> Optional[str]:
        """Create the one session and attach to it.

        Returns:
            The new session name, or None if one appeared in the meantime
            or screen could not start it.
        """
        name = self.ask_session_name()
        # Re-check: another connection may have started one while we asked.
        if self.sessions():
            self.operator.warn("A session already exists; not creating another.")
            return None
        if not self.mux.create(name):
            self.operator.warn(f"Could not start session '{name}'; see ~/.algora1/panel.log.")
            return None
        if attach:
            self.mux.attach(name)
        return name

    def connect(self, session_id: str) -> None:
        self.mux.attach(session_id)

    def delete(self, session_id: str) -> bool:
        """Delete a session after confirmation. Its engine goes with it."""
        engine = self.monitor.running_engine()
        if engine:
            self.operator.warn(f"{engine} is running.")
        if not self.operator.confirm(
            f"Delete session '{session_label(session_id)}'? "
            "This will stop any running engine.",
            default=False,
        ):
            return False
        return self.mux.quit(session_id)

    def menu(self) -> None:
        """The "Running sessions" submenu; returns to the caller on Back."""
        while True:
            sessions = self.enforce_single_session()
            if sessions is None:
                return
            state = classify(sessions)

            if state is SessionState.NO_SESSION:
                self.operator.info("No sessions running.")
                choice = self.operator.choose("Running sessions", [START, BACK])
                if choice == START:
                    self.start()
                    return
                return

            session_id = sessions[0]
            self.operator.key_values([("Session", session_label(session_id))])
            choice = self.operator.choose("Running sessions", [CONNECT, DELETE, BACK])
            if choice == CONNECT:
                self.connect(session_id)
                return
            if choice == DELETE:
                self.delete(session_id)
                continue
            return
