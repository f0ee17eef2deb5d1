"""Shared test fixtures for algora1."""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import pytest

from algora1.ui import Operator


class ScriptedOperator(Operator):
    """Operator that answers from pre-loaded queues and records output.

    ``choices``/``answers``/``secrets``/``confirms``/``rechecks`` are consumed
    in order; running out of script is a test failure.
    """

    def __init__(
        self,
        choices: Iterable[str] = (),
        answers: Iterable[str] = (),
        secrets: Iterable[str] = (),
        confirms: Iterable[bool] = (),
        rechecks: Iterable[bool] = (),
    ) -> None:
        self.choices = deque(choices)
        self.answers = deque(answers)
        self.secrets = deque(secrets)
        self.confirms = deque(confirms)
        self.rechecks = deque(rechecks)
        self.messages: List[Tuple[str, str]] = []
        self.prompts: List[Tuple[str, Sequence[str]]] = []

    def _say(self, kind: str, message: str) -> None:
        self.messages.append((kind, message))

    def step(self, label: str) -> None:
        self._say("step", label)

    def info(self, message: str) -> None:
        self._say("info", message)

    def ok(self, message: str) -> None:
        self._say("ok", message)

    def warn(self, message: str) -> None:
        self._say("warn", message)

    def choose(self, title: str, options: Sequence[str]) -> str:
        self.prompts.append((title, list(options)))
        choice = self.choices.popleft()
        assert choice in options, f"{choice!r} not offered in {title!r}: {options}"
        return choice

    def ask(self, prompt: str, default: str = "") -> str:
        value = self.answers.popleft()
        return value if value else default

    def secret(self, prompt: str) -> str:
        return self.secrets.popleft()

    def confirm(self, prompt: str, default: bool = False) -> bool:
        self._say("confirm", prompt)
        return self.confirms.popleft()

    def recheck(self, title: str, instructions: str) -> bool:
        self._say("recheck", title)
        return self.rechecks.popleft()

    def key_values(self, rows) -> None:
        for key, value in rows:
            self._say("kv", f"{key}={value}")

    def said(self, kind: str) -> List[str]:
        return [m for k, m in self.messages if k == kind]


@pytest.fixture
def config_home(tmp_path: Path) -> Path:
    """A private, not-yet-created configuration directory."""
    return tmp_path / "config" / "algora1_setup"


@pytest.fixture
def remote_home(tmp_path: Path) -> Path:
    """An operator home directory on the instance."""
    home = tmp_path / "home" / "trader"
    home.mkdir(parents=True)
    return home


@pytest.fixture
def operator() -> ScriptedOperator:
    return ScriptedOperator()
