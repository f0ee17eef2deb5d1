"""Tests for the screen session bootstrap."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

from rich.console import Console

from conftest import ScriptedOperator

from algora1.remote.engines import StartResult
from algora1.remote.session import BACK, RUN_ENGINE, bootstrap, offer_engine


def _monitor(running=None, result: StartResult = None) -> MagicMock:
    monitor = MagicMock()
    monitor.running_engine.return_value = running
    monitor.start_engine.return_value = result
    return monitor


class TestOfferEngine:
    def test_skipped_when_running(self) -> None:
        """No prompt at all when an engine already runs."""
        operator = ScriptedOperator()
        monitor = _monitor(running="NVDA")
        assert offer_engine(monitor, MagicMock(), operator) is None
        assert operator.prompts == []
        monitor.start_engine.assert_not_called()
        assert "NVDA appears to be running" in operator.said("warn")[0]

    def test_declined(self) -> None:
        operator = ScriptedOperator(choices=[BACK])
        monitor = _monitor()
        assert offer_engine(monitor, MagicMock(), operator) is None
        monitor.start_engine.assert_not_called()

    def test_started(self) -> None:
        creds = MagicMock()
        operator = ScriptedOperator(choices=[RUN_ENGINE, "PMNY"])
        monitor = _monitor(result=StartResult("PMNY", started=True, pid=1, returncode=0))

        result = offer_engine(monitor, creds, operator)

        monitor.start_engine.assert_called_once_with("PMNY", creds)
        assert result.started
        assert operator.prompts[1] == ("Select engine", ["BEXP", "PMNY", "TSLA", "NVDA"])
        assert "PMNY exited with code 0" in operator.said("info")

    def test_missing_credentials_reported(self) -> None:
        operator = ScriptedOperator(choices=[RUN_ENGINE, "TSLA"])
        monitor = _monitor(result=StartResult("TSLA", missing=["ALPACA_PAPER_API_KEY"]))
        offer_engine(monitor, MagicMock(), operator)
        assert "Missing keys in this session: ALPACA_PAPER_API_KEY" in operator.said("warn")

    def test_lost_race(self) -> None:
        operator = ScriptedOperator(choices=[RUN_ENGINE, "TSLA"])
        monitor = _monitor(result=StartResult("TSLA", blocked_by="BEXP"))
        offer_engine(monitor, MagicMock(), operator)
        assert operator.said("warn") == ["BEXP started in the meantime; not starting TSLA."]


class TestBootstrap:
    @patch("algora1.remote.session.os.execvp")
    def test_ends_in_login_shell(self, mock_exec: MagicMock) -> None:
        operator = ScriptedOperator(choices=[BACK])
        out = io.StringIO()
        bootstrap(_monitor(), MagicMock(), operator, out=Console(file=out))
        mock_exec.assert_called_once_with("bash", ["bash", "-l"])
        assert "algora1 session" in out.getvalue()
