"""Tests for the control-panel installer."""

from __future__ import annotations

from unittest.mock import MagicMock

from algora1.errors import CommandError
from algora1.models import ConfigurationProfile
from algora1.remote_install import (
    UPLOAD_STAGING,
    ControlPanelInstaller,
    install_script,
    shim,
)
from algora1.remote.secrets import parse_env_file

PROFILE = ConfigurationProfile(
    project_id="p",
    remote_user="trader",
    alpaca_live_api_key="LK",
    alpaca_live_secret_key="LS",
    alpaca_paper_api_key="PK",
    alpaca_paper_secret_key="p$s'",
)


class TestScript:
    def test_shim(self) -> None:
        text = shim("menu")
        assert text.startswith("#!/bin/sh\n")
        assert "PYTHONPATH=/opt/algora1/lib" in text
        assert "/opt/algora1/venv/bin/python -m algora1.remote menu" in text

    def test_install_script(self) -> None:
        script = install_script()
        assert script.startswith("set -euo pipefail\n")
        assert "apt-get install -y screen python3-venv" in script
        assert "/usr/local/bin/algora1 " in script
        assert "/usr/local/bin/algora1-session " in script
        assert "algora1.remote session" in script
        assert "psutil" in script


class TestControlPanelInstaller:
    def test_install_steps(self, tmp_path) -> None:
        shell = MagicMock()
        ControlPanelInstaller(shell, package_dir=tmp_path).install("203.0.113.7")

        first, second = shell.check.call_args_list
        assert UPLOAD_STAGING in first.args[1]
        assert second.args[1] == "bash -s"
        assert second.kwargs["stdin"] == install_script()
        shell.upload.assert_called_once_with(
            "203.0.113.7", tmp_path, f"{UPLOAD_STAGING}/", recursive=True,
        )

    def test_credentials_on_stdin(self) -> None:
        """Secrets go over stdin; the command line never carries them."""
        shell = MagicMock()
        ControlPanelInstaller(shell).write_credentials("h", PROFILE)

        command = shell.check.call_args.args[1]
        stdin = shell.check.call_args.kwargs["stdin"]
        assert "umask 077" in command
        assert "chmod 600" in command
        assert "LK" not in command
        assert parse_env_file(stdin) == PROFILE.credential_env()

    def test_motd_best_effort(self) -> None:
        shell = MagicMock()
        shell.check.side_effect = CommandError(["ssh"], 1, "sudo: no tty")
        assert ControlPanelInstaller(shell).customize_motd("h") is False

    def test_motd(self) -> None:
        shell = MagicMock()
        assert ControlPanelInstaller(shell).customize_motd("h") is True
        assert "Welcome to algora1" in shell.check.call_args.kwargs["stdin"]
