"""Tests for local tool preflight checks."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from algora1.errors import MissingToolError
from algora1.preflight import (
    GCLOUD_DOWNLOAD_URL,
    PreflightResult,
    ToolCheck,
    ToolStatus,
    auto_install_tool,
    check_gcloud,
    check_ssh,
    detect_os,
    require,
    run_preflight,
)


class TestDetectOs:
    @patch("algora1.preflight._system", return_value="Darwin")
    def test_macos(self, mock_sys: MagicMock) -> None:
        assert detect_os() == "macos"

    @patch("algora1.preflight._system", return_value="Linux")
    def test_linux(self, mock_sys: MagicMock) -> None:
        assert detect_os() == "linux"

    @patch("algora1.preflight._system", return_value="Windows")
    def test_unsupported(self, mock_sys: MagicMock) -> None:
        with pytest.raises(MissingToolError, match="Windows"):
            detect_os()


class TestCheckSsh:
    """OpenSSH client trio."""

    @patch("algora1.preflight._first_line", return_value="OpenSSH_9.6")
    @patch("algora1.preflight.shutil.which", return_value="/usr/bin/x")
    def test_installed(self, mock_which: MagicMock, mock_ver: MagicMock) -> None:
        result = check_ssh()
        assert result.installed
        assert result.version == "OpenSSH_9.6"

    @patch("algora1.preflight._system", return_value="Linux")
    @patch("algora1.preflight.shutil.which")
    def test_missing_scp(self, mock_which: MagicMock, mock_sys: MagicMock) -> None:
        """One missing tool fails the check and is named."""
        mock_which.side_effect = lambda name: None if name == "scp" else f"/usr/bin/{name}"
        result = check_ssh()
        assert result.status == ToolStatus.MISSING
        assert "scp" in result.install_note
        assert result.install_cmd == "sudo apt-get install -y openssh-client"


class TestCheckGcloud:
    @patch("algora1.preflight._system", return_value="Darwin")
    @patch("algora1.preflight.shutil.which")
    def test_missing_on_mac_with_brew(self, mock_which: MagicMock, mock_sys: MagicMock) -> None:
        mock_which.side_effect = lambda name: "/opt/homebrew/bin/brew" if name == "brew" else None
        result = check_gcloud()
        assert not result.installed
        assert "brew" in result.install_cmd
        assert result.download_url == GCLOUD_DOWNLOAD_URL

    @patch("algora1.preflight._system", return_value="Linux")
    @patch("algora1.preflight.shutil.which", return_value=None)
    def test_missing_no_pkg_manager(self, mock_which: MagicMock, mock_sys: MagicMock) -> None:
        result = check_gcloud()
        assert result.install_cmd == ""


class TestRequire:
    def test_ok_passes(self) -> None:
        require(ToolCheck(name="gcloud", status=ToolStatus.INSTALLED, required=True))

    def test_missing_raises_with_hint(self) -> None:
        check = ToolCheck(name="gcloud", status=ToolStatus.MISSING, required=True,
                          download_url=GCLOUD_DOWNLOAD_URL)
        with pytest.raises(MissingToolError, match="gcloud"):
            require(check)


class TestPreflightResult:
    def test_required_missing(self) -> None:
        ok = ToolCheck(name="OpenSSH", status=ToolStatus.INSTALLED, required=True)
        bad = ToolCheck(name="gcloud", status=ToolStatus.MISSING, required=True)
        result = PreflightResult(ssh=ok, gcloud=bad)
        assert result.all_ok is False
        assert result.required_missing == [bad]

    @patch("algora1.preflight.check_gcloud")
    @patch("algora1.preflight.check_ssh")
    def test_run_preflight(self, mock_ssh: MagicMock, mock_gcloud: MagicMock) -> None:
        run_preflight()
        mock_ssh.assert_called_once()
        mock_gcloud.assert_called_once()


class TestAutoInstall:
    @patch("algora1.preflight.subprocess.run")
    def test_runs_install_cmd(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess([], 0)
        check = ToolCheck(name="gcloud", status=ToolStatus.MISSING, required=True,
                          install_cmd="brew install --cask google-cloud-sdk")
        assert auto_install_tool(check) is True
        assert mock_run.call_args.args[0] == ["brew", "install", "--cask", "google-cloud-sdk"]

    def test_no_cmd(self) -> None:
        check = ToolCheck(name="gcloud", status=ToolStatus.MISSING, required=True)
        assert auto_install_tool(check) is False
