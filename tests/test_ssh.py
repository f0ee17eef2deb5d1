"""Tests for the ssh/scp wrappers. No real ssh is ever run."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from algora1.errors import CommandError
from algora1.ssh import RemoteShell

RUN = "algora1.ssh.subprocess.run"


def _done(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["ssh"], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def shell(tmp_path: Path) -> RemoteShell:
    return RemoteShell("trader", key_path=tmp_path / ".ssh" / "ssh_key1")


def _fake_keygen(cmd, **kwargs) -> subprocess.CompletedProcess:
    key = Path(cmd[cmd.index("-f") + 1])
    key.write_text("PRIVATE")
    key.with_name(key.name + ".pub").write_text("ssh-ed25519 AAAA trader\n")
    return _done()


class TestKeyPair:
    """Key generation and reuse."""

    @patch(RUN, side_effect=_fake_keygen)
    def test_generates_when_absent(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        """A fresh ed25519 pair with owner-only private key."""
        assert shell.ensure_key() is True
        argv = mock_run.call_args.args[0]
        assert argv[:4] == ["ssh-keygen", "-q", "-t", "ed25519"]
        assert oct(shell.key_path.stat().st_mode & 0o777) == "0o600"
        assert oct(shell.public_key_path.stat().st_mode & 0o777) == "0o644"
        assert shell.public_key() == "ssh-ed25519 AAAA trader"

    @patch(RUN)
    def test_reuses_existing(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        shell.key_path.parent.mkdir(parents=True)
        shell.key_path.write_text("PRIVATE")
        shell.public_key_path.write_text("ssh-ed25519 AAAA trader\n")
        assert shell.ensure_key() is False
        mock_run.assert_not_called()

    @patch(RUN)
    def test_rebuilds_missing_public_half(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        """A lone private key is kept; the public key is derived from it."""
        shell.key_path.parent.mkdir(parents=True)
        shell.key_path.write_text("PRIVATE")
        mock_run.return_value = _done("ssh-ed25519 BBBB trader\n")
        assert shell.ensure_key() is False
        assert mock_run.call_args.args[0][:2] == ["ssh-keygen", "-y"]
        assert shell.key_path.read_text() == "PRIVATE"
        assert shell.public_key() == "ssh-ed25519 BBBB trader"

    @patch(RUN, return_value=_done(returncode=1, stderr="boom"))
    def test_keygen_failure(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        with pytest.raises(CommandError):
            shell.ensure_key()


class TestRemoteCommands:
    """run / check / reachability."""

    @patch(RUN)
    def test_batch_options(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        mock_run.return_value = _done("ok\n")
        shell.run("34.1.2.3", "uptime")
        argv = mock_run.call_args.args[0]
        assert argv[0] == "ssh"
        assert "StrictHostKeyChecking=accept-new" in argv
        assert "BatchMode=yes" in argv
        assert argv[-2:] == ["trader@34.1.2.3", "uptime"]

    @patch(RUN)
    def test_secrets_on_stdin(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        """Payloads go through stdin and never appear in argv."""
        mock_run.return_value = _done()
        shell.run("h", "cat > f", stdin="SECRET=1\n")
        assert mock_run.call_args.kwargs["input"] == "SECRET=1\n"
        assert not any("SECRET" in a for a in mock_run.call_args.args[0])

    @patch(RUN, side_effect=subprocess.TimeoutExpired(["ssh"], 1))
    def test_timeout(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        assert shell.run("h", "sleep 999").returncode == 124

    @patch(RUN)
    def test_check_raises(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        mock_run.return_value = _done(returncode=255, stderr="Connection refused")
        with pytest.raises(CommandError, match="Connection refused"):
            shell.check("h", "true")

    @patch(RUN)
    def test_is_reachable(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        mock_run.return_value = _done("ok\n")
        assert shell.is_reachable("h") is True
        mock_run.return_value = _done("", returncode=255)
        assert shell.is_reachable("h") is False

    @patch(RUN)
    def test_upload_recursive(self, mock_run: MagicMock, shell: RemoteShell, tmp_path: Path) -> None:
        mock_run.return_value = _done()
        shell.upload("h", tmp_path, "/tmp/x/", recursive=True)
        argv = mock_run.call_args.args[0]
        assert argv[0] == "scp"
        assert "-r" in argv
        assert argv[-1] == "trader@h:/tmp/x/"

    @patch(RUN)
    def test_forget_host(self, mock_run: MagicMock, shell: RemoteShell) -> None:
        mock_run.return_value = _done()
        shell.forget_host("34.1.2.3")
        assert mock_run.call_args.args[0] == ["ssh-keygen", "-R", "34.1.2.3"]

    @patch("algora1.ssh.os.execvp")
    def test_attach_is_interactive(self, mock_exec: MagicMock, shell: RemoteShell) -> None:
        shell.attach("h", "/usr/local/bin/algora1")
        prog, argv = mock_exec.call_args.args
        assert prog == "ssh"
        assert argv[1] == "-tt"
        assert "BatchMode=yes" not in argv
        assert argv[-1] == "/usr/local/bin/algora1"
