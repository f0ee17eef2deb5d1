"""Tests for the gcloud-backed cloud probe and control plane.

The gcloud binary is never executed; ``subprocess.run`` is patched and
fed canned CompletedProcess results.
"""

from __future__ import annotations

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from algora1.errors import CommandError
from algora1.models import ConfigurationProfile, InstanceStatus, ProvisioningState
from algora1.providers.gcloud import (
    COMPUTE_API,
    CloudControl,
    CloudResourceProbe,
    GCloudRunner,
    billing_link_url,
    compute_enable_url,
)

RUN = "algora1.providers.gcloud.subprocess.run"


def _done(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["gcloud"], returncode, stdout=stdout, stderr=stderr)


def _instance_json(status: str = "RUNNING", ip: str | None = "34.1.2.3") -> str:
    access = [{"natIP": ip}] if ip else [{}]
    return json.dumps({
        "name": "algora1",
        "status": status,
        "networkInterfaces": [{"accessConfigs": access}],
    })


class TestGCloudRunner:
    """Process plumbing."""

    @patch(RUN, side_effect=FileNotFoundError)
    def test_missing_binary(self, mock_run: MagicMock) -> None:
        """A missing gcloud becomes returncode 127, not an exception."""
        assert GCloudRunner().run("version").returncode == 127

    @patch(RUN, side_effect=subprocess.TimeoutExpired(["gcloud"], 1))
    def test_timeout(self, mock_run: MagicMock) -> None:
        assert GCloudRunner().run("version").returncode == 124

    @patch(RUN)
    def test_quiet_env(self, mock_run: MagicMock) -> None:
        """Update checks and usage reporting are switched off."""
        mock_run.return_value = _done()
        GCloudRunner().run("version")
        env = mock_run.call_args.kwargs["env"]
        assert env["CLOUDSDK_COMPONENT_MANAGER_DISABLE_UPDATE_CHECK"] == "1"
        assert env["CLOUDSDK_CORE_DISABLE_USAGE_REPORTING"] == "1"

    @patch(RUN)
    def test_value_empty_on_failure(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("something", returncode=1)
        assert GCloudRunner().value("x") == ""

    @patch(RUN)
    def test_check_raises(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done(returncode=2, stderr="ERROR: quota exceeded\n")
        with pytest.raises(CommandError, match="quota exceeded"):
            GCloudRunner().check("compute", "instances", "create")


class TestCloudResourceProbe:
    """Read-only queries."""

    @patch(RUN)
    def test_active_account(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("ops@example.com\n")
        assert CloudResourceProbe().active_account() == "ops@example.com"

    @patch(RUN)
    def test_no_active_account(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("")
        assert CloudResourceProbe().active_account() is None

    @patch(RUN)
    def test_configured_project_unset(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("(unset)\n")
        assert CloudResourceProbe().configured_project() is None

    @patch(RUN)
    def test_project_exists(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("acct-demo\n")
        assert CloudResourceProbe().project_exists("acct-demo") is True
        mock_run.return_value = _done(returncode=1)
        assert CloudResourceProbe().project_exists("acct-demo") is False

    def test_empty_project_never_exists(self) -> None:
        assert CloudResourceProbe().project_exists("") is False

    @patch(RUN)
    def test_billing_enabled(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done("True\n")
        assert CloudResourceProbe().billing_enabled("p") is True
        mock_run.return_value = _done("False\n")
        assert CloudResourceProbe().billing_enabled("p") is False

    @patch(RUN)
    def test_service_enabled(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done(f"oslogin.googleapis.com\n{COMPUTE_API}\n")
        assert CloudResourceProbe().service_enabled("p") is True

    @patch(RUN)
    def test_describe_instance(self, mock_run: MagicMock) -> None:
        """Status and NAT address come from the JSON description."""
        mock_run.return_value = _done(_instance_json("RUNNING", "34.1.2.3"))
        inst = CloudResourceProbe().describe_instance("p", "us-central1-c")
        assert inst is not None
        assert inst.status == InstanceStatus.RUNNING
        assert inst.external_ip == "34.1.2.3"
        assert inst.zone == "us-central1-c"

    @patch(RUN)
    def test_describe_staging_has_no_ip(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done(_instance_json("STAGING", None))
        inst = CloudResourceProbe().describe_instance("p", "z")
        assert inst.status == InstanceStatus.CREATED
        assert inst.external_ip is None

    @patch(RUN)
    def test_describe_missing(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done(returncode=1, stderr="not found")
        assert CloudResourceProbe().describe_instance("p", "z") is None


class TestProbeState:
    """Inferred provisioning state from a scripted probe."""

    def _probe(self, **answers) -> CloudResourceProbe:
        probe = CloudResourceProbe()
        probe.project_exists = MagicMock(return_value=answers.get("project", True))
        probe.billing_enabled = MagicMock(return_value=answers.get("billing", True))
        probe.service_enabled = MagicMock(return_value=answers.get("api", True))
        probe.describe_instance = MagicMock(return_value=answers.get("instance"))
        return probe

    def test_no_project(self) -> None:
        state = self._probe().state(ConfigurationProfile(), lambda ip: True)
        assert state == ProvisioningState.NO_PROJECT

    def test_stages(self) -> None:
        from algora1.models import Instance

        profile = ConfigurationProfile(project_id="acct-demo")
        running = Instance(name="algora1", zone="z", status=InstanceStatus.RUNNING,
                           external_ip="34.1.2.3")
        stopped = Instance(name="algora1", zone="z", status=InstanceStatus.STOPPED)

        assert self._probe(billing=False).state(profile, lambda ip: True) \
            == ProvisioningState.PROJECT_NO_BILLING
        assert self._probe(api=False).state(profile, lambda ip: True) \
            == ProvisioningState.BILLING_NO_API
        assert self._probe().state(profile, lambda ip: True) \
            == ProvisioningState.API_NO_INSTANCE
        assert self._probe(instance=stopped).state(profile, lambda ip: True) \
            == ProvisioningState.INSTANCE_NOT_RUNNING
        assert self._probe(instance=running).state(profile, lambda ip: False) \
            == ProvisioningState.INSTANCE_RUNNING_NO_SSH
        assert self._probe(instance=running).state(profile, lambda ip: True) \
            == ProvisioningState.READY


class TestCloudControl:
    """Mutations."""

    @patch(RUN)
    def test_create_instance_command(self, mock_run: MagicMock) -> None:
        """The operator key goes into ssh-keys metadata with the remote user."""
        mock_run.return_value = _done()
        profile = ConfigurationProfile(project_id="acct-demo", remote_user="trader")
        CloudControl().create_instance(profile, "ssh-ed25519 AAAA key\n")
        argv = mock_run.call_args.args[0]
        assert argv[:5] == ["gcloud", "compute", "instances", "create", "algora1"]
        assert "ssh-keys=trader:ssh-ed25519 AAAA key" in argv
        assert argv[argv.index("--machine-type") + 1] == "e2-custom-1-3072"
        assert argv[argv.index("--image-family") + 1] == "ubuntu-2404-lts-amd64"
        assert argv[argv.index("--image-project") + 1] == "ubuntu-os-cloud"
        assert argv[argv.index("--zone") + 1] == "us-central1-c"

    @patch(RUN)
    def test_create_instance_failure(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done(returncode=1, stderr="ERROR: billing disabled")
        with pytest.raises(CommandError):
            CloudControl().create_instance(ConfigurationProfile(project_id="p"), "k")

    @patch(RUN)
    def test_grant_role(self, mock_run: MagicMock) -> None:
        mock_run.return_value = _done()
        assert CloudControl().grant_role("p", "ops@example.com", "roles/compute.admin")
        argv = mock_run.call_args.args[0]
        assert "--member=user:ops@example.com" in argv
        assert "--role=roles/compute.admin" in argv

    @patch(RUN)
    def test_login_is_interactive(self, mock_run: MagicMock) -> None:
        """Login keeps the terminal attached (no captured output)."""
        mock_run.return_value = _done()
        assert CloudControl().login() is True
        assert "capture_output" not in mock_run.call_args.kwargs


class TestConsoleUrls:
    def test_billing_url(self) -> None:
        assert billing_link_url("acct-demo").endswith("linkedaccount?project=acct-demo")

    def test_enable_url(self) -> None:
        url = compute_enable_url("acct-demo")
        assert COMPUTE_API in url
        assert "project=acct-demo" in url
