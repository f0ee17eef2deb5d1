"""
Google Cloud control plane — driven through the ``gcloud`` CLI.

Two halves with one runner underneath:

- ``CloudResourceProbe`` only reads. Each query answers "does X exist /
  what is its status" and treats a failing command as "no". The
  orchestrator decides every step from these answers, never from a local
  record of what ran before.
- ``CloudControl`` requests changes: login, project create, API enable,
  role grant, instance create. Every call is safe to repeat.

Commands run with update checks and usage reporting disabled so their
output stays machine-readable.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from typing import Any, Callable, Dict, List, Optional, Sequence

from .. import INSTANCE_NAME
from ..errors import CommandError
from ..models import (
    IMAGE_FAMILY,
    IMAGE_PROJECT,
    ConfigurationProfile,
    Instance,
    InstanceStatus,
    ProvisioningState,
)

logger = logging.getLogger(__name__)

COMPUTE_API = "compute.googleapis.com"

SELF_GRANT_ROLES = (
    "roles/serviceusage.serviceUsageAdmin",
    "roles/compute.admin",
    "roles/iam.serviceAccountUser",
)

_QUIET_ENV = {
    "CLOUDSDK_COMPONENT_MANAGER_DISABLE_UPDATE_CHECK": "1",
    "CLOUDSDK_CORE_DISABLE_USAGE_REPORTING": "1",
}


def billing_link_url(project_id: str) -> str:
    """Console page where the operator links a billing account."""
    return f"https://console.cloud.google.com/billing/linkedaccount?project={project_id}"


def compute_enable_url(project_id: str) -> str:
    """Console page where the operator enables the Compute Engine API."""
    return (
        "https://console.cloud.google.com/marketplace/product/google/"
        f"{COMPUTE_API}?project={project_id}"
        f"&returnUrl=%2Fcompute%2Finstances%3Fproject%3D{project_id}"
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class GCloudRunner:
    """Runs ``gcloud`` subcommands.

    Args:
        binary: gcloud executable name or path.
        timeout: Default per-command timeout in seconds.
    """

    def __init__(self, binary: str = "gcloud", timeout: int = 120) -> None:
        self.binary = binary
        self.timeout = timeout

    def run(
        self,
        *args: str,
        timeout: Optional[int] = None,
        interactive: bool = False,
    ) -> subprocess.CompletedProcess:
        """Run one gcloud command.

        Args:
            *args: Arguments after ``gcloud``.
            timeout: Override the default timeout.
            interactive: Leave stdio attached to the terminal (browser login).

        Returns:
            CompletedProcess. A missing binary or timeout yields returncode 127/124.
        """
        cmd = [self.binary, *args]
        env = {**os.environ, **_QUIET_ENV}
        logger.debug("Running: %s", " ".join(cmd))
        try:
            if interactive:
                return subprocess.run(cmd, env=env, timeout=timeout or self.timeout)
            return subprocess.run(
                cmd, capture_output=True, text=True, env=env,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError:
            return subprocess.CompletedProcess(cmd, 127, stdout="", stderr=f"{self.binary} not found")
        except subprocess.TimeoutExpired:
            logger.warning("Timed out: %s", " ".join(cmd))
            return subprocess.CompletedProcess(cmd, 124, stdout="", stderr="timed out")

    def value(self, *args: str) -> str:
        """Run a query and return stripped stdout, or '' on failure."""
        result = self.run(*args)
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip()

    def lines(self, *args: str) -> List[str]:
        """Run a query and return its non-blank output lines."""
        return [line.strip() for line in self.value(*args).splitlines() if line.strip()]

    def ok(self, *args: str) -> bool:
        return self.run(*args).returncode == 0

    def check(self, *args: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        """Run a mutating command and raise if it fails.

        Raises:
            CommandError: On non-zero exit.
        """
        result = self.run(*args, timeout=timeout)
        if result.returncode != 0:
            raise CommandError(result.args, result.returncode, result.stderr or "")
        return result


# ---------------------------------------------------------------------------
# Read-only probe
# ---------------------------------------------------------------------------

def _nat_ip(data: Dict[str, Any]) -> Optional[str]:
    for iface in data.get("networkInterfaces") or []:
        for access in iface.get("accessConfigs") or []:
            ip = access.get("natIP")
            if ip:
                return ip
    return None


class CloudResourceProbe:
    """Answers questions about what currently exists in the cloud.

    Args:
        runner: gcloud runner.
        instance_name: The fixed name of the managed instance.
    """

    def __init__(
        self,
        runner: Optional[GCloudRunner] = None,
        instance_name: str = INSTANCE_NAME,
    ) -> None:
        self.runner = runner or GCloudRunner()
        self.instance_name = instance_name

    def active_account(self) -> Optional[str]:
        """The currently authenticated account, if any."""
        accounts = self.runner.lines(
            "auth", "list", "--filter=status:ACTIVE", "--format=value(account)",
        )
        return accounts[0] if accounts else None

    def configured_project(self) -> Optional[str]:
        """The CLI's default project, if one is set."""
        value = self.runner.value("config", "get-value", "project")
        if not value or value == "(unset)":
            return None
        return value

    def project_exists(self, project_id: str) -> bool:
        """True if the project exists and the caller can see it."""
        if not project_id:
            return False
        return self.runner.ok(
            "projects", "describe", project_id, "--format=value(projectId)",
        )

    def list_projects(self) -> List[str]:
        return self.runner.lines("projects", "list", "--format=value(projectId)")

    def billing_enabled(self, project_id: str) -> bool:
        value = self.runner.value(
            "billing", "projects", "describe", project_id,
            "--format=value(billingEnabled)",
        )
        return value.strip().lower() == "true"

    def enabled_services(self, project_id: str) -> List[str]:
        return self.runner.lines(
            "services", "list", "--enabled", "--project", project_id,
            "--format=value(config.name)",
        )

    def service_enabled(self, project_id: str, service: str = COMPUTE_API) -> bool:
        return service in self.enabled_services(project_id)

    def describe_instance(self, project_id: str, zone: str) -> Optional[Instance]:
        """Fetch the managed instance, or None if it does not exist."""
        result = self.runner.run(
            "compute", "instances", "describe", self.instance_name,
            "--zone", zone, "--project", project_id, "--format=json",
        )
        if result.returncode != 0:
            return None
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            logger.warning("Unparseable instance description: %s", exc)
            return None
        return Instance(
            name=data.get("name", self.instance_name),
            zone=zone,
            status=InstanceStatus.from_provider(data.get("status", "")),
            external_ip=_nat_ip(data),
        )

    def state(
        self,
        profile: ConfigurationProfile,
        ssh_ready: Callable[[str], bool],
    ) -> ProvisioningState:
        """Infer where provisioning stands from live resources.

        Args:
            profile: Supplies project and zone.
            ssh_ready: Reachability check for an address.

        Returns:
            The first unsatisfied stage, or READY.
        """
        project = profile.project_id
        if not project or not self.project_exists(project):
            return ProvisioningState.NO_PROJECT
        if not self.billing_enabled(project):
            return ProvisioningState.PROJECT_NO_BILLING
        if not self.service_enabled(project):
            return ProvisioningState.BILLING_NO_API
        instance = self.describe_instance(project, profile.zone)
        if instance is None:
            return ProvisioningState.API_NO_INSTANCE
        if not instance.is_running or not instance.external_ip:
            return ProvisioningState.INSTANCE_NOT_RUNNING
        if not ssh_ready(instance.external_ip):
            return ProvisioningState.INSTANCE_RUNNING_NO_SSH
        return ProvisioningState.READY


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class CloudControl:
    """Requests resource changes. Every method is safe to call twice."""

    def __init__(
        self,
        runner: Optional[GCloudRunner] = None,
        instance_name: str = INSTANCE_NAME,
    ) -> None:
        self.runner = runner or GCloudRunner()
        self.instance_name = instance_name

    def login(self) -> bool:
        """Browser login; stdio stays on the terminal for the URL/code."""
        result = self.runner.run(
            "auth", "login", "--quiet", "--verbosity=error",
            timeout=900, interactive=True,
        )
        return result.returncode == 0

    def set_project(self, project_id: str) -> bool:
        return self.runner.ok("config", "set", "project", project_id)

    def create_project(self, project_id: str, display_name: str = INSTANCE_NAME) -> bool:
        result = self.runner.run(
            "projects", "create", project_id, f"--name={display_name}",
            "--quiet", "--verbosity=error", timeout=300,
        )
        if result.returncode != 0:
            logger.warning("Project create %s failed: %s", project_id, (result.stderr or "").strip())
        return result.returncode == 0

    def enable_service(self, project_id: str, service: str = COMPUTE_API) -> bool:
        result = self.runner.run(
            "services", "enable", service, "--project", project_id, "--quiet",
            timeout=300,
        )
        return result.returncode == 0

    def grant_role(self, project_id: str, account: str, role: str) -> bool:
        result = self.runner.run(
            "projects", "add-iam-policy-binding", project_id,
            f"--member=user:{account}", f"--role={role}", "--quiet",
        )
        if result.returncode != 0:
            logger.info("Self-grant %s to %s failed", role, account)
        return result.returncode == 0

    def create_instance(
        self,
        profile: ConfigurationProfile,
        public_key: str,
        tags: Sequence[str] = ("ssh",),
    ) -> None:
        """Create the managed instance with the operator key in metadata.

        Raises:
            CommandError: If gcloud rejects the request.
        """
        ssh_metadata = f"ssh-keys={profile.remote_user}:{public_key.strip()}"
        logger.info(
            "Creating instance %s (type=%s zone=%s project=%s)",
            self.instance_name, profile.machine_type, profile.zone, profile.project_id,
        )
        self.runner.check(
            "compute", "instances", "create", self.instance_name,
            "--project", profile.project_id or "",
            "--zone", profile.zone,
            "--machine-type", profile.machine_type,
            "--image-family", IMAGE_FAMILY,
            "--image-project", IMAGE_PROJECT,
            "--metadata", ssh_metadata,
            "--tags", ",".join(tags),
            "--quiet",
            timeout=600,
        )
