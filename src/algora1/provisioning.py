"""
Provisioning Orchestrator — bring one instance to "ready", idempotently.

Step order (each skipped when the live resource already satisfies it):
  1. Authenticate (reuse an active account)
  2. Resolve a project (saved → CLI default → only one → choose → create)
  3. Billing linked (operator-gated, no timeout)
  4. Compute API enabled (self-grant + bounded retry, then operator-gated)
  5. Instance exists (create with the operator key in metadata)
  6. Instance RUNNING (bounded polling)
  7. SSH reachable (bounded polling)

Nothing is remembered between runs except the profile. Re-running after a
crash re-derives every step from the provider, so the pipeline resumes
wherever the cloud actually is.

Fast path: once a project is known, an instance that exists, is RUNNING,
has an address and answers SSH short-circuits steps 2–6 entirely.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import ConfigStore
from .errors import (
    ApiEnableFailedError,
    AuthFailedError,
    BillingNotLinkedError,
    CommandError,
    InstanceCreateFailedError,
    InstanceNeverRunningError,
    NoAccessibleProjectError,
    OperatorCancelled,
    ProjectCreateFailedError,
    SshNeverReadyError,
)
from .models import ConfigurationProfile, Instance, ReadyInstance
from .polling import poll_until, wait_for_operator
from .project_ids import (
    PROJECT_ID_REQUIREMENTS,
    auto_suffix_project_id,
    project_id_problem,
)
from .providers.gcloud import (
    COMPUTE_API,
    SELF_GRANT_ROLES,
    CloudControl,
    CloudResourceProbe,
    billing_link_url,
    compute_enable_url,
)
from .ssh import RemoteShell
from .ui import Operator

logger = logging.getLogger(__name__)

CHOICE_RETRY = "Try a different PROJECT_ID"
CHOICE_SUFFIX = "Auto-fix with random suffix"
CHOICE_EXIT = "Exit"


@dataclass(frozen=True)
class PollingBudget:
    """Fixed attempt count and fixed delay, no backoff."""

    attempts: int
    delay: float


API_ENABLE_BUDGET = PollingBudget(attempts=12, delay=5)
INSTANCE_RUNNING_BUDGET = PollingBudget(attempts=120, delay=5)
SSH_READY_BUDGET = PollingBudget(attempts=120, delay=5)


class ProvisioningOrchestrator:
    """Sequences provisioning steps against live cloud state.

    Args:
        probe: Read-only cloud queries.
        control: Cloud mutations.
        shell: Remote shell used for reachability and the public key.
        operator: Human prompts.
        store: Where the resolved project is persisted.
        confirm_plan: Called with the profile before creating an instance;
            return False to cancel.
        sleep: Sleep used between polling attempts.
    """

    def __init__(
        self,
        probe: CloudResourceProbe,
        control: CloudControl,
        shell: RemoteShell,
        operator: Operator,
        store: Optional[ConfigStore] = None,
        confirm_plan: Optional[Callable[[ConfigurationProfile], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
        api_budget: PollingBudget = API_ENABLE_BUDGET,
        running_budget: PollingBudget = INSTANCE_RUNNING_BUDGET,
        ssh_budget: PollingBudget = SSH_READY_BUDGET,
    ) -> None:
        self.probe = probe
        self.control = control
        self.shell = shell
        self.operator = operator
        self.store = store
        self.confirm_plan = confirm_plan
        self.sleep = sleep
        self.api_budget = api_budget
        self.running_budget = running_budget
        self.ssh_budget = ssh_budget
        self.account: Optional[str] = None

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------

    def ensure_ready(self, profile: ConfigurationProfile) -> ReadyInstance:
        """Make sure a running, reachable instance exists and return its address.

        Mutates ``profile.project_id`` when a project gets resolved and
        saves the profile if a store was given.

        Raises:
            ProvisioningError: The subclass names the step that failed.
        """
        self.authenticate()

        if profile.project_id:
            ready = self.fast_path(profile)
            if ready is not None:
                return ready

        self.resolve_project(profile)
        self._save(profile)

        ready = self.fast_path(profile)
        if ready is not None:
            return ready

        project = profile.project_id or ""
        self.ensure_billing(project)
        self.ensure_api(project)
        self.ensure_instance(profile)
        instance = self.wait_running(profile)
        address = instance.external_ip or ""
        self.wait_ssh(address)
        return ReadyInstance(address=address, instance=instance, fast_path=False)

    def fast_path(self, profile: ConfigurationProfile) -> Optional[ReadyInstance]:
        """Return the instance if it already exists, runs and answers SSH."""
        if not profile.project_id:
            return None
        instance = self.probe.describe_instance(profile.project_id, profile.zone)
        if instance is None or not instance.is_running or not instance.external_ip:
            return None
        if not self.shell.is_reachable(instance.external_ip):
            logger.info("Instance running but SSH not answering; taking full path")
            return None

        self.operator.ok(
            f"Instance already exists & RUNNING: {instance.name} ({instance.zone})"
        )
        self.operator.ok(f"Instance external IP: {instance.external_ip}")
        logger.info("Fast path to %s", instance.external_ip)
        return ReadyInstance(address=instance.external_ip, instance=instance, fast_path=True)

    # -------------------------------------------------------------------
    # Step 1: identity
    # -------------------------------------------------------------------

    def authenticate(self) -> str:
        """Reuse the active account or run a browser login.

        Raises:
            AuthFailedError: If no account is active afterwards.
        """
        account = self.probe.active_account()
        if not account:
            self.operator.step("Google account authentication")
            self.operator.info("Launching browser login…")
            if not self.control.login():
                raise AuthFailedError("gcloud auth login failed.")
            account = self.probe.active_account()
            if not account:
                raise AuthFailedError("Login succeeded but no active account found.")
        self.account = account
        self.operator.ok(f"Authenticated as {account}")
        return account

    # -------------------------------------------------------------------
    # Step 2: project
    # -------------------------------------------------------------------

    def _use_project(self, profile: ConfigurationProfile, project_id: str, how: str) -> str:
        self.control.set_project(project_id)
        profile.project_id = project_id
        self.operator.ok(f"{how}: {project_id}")
        return project_id

    def resolve_project(self, profile: ConfigurationProfile) -> str:
        """Pick (or create) the project to work in.

        Raises:
            NoAccessibleProjectError: A chosen project is not accessible.
            ProjectCreateFailedError: The operator gave up on creating one.
        """
        self.operator.step("Google Cloud project")

        if profile.project_id and self.probe.project_exists(profile.project_id):
            return self._use_project(profile, profile.project_id, "Using saved project")

        current = self.probe.configured_project()
        if current and self.probe.project_exists(current):
            return self._use_project(profile, current, "Using gcloud configured project")

        projects = self.probe.list_projects()
        if len(projects) == 1:
            return self._use_project(profile, projects[0], "Found one project")

        if len(projects) > 1:
            chosen = self.operator.choose("Select a GCP PROJECT_ID to use", projects)
            if not chosen or not self.probe.project_exists(chosen):
                raise NoAccessibleProjectError(f"Project '{chosen}' not found / no access.")
            return self._use_project(profile, chosen, "Selected project")

        self.operator.warn("No Google Cloud projects found for this account.")
        return self._create_project_interactive(profile)

    def _show_requirements(self) -> None:
        self.operator.info("Project ID requirements: " + "; ".join(PROJECT_ID_REQUIREMENTS))

    def _try_create(self, profile: ConfigurationProfile, project_id: str) -> bool:
        self.operator.info(f"Creating project '{project_id}'…")
        self.control.create_project(project_id)
        # Trust the provider, not the create call's exit code.
        if self.probe.project_exists(project_id):
            self._use_project(profile, project_id, "Project created")
            return True
        return False

    def _create_project_interactive(self, profile: ConfigurationProfile) -> str:
        self._show_requirements()
        while True:
            candidate = "".join(self.operator.ask("Enter a new PROJECT_ID:").split())
            problem = project_id_problem(candidate)
            if problem:
                self.operator.warn(problem)
                self._show_requirements()
                continue

            if self.probe.project_exists(candidate):
                return self._use_project(profile, candidate, "Project already exists; using")

            if self._try_create(profile, candidate):
                return candidate

            self.operator.warn(
                f"Failed to create '{candidate}'. It may be taken, restricted, "
                "or blocked by org policy."
            )
            while True:
                action = self.operator.choose(
                    "How would you like to proceed?",
                    [CHOICE_RETRY, CHOICE_SUFFIX, CHOICE_EXIT],
                )
                if action == CHOICE_RETRY:
                    break
                if action != CHOICE_SUFFIX:
                    raise ProjectCreateFailedError("Setup cancelled.")

                suffixed = auto_suffix_project_id(candidate)
                self.operator.info(f"Trying: {suffixed}")
                if project_id_problem(suffixed) is None and self._try_create(profile, suffixed):
                    return suffixed
                self.operator.warn("Auto-fix attempt failed too. Try again.")

    # -------------------------------------------------------------------
    # Step 3: billing
    # -------------------------------------------------------------------

    def ensure_billing(self, project_id: str) -> None:
        """Block until billing is linked or the operator cancels.

        Raises:
            BillingNotLinkedError: On operator cancel.
        """
        self.operator.step("Billing check")
        try:
            wait_for_operator(
                lambda: self.probe.billing_enabled(project_id),
                self.operator.recheck,
                "Billing is not linked to this project",
                f"Link billing:\n{billing_link_url(project_id)}\n\n"
                "After linking billing, re-check to continue.",
            )
        except OperatorCancelled as exc:
            raise BillingNotLinkedError(str(exc)) from exc
        self.operator.ok("Billing linked")

    # -------------------------------------------------------------------
    # Step 4: compute API
    # -------------------------------------------------------------------

    def ensure_api(self, project_id: str) -> None:
        """Enable the compute API, escalating as needed.

        Raises:
            ApiEnableFailedError: When the manual fallback is cancelled.
        """
        self.operator.step("Enabling Compute Engine API")
        if self.probe.service_enabled(project_id, COMPUTE_API):
            self.operator.ok("Compute Engine API already enabled")
            return

        if self.control.enable_service(project_id, COMPUTE_API):
            self.operator.ok(f"{COMPUTE_API} enabled")
            return

        account = self.account or self.probe.active_account()
        if account:
            self.operator.info("Attempting to self-grant permissions (service usage / compute)…")
            for role in SELF_GRANT_ROLES:
                self.control.grant_role(project_id, account, role)

            enabled = poll_until(
                lambda: self.control.enable_service(project_id, COMPUTE_API),
                self.api_budget.attempts,
                self.api_budget.delay,
                label="compute API enable",
                sleep=self.sleep,
            )
            if enabled and self.probe.service_enabled(project_id, COMPUTE_API):
                self.operator.ok(f"{COMPUTE_API} enabled")
                return

        self.operator.warn(f"Could not enable {COMPUTE_API} automatically.")
        try:
            wait_for_operator(
                lambda: self.probe.service_enabled(project_id, COMPUTE_API),
                self.operator.recheck,
                "Enable Compute Engine API in the browser",
                f"{compute_enable_url(project_id)}\n\nThen re-check to continue.",
            )
        except OperatorCancelled as exc:
            raise ApiEnableFailedError("Compute Engine API still not enabled.") from exc
        self.operator.ok(f"{COMPUTE_API} enabled")

    # -------------------------------------------------------------------
    # Steps 5-7: instance
    # -------------------------------------------------------------------

    def ensure_instance(self, profile: ConfigurationProfile) -> bool:
        """Create the instance if it does not exist.

        Returns:
            True if a create call was made.

        Raises:
            OperatorCancelled: If the install plan was declined.
            InstanceCreateFailedError: If the create call failed.
        """
        self.operator.step("Provisioning virtual machine")
        project = profile.project_id or ""
        existing = self.probe.describe_instance(project, profile.zone)
        if existing is not None:
            self.operator.ok(f"Instance already exists: {existing.name} ({existing.zone})")
            return False

        if self.confirm_plan is not None and not self.confirm_plan(profile):
            raise OperatorCancelled("Setup cancelled.")

        try:
            self.control.create_instance(profile, self.shell.public_key())
        except (CommandError, OSError) as exc:
            raise InstanceCreateFailedError(f"Instance create failed: {exc}") from exc
        self.operator.ok("Instance created")
        return True

    def wait_running(self, profile: ConfigurationProfile) -> Instance:
        """Poll until RUNNING with an external address.

        Raises:
            InstanceNeverRunningError: Budget exhausted or no address.
        """
        self.operator.info("Waiting for instance to be RUNNING…")
        seen: list[Instance] = []

        def _running() -> bool:
            inst = self.probe.describe_instance(profile.project_id or "", profile.zone)
            if inst is not None and inst.is_running:
                seen.append(inst)
                return True
            return False

        if not poll_until(
            _running,
            self.running_budget.attempts,
            self.running_budget.delay,
            label="instance running",
            sleep=self.sleep,
        ):
            raise InstanceNeverRunningError("Instance never reached RUNNING status.")

        instance = seen[-1]
        if not instance.external_ip:
            raise InstanceNeverRunningError("Could not determine instance external IP.")
        self.operator.ok("Instance status: RUNNING")
        self.operator.ok(f"Instance external IP: {instance.external_ip}")
        return instance

    def wait_ssh(self, address: str) -> None:
        """Poll until the remote shell answers.

        Raises:
            SshNeverReadyError: Budget exhausted.
        """
        self.shell.forget_host(address)
        self.operator.info("Waiting for SSH…")
        if not poll_until(
            lambda: self.shell.is_reachable(address),
            self.ssh_budget.attempts,
            self.ssh_budget.delay,
            label="ssh ready",
            sleep=self.sleep,
        ):
            raise SshNeverReadyError("SSH never became ready.")
        self.operator.ok("SSH ready")

    def _save(self, profile: ConfigurationProfile) -> None:
        if self.store is not None:
            self.store.save(profile)
