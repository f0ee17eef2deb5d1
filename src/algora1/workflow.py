"""
Setup flow — what a bare ``algora1`` run does, start to finish.

    preflight -> key pair -> ensure_ready -> credentials -> engines
              -> control panel -> connect

On the fast path only the control panel is refreshed (and credentials
captured if the profile has none) before connecting.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import ENGINE_NAMES, INSTANCE_NAME
from .config import ConfigStore
from .engine_transfer import EngineUploader
from .models import CREDENTIAL_ENV_VARS, ConfigurationProfile, ReadyInstance
from .preflight import auto_install_tool, detect_os, require, run_preflight
from .providers.gcloud import CloudControl, CloudResourceProbe, GCloudRunner
from .provisioning import ProvisioningOrchestrator
from .remote import MENU_COMMAND
from .remote_install import ControlPanelInstaller
from .ssh import RemoteShell
from .ui import Operator

logger = logging.getLogger("algora1.workflow")

CONNECT_NOW = "Connect now"
EXIT = "Exit"

# Secret-ness per credential field, in prompt order.
_CREDENTIAL_PROMPTS = (
    ("alpaca_live_api_key", False),
    ("alpaca_live_secret_key", True),
    ("alpaca_paper_api_key", False),
    ("alpaca_paper_secret_key", True),
)


def check_local_tools(operator: Operator) -> None:
    """Fail fast on missing local tools; offer to install gcloud.

    Raises:
        MissingToolError: If ssh tooling or gcloud is still missing.
    """
    operator.step("Preflight")
    operator.ok(f"OS detected: {detect_os()}")
    result = run_preflight()
    require(result.ssh)
    operator.ok("ssh detected")
    if not result.gcloud.installed and result.gcloud.install_cmd:
        if operator.confirm(
            f"gcloud not found. Install with '{result.gcloud.install_cmd}'?", default=True,
        ):
            if auto_install_tool(result.gcloud):
                operator.ok("gcloud installed")
                return
            operator.warn("gcloud install failed.")
    require(result.gcloud)
    operator.ok("gcloud detected")


def capture_credentials(operator: Operator, profile: ConfigurationProfile) -> ConfigurationProfile:
    """Prompt for all four credentials; every one must be non-empty."""
    operator.step("Trading credentials")
    values = {}
    for field, hidden in _CREDENTIAL_PROMPTS:
        label = f"{CREDENTIAL_ENV_VARS[field]}:"
        while True:
            value = operator.secret(label) if hidden else operator.ask(label)
            if value:
                break
            operator.warn(f"{CREDENTIAL_ENV_VARS[field]} cannot be empty.")
        values[field] = value
    return profile.model_copy(update=values)


class SetupFlow:
    """Runs provisioning and remote setup with one operator.

    Args:
        store: Profile storage.
        operator: Human prompts.
        runner: gcloud runner; a default one when omitted.
        shell: Remote shell; built from the profile's user when omitted.
    """

    def __init__(
        self,
        store: ConfigStore,
        operator: Operator,
        runner: Optional[GCloudRunner] = None,
        shell: Optional[RemoteShell] = None,
    ) -> None:
        self.store = store
        self.operator = operator
        self.runner = runner or GCloudRunner()
        self._shell = shell

    def shell_for(self, profile: ConfigurationProfile) -> RemoteShell:
        if self._shell is None:
            self._shell = RemoteShell(profile.remote_user)
        return self._shell

    def orchestrator(self, profile: ConfigurationProfile) -> ProvisioningOrchestrator:
        return ProvisioningOrchestrator(
            probe=CloudResourceProbe(self.runner, INSTANCE_NAME),
            control=CloudControl(self.runner, INSTANCE_NAME),
            shell=self.shell_for(profile),
            operator=self.operator,
            store=self.store,
            confirm_plan=self.confirm_plan,
        )

    def confirm_plan(self, profile: ConfigurationProfile) -> bool:
        self.operator.step("Install plan")
        self.operator.key_values([
            ("OS", detect_os()),
            ("Project", profile.project_id or ""),
            ("Region", profile.region),
            ("Zone", profile.zone),
            ("Machine", profile.machine_type),
            ("Engines", ", ".join(ENGINE_NAMES)),
        ])
        return self.operator.confirm("Proceed with install?", default=True)

    def prepare(self, profile: ConfigurationProfile) -> ReadyInstance:
        """Local checks, key pair and a ready instance."""
        check_local_tools(self.operator)
        shell = self.shell_for(profile)
        if shell.ensure_key():
            self.operator.ok(f"SSH key created: {shell.key_path}")
        else:
            self.operator.ok(f"SSH key exists: {shell.key_path}")
        return self.orchestrator(profile).ensure_ready(profile)

    def run(self, connect: Optional[bool] = None) -> ReadyInstance:
        """Provision (or resume) and set up the instance.

        Args:
            connect: True to attach without asking, False to never attach,
                None to ask on the full path and attach on the fast path.
        """
        profile = self.store.load()
        ready = self.prepare(profile)
        shell = self.shell_for(profile)
        installer = ControlPanelInstaller(shell)

        if not ready.fast_path or not profile.has_credentials:
            if not profile.has_credentials:
                profile = capture_credentials(self.operator, profile)
                self.store.save(profile)
            self.operator.step("Finalizing setup")
            installer.write_credentials(ready.address, profile)
            self.operator.ok("Credentials written to VM")
            if installer.customize_motd(ready.address):
                self.operator.ok("Login banner installed")

        if not ready.fast_path:
            self.operator.step("Uploading engines")
            EngineUploader(shell).upload_all(ready.address, progress=self.operator.ok)
            self.operator.ok("Engine transfer complete")

        self.operator.step("Installing Control Panel")
        installer.install(ready.address)
        self.operator.ok("Control panel installed")

        if connect is None:
            connect = ready.fast_path or self.completion(ready)
        if connect:
            self.operator.info("Launching control panel…")
            shell.attach(ready.address, MENU_COMMAND)
        return ready

    def completion(self, ready: ReadyInstance) -> bool:
        self.operator.step("Setup complete")
        self.operator.key_values([
            ("Instance", ready.instance.name),
            ("Zone", ready.instance.zone),
            ("External IP", ready.address),
            ("Control panel", "algora1"),
        ])
        return self.operator.choose("What next?", [CONNECT_NOW, EXIT]) == CONNECT_NOW
