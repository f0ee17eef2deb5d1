"""Exception taxonomy for provisioning and remote control."""

from __future__ import annotations

from typing import Sequence


class Algora1Error(Exception):
    """Base for every error the CLI reports to the operator."""


class MissingToolError(Algora1Error):
    """A required local executable (ssh, gcloud, ...) is not on PATH."""

    def __init__(self, tool: str, hint: str = "") -> None:
        self.tool = tool
        message = f"Required tool not found: {tool}"
        if hint:
            message += f" ({hint})"
        super().__init__(message)


class OperatorCancelled(Algora1Error):
    """The operator chose to stop at a prompt or an operator-gated wait."""


class CommandError(Algora1Error):
    """An external command exited non-zero where success was required."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        super().__init__(
            f"{argv[0] if argv else '?'} exited {returncode}"
            + (f": {detail}" if detail else "")
        )


class ProvisioningError(Algora1Error):
    """A provisioning step could not converge."""


class AuthFailedError(ProvisioningError):
    """No active cloud identity after login."""


class NoAccessibleProjectError(ProvisioningError):
    """A chosen project does not exist or is not accessible."""


class ProjectCreateFailedError(ProvisioningError):
    """Project creation failed and the operator gave up."""


class BillingNotLinkedError(ProvisioningError):
    """Billing is still not linked to the project."""


class ApiEnableFailedError(ProvisioningError):
    """The compute API could not be enabled, automatically or manually."""


class InstanceCreateFailedError(ProvisioningError):
    """The instance create call failed."""


class InstanceNeverRunningError(ProvisioningError):
    """The instance did not reach RUNNING within the polling budget."""


class SshNeverReadyError(ProvisioningError):
    """The instance never accepted a remote shell within the polling budget."""


class EngineArchiveError(Algora1Error):
    """An engine archive could not be fetched or did not hold one engine."""
