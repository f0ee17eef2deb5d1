"""
Pydantic models for the operator profile and the observed cloud state.

Nothing here records what the installer *did*. The profile holds what the
operator chose; everything else is rebuilt from the provider on each run.
"""

from __future__ import annotations

import getpass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_REGION = "us-central1"
DEFAULT_ZONE = "us-central1-c"
DEFAULT_MACHINE_TYPE = "e2-custom-1-3072"

IMAGE_FAMILY = "ubuntu-2404-lts-amd64"
IMAGE_PROJECT = "ubuntu-os-cloud"

# Profile field -> environment variable the engines read.
CREDENTIAL_ENV_VARS: dict[str, str] = {
    "alpaca_live_api_key": "ALPACA_LIVE_API_KEY",
    "alpaca_live_secret_key": "ALPACA_LIVE_SECRET_KEY",
    "alpaca_paper_api_key": "ALPACA_PAPER_API_KEY",
    "alpaca_paper_secret_key": "ALPACA_PAPER_SECRET_KEY",
}


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "algora1"


class InstanceStatus(str, Enum):
    """Lifecycle state of the compute instance as reported by the provider."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, raw: str) -> "InstanceStatus":
        """Map a Compute Engine status string onto the four-state model."""
        value = (raw or "").strip().upper()
        if value == "RUNNING":
            return cls.RUNNING
        if value in ("PROVISIONING", "STAGING", "REPAIRING"):
            return cls.CREATED
        if value in ("STOPPING", "STOPPED", "TERMINATED", "SUSPENDING", "SUSPENDED"):
            return cls.STOPPED
        return cls.UNKNOWN


class ProvisioningState(str, Enum):
    """Where the resource graph currently stands, inferred from live state."""

    NO_PROJECT = "no-project"
    PROJECT_NO_BILLING = "project-no-billing"
    BILLING_NO_API = "billing-no-api"
    API_NO_INSTANCE = "api-no-instance"
    INSTANCE_NOT_RUNNING = "instance-not-running"
    INSTANCE_RUNNING_NO_SSH = "instance-running-no-ssh"
    READY = "ready"


class Instance(BaseModel):
    """The single compute instance, as observed."""

    name: str
    zone: str
    status: InstanceStatus = InstanceStatus.UNKNOWN
    external_ip: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status == InstanceStatus.RUNNING


class ConfigurationProfile(BaseModel):
    """Persisted cloud target and trading credentials for one operator."""

    project_id: Optional[str] = None
    region: str = DEFAULT_REGION
    zone: str = DEFAULT_ZONE
    machine_type: str = DEFAULT_MACHINE_TYPE
    remote_user: str = Field(default_factory=_default_user)

    alpaca_live_api_key: str = ""
    alpaca_live_secret_key: str = ""
    alpaca_paper_api_key: str = ""
    alpaca_paper_secret_key: str = ""

    @model_validator(mode="after")
    def _credentials_all_or_nothing(self) -> "ConfigurationProfile":
        filled = [bool(getattr(self, field)) for field in CREDENTIAL_ENV_VARS]
        if any(filled) and not all(filled):
            missing = [
                env for field, env in CREDENTIAL_ENV_VARS.items()
                if not getattr(self, field)
            ]
            raise ValueError(
                "Credentials must be set together; missing: " + ", ".join(missing)
            )
        return self

    @property
    def has_credentials(self) -> bool:
        """True when all four credential fields are present."""
        return all(getattr(self, field) for field in CREDENTIAL_ENV_VARS)

    def credential_env(self) -> dict[str, str]:
        """Credentials keyed by the environment variable names engines expect."""
        return {env: getattr(self, field) for field, env in CREDENTIAL_ENV_VARS.items()}


class ReadyInstance(BaseModel):
    """Result of a successful ``ensure_ready``."""

    address: str
    instance: Instance
    fast_path: bool = False
