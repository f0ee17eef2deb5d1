"""
Credential delivery for engines.

The installer writes the four trading credentials into a private env
file on the instance. Starting an engine reads that file into an explicit
environment map and hands it to the child process; nothing depends on
which shell startup files happened to run.
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..models import CREDENTIAL_ENV_VARS

logger = logging.getLogger("algora1.remote.secrets")

REQUIRED_VARS = tuple(CREDENTIAL_ENV_VARS.values())

CREDENTIALS_RELPATH = ".config/algora1/credentials.env"


def render_credentials(values: Mapping[str, str]) -> str:
    """Serialize credentials as ``KEY='value'`` lines."""
    lines = ["# algora1 engine credentials (keep private)"]
    for key in REQUIRED_VARS:
        lines.append(f"{key}={shlex.quote(values.get(key, ''))}")
    return "\n".join(lines) + "\n"


def parse_env_file(text: str) -> Dict[str, str]:
    """Parse ``KEY=value`` lines; ``export`` prefixes and shell quoting allowed."""
    values: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, _, value = line.partition("=")
        key = key.strip()
        try:
            parts = shlex.split(value, comments=False, posix=True)
        except ValueError:
            logger.warning("Unparseable value for %s in credentials file", key)
            continue
        values[key] = parts[0] if parts else ""
    return values


class CredentialsFile:
    """The engine credentials file in the operating user's home.

    Args:
        home: Home directory. Defaults to the current user's.
    """

    def __init__(self, home: Optional[Path] = None) -> None:
        self.path = (home or Path.home()) / CREDENTIALS_RELPATH

    def load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        return parse_env_file(self.path.read_text(encoding="utf-8"))

    def write(self, values: Mapping[str, str]) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        os.chmod(self.path.parent, 0o700)
        self.path.write_text(render_credentials(values), encoding="utf-8")
        os.chmod(self.path, 0o600)
        return self.path

    def resolve_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Environment for an engine: ``base`` overlaid with the file's values.

        Empty values in the file do not blank out a value from ``base``.
        """
        env = dict(os.environ if base is None else base)
        for key, value in self.load().items():
            if value:
                env[key] = value
        return env


def missing_credentials(env: Mapping[str, str]) -> list[str]:
    """Required credential variables absent or empty in ``env``, in fixed order."""
    return [name for name in REQUIRED_VARS if not env.get(name)]
