"""
ConfigStore — the operator profile on disk.

One YAML file under a private directory. Every save rewrites the whole
file through a temp file so a crash never leaves a half-written profile,
and the credential fields are never merged with what was there before.

Usage:
    store = ConfigStore()
    profile = store.load()
    profile.project_id = "acct-demo"
    store.save(profile)
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import CONFIG_HOME
from .models import ConfigurationProfile

logger = logging.getLogger("algora1.config")

CONFIG_FILE = "config.yaml"


def config_dir(home: Optional[Path] = None) -> Path:
    """Resolve the private configuration directory."""
    return (home or Path(CONFIG_HOME)).expanduser()


class ConfigStore:
    """Loads and saves the single named configuration profile.

    Args:
        home: Override the configuration directory.
    """

    def __init__(self, home: Optional[Path] = None) -> None:
        self.home = config_dir(home)
        self.path = self.home / CONFIG_FILE

    def ensure_dir(self) -> Path:
        """Create the config directory with owner-only permissions.

        An existing directory keeps its mode; ``--config-home`` may point
        at a directory the operator owns for other reasons.
        """
        try:
            self.home.mkdir(parents=True)
        except FileExistsError:
            return self.home
        os.chmod(self.home, 0o700)
        return self.home

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ConfigurationProfile:
        """Load the profile, or defaults if absent or unreadable.

        Returns:
            ConfigurationProfile: The stored profile or a fresh default one.
        """
        if not self.path.exists():
            return ConfigurationProfile()
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                raise ValueError("profile is not a mapping")
            # Empty strings in YAML come back as None.
            data = {k: ("" if v is None and k.startswith("alpaca_") else v)
                    for k, v in data.items()}
            return ConfigurationProfile(**data)
        except (yaml.YAMLError, ValidationError, ValueError) as exc:
            logger.warning("Failed to load profile %s: %s; using defaults", self.path, exc)
            return ConfigurationProfile()

    def save(self, profile: ConfigurationProfile) -> Path:
        """Rewrite the profile file in full.

        Args:
            profile: The profile to persist. Re-validated before writing.

        Returns:
            Path: The profile file path.

        Raises:
            ValueError: If the profile holds a partial credential set.
        """
        # validate_assignment is off, so field edits after construction
        # are only checked here.
        checked = ConfigurationProfile.model_validate(profile.model_dump())

        self.ensure_dir()
        payload = "# algora1 persisted profile (keep private)\n" + yaml.safe_dump(
            checked.model_dump(mode="json"), default_flow_style=False, sort_keys=False,
        )

        fd, tmp_name = tempfile.mkstemp(prefix=".config-", dir=self.home)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Saved profile to %s", self.path)
        return self.path


def setup_file_logging(log_file: Path, verbose: bool = False) -> logging.Handler:
    """Send all ``algora1.*`` logging to ``log_file``.

    Operator-facing output goes through the Rich console; the log file is
    for after-the-fact diagnosis.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
