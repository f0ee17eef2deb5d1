"""
algora1 — provision a trading-engine host and drive it remotely.

One cloud instance, four opaque engines, one operator session at a time.
Run ``algora1`` to provision (or resume) and land in the control panel.
"""

import os

__version__ = "0.1.0"
__author__ = "algora1"

CONFIG_HOME = os.environ.get("ALGORA1_CONFIG_HOME", "~/.config/algora1_setup")

INSTANCE_NAME = "algora1"
KEY_NAME = "ssh_key1"

ENGINE_NAMES = ("BEXP", "PMNY", "TSLA", "NVDA")
