"""
Local launchers: ``~/.local/bin/algora1`` plus a desktop entry.

Everything here is best effort. A missing icon or an unwritable
Applications folder is logged and skipped; it never stops provisioning.
"""

from __future__ import annotations

import logging
import os
import plistlib
import shutil
import sys
from pathlib import Path
from typing import List, Optional

import requests

from .preflight import detect_os

logger = logging.getLogger("algora1.shortcuts")

ICON_PNG_URL = (
    "https://static.wixstatic.com/media/"
    "ce61ee_00cd47ee0f9c48f69f0f7546f4298188~mv2.png"
)
PATH_LINE = 'export PATH="$HOME/.local/bin:$PATH"'
GENERATED_MARKER = ".algora1_generated"

MACOS_LAUNCHER = """#!/usr/bin/env bash
set -euo pipefail
export PATH="${HOME}/.local/bin:${PATH}"
osascript >/dev/null <<OSA
tell application "Terminal"
  activate
  do script "algora1"
end tell
OSA
"""


def launcher_script(python: Optional[str] = None) -> str:
    return f'#!/bin/sh\nexec {python or sys.executable} -m algora1 "$@"\n'


class ShortcutInstaller:
    """Installs the local command and a desktop shortcut.

    Args:
        home: User home directory.
        os_name: ``linux`` or ``macos``; detected when omitted.
    """

    def __init__(self, home: Optional[Path] = None, os_name: Optional[str] = None) -> None:
        self.home = home or Path.home()
        self._os_name = os_name

    @property
    def os_name(self) -> str:
        if self._os_name is None:
            self._os_name = detect_os()
        return self._os_name

    @property
    def bin_path(self) -> Path:
        return self.home / ".local" / "bin" / "algora1"

    def install_all(self, icns_path: Optional[Path] = None) -> List[str]:
        """Install every launcher that applies to this OS.

        Returns:
            Human-readable lines describing what was done.
        """
        done = [f"Installed local command: {self.install_command()}"]
        if self.os_name == "macos":
            if self.ensure_zsh_path():
                done.append("Added ~/.local/bin to PATH in ~/.zshrc")
            app = self.install_macos_app(icns_path)
            if app:
                done.append(f"macOS app created: {app}")
        else:
            desktop = self.install_linux_desktop()
            if desktop:
                done.append(f"Linux shortcut created: {desktop}")
        return done

    def install_command(self) -> Path:
        target = self.bin_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(launcher_script(), encoding="utf-8")
        target.chmod(0o755)
        return target

    def ensure_zsh_path(self) -> bool:
        """Append the ~/.local/bin PATH line to ~/.zshrc once."""
        zshrc = self.home / ".zshrc"
        try:
            existing = zshrc.read_text(encoding="utf-8") if zshrc.exists() else ""
            if PATH_LINE in existing.splitlines():
                return False
            with zshrc.open("a", encoding="utf-8") as fh:
                fh.write(f"\n# algora1\n{PATH_LINE}\n")
        except OSError as exc:
            logger.warning("Could not update %s: %s", zshrc, exc)
            return False
        return True

    def fetch_icon(self, dest: Path, url: str = ICON_PNG_URL) -> bool:
        try:
            resp = requests.get(url, timeout=30)
            resp.raise_for_status()
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(resp.content)
        except (requests.RequestException, OSError) as exc:
            logger.warning("Icon download failed: %s", exc)
            return False
        return True

    def install_linux_desktop(self) -> Optional[Path]:
        apps_dir = self.home / ".local" / "share" / "applications"
        icon_path = self.home / ".local" / "share" / "icons" / "algora1.png"
        self.fetch_icon(icon_path)
        entry = apps_dir / "algora1.desktop"
        try:
            apps_dir.mkdir(parents=True, exist_ok=True)
            entry.write_text(
                "[Desktop Entry]\n"
                "Type=Application\n"
                "Name=algora1\n"
                "Comment=algora1 control panel\n"
                f"Exec={self.bin_path}\n"
                "Terminal=true\n"
                f"Icon={icon_path}\n"
                "Categories=Finance;Utility;\n",
                encoding="utf-8",
            )
            entry.chmod(0o755)
        except OSError as exc:
            logger.warning("Desktop entry not created: %s", exc)
            return None
        return entry

    def install_macos_app(self, icns_path: Optional[Path] = None) -> Optional[Path]:
        """Create ~/Applications/algora1.app opening Terminal on ``algora1``.

        A bundle this installer already generated is left as is.
        """
        app_root = self.home / "Applications" / "algora1.app"
        contents = app_root / "Contents"
        resources = contents / "Resources"
        if (resources / GENERATED_MARKER).exists():
            return app_root
        try:
            (contents / "MacOS").mkdir(parents=True, exist_ok=True)
            resources.mkdir(parents=True, exist_ok=True)
            launcher = contents / "MacOS" / "algora1"
            launcher.write_text(MACOS_LAUNCHER, encoding="utf-8")
            launcher.chmod(0o755)
            with (contents / "Info.plist").open("wb") as fh:
                plistlib.dump(
                    {
                        "CFBundleDevelopmentRegion": "en",
                        "CFBundleExecutable": "algora1",
                        "CFBundleIconFile": "algora1",
                        "CFBundleIdentifier": "com.algora1.launcher",
                        "CFBundleInfoDictionaryVersion": "6.0",
                        "CFBundleName": "algora1",
                        "CFBundlePackageType": "APPL",
                        "CFBundleShortVersionString": "1.0",
                        "CFBundleVersion": "1",
                        "LSMinimumSystemVersion": "10.13",
                    },
                    fh,
                )
            (contents / "PkgInfo").write_text("APPL????", encoding="utf-8")
            icns = icns_path or _env_icns()
            if icns and icns.is_file():
                shutil.copyfile(icns, resources / "algora1.icns")
            (resources / GENERATED_MARKER).write_text(
                "generated-by=algora1-installer\n", encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("macOS app bundle not created: %s", exc)
            return None
        return app_root


def _env_icns() -> Optional[Path]:
    value = os.environ.get("ALGORA1_ICNS_PATH")
    return Path(value).expanduser() if value else None
