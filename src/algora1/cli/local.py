"""Local conveniences: install-local, ssh."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ._common import console, guarded, open_store


def register_local_commands(main: click.Group) -> None:
    """Register install-local and ssh on the main CLI group."""

    @main.command("install-local")
    @click.option("--icns", type=click.Path(dir_okay=False), default=None,
                  help="macOS app icon (.icns).")
    def install_local(icns: Optional[str]):
        """Install the algora1 command and a desktop shortcut."""
        from ..shortcuts import ShortcutInstaller

        installer = ShortcutInstaller()
        lines = guarded(lambda: installer.install_all(Path(icns) if icns else None))
        for line in lines:
            console.print(f"  [green]✓[/] {line}")
        console.print(
            "  [dim]Add to your shell profile if needed:[/] "
            'export PATH="$HOME/.local/bin:$PATH"'
        )

    @main.command("ssh")
    @click.pass_context
    def ssh_cmd(ctx: click.Context):
        """Open a plain shell on the instance."""
        from .. import INSTANCE_NAME
        from ..errors import Algora1Error
        from ..providers.gcloud import CloudResourceProbe
        from ..ssh import RemoteShell

        store = open_store(ctx.obj.get("config_home"), ctx.obj.get("verbose", False))
        profile = store.load()

        def target() -> str:
            if not profile.project_id:
                raise Algora1Error("No project saved yet. Run algora1 first.")
            instance = CloudResourceProbe(instance_name=INSTANCE_NAME).describe_instance(
                profile.project_id, profile.zone,
            )
            if instance is None or not instance.is_running or not instance.external_ip:
                raise Algora1Error(f"{INSTANCE_NAME} is not running in {profile.zone}.")
            return instance.external_ip

        address = guarded(target)
        RemoteShell(profile.remote_user).attach(address)
