"""Read-only commands: status, doctor."""

from __future__ import annotations

import json
import sys

import click
from rich.panel import Panel
from rich.table import Table

from ._common import console, guarded, open_store


def register_status_commands(main: click.Group) -> None:
    """Register status and doctor on the main CLI group."""

    @main.command()
    @click.option("--json-out", is_flag=True, help="Machine-readable output.")
    @click.pass_context
    def status(ctx: click.Context, json_out: bool):
        """Show where provisioning stands. Changes nothing."""
        from .. import INSTANCE_NAME
        from ..preflight import check_gcloud, require
        from ..providers.gcloud import CloudResourceProbe
        from ..ssh import RemoteShell

        store = open_store(ctx.obj.get("config_home"), ctx.obj.get("verbose", False))
        profile = store.load()
        guarded(lambda: require(check_gcloud()))

        probe = CloudResourceProbe(instance_name=INSTANCE_NAME)
        shell = RemoteShell(profile.remote_user)
        state = probe.state(profile, shell.is_reachable)
        instance = (
            probe.describe_instance(profile.project_id, profile.zone)
            if profile.project_id else None
        )

        if json_out:
            click.echo(json.dumps({
                "state": state.value,
                "project_id": profile.project_id,
                "zone": profile.zone,
                "instance": instance.model_dump(mode="json") if instance else None,
                "credentials": profile.has_credentials,
            }, indent=2))
            return

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")
        table.add_row("State", f"[cyan]{state.value}[/]")
        table.add_row("Project", profile.project_id or "[dim]not set[/]")
        table.add_row("Zone", profile.zone)
        table.add_row("Machine", profile.machine_type)
        if instance:
            table.add_row("Instance", f"{instance.name} ({instance.status.value})")
            table.add_row("External IP", instance.external_ip or "[dim]none[/]")
        table.add_row(
            "Credentials", "[green]saved[/]" if profile.has_credentials else "[yellow]missing[/]",
        )
        console.print()
        console.print(Panel(table, title="algora1", border_style="bright_blue"))

    @main.command()
    def doctor():
        """Check the local tools provisioning needs."""
        from ..preflight import run_preflight

        result = run_preflight()
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Tool", style="bold")
        table.add_column("Status")
        table.add_column("Version", style="dim")
        table.add_column("Install", style="dim")
        for check in result.checks:
            status_text = "[green]OK[/]" if check.installed else "[red]MISSING[/]"
            table.add_row(
                check.name, status_text, check.version,
                "" if check.installed else (check.install_cmd or check.download_url),
            )
        console.print()
        console.print(table)
        console.print()
        if not result.all_ok:
            sys.exit(1)
