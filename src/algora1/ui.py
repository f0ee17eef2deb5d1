"""
Operator interaction — everything that asks a human something.

The orchestrator and the remote menu talk to an ``Operator``; the console
implementation renders with Rich and reads with Click prompts. Tests swap
in a scripted operator.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


class Operator:
    """What provisioning and the control panel need from a human."""

    def step(self, label: str) -> None:
        raise NotImplementedError

    def info(self, message: str) -> None:
        raise NotImplementedError

    def ok(self, message: str) -> None:
        raise NotImplementedError

    def warn(self, message: str) -> None:
        raise NotImplementedError

    def choose(self, title: str, options: Sequence[str]) -> str:
        """Pick one of ``options``; returns the chosen label."""
        raise NotImplementedError

    def ask(self, prompt: str, default: str = "") -> str:
        raise NotImplementedError

    def secret(self, prompt: str) -> str:
        raise NotImplementedError

    def confirm(self, prompt: str, default: bool = False) -> bool:
        raise NotImplementedError

    def recheck(self, title: str, instructions: str) -> bool:
        """Show out-of-band instructions; True to re-check, False to cancel."""
        raise NotImplementedError

    def key_values(self, rows: Iterable[Tuple[str, str]]) -> None:
        raise NotImplementedError


class ConsoleOperator(Operator):
    """Rich + Click terminal operator.

    Args:
        out: Console to render to (shared module console by default).
    """

    def __init__(self, out: Console = console) -> None:
        self.console = out

    def step(self, label: str) -> None:
        self.console.print(f"\n  [bold magenta]{label}[/]")

    def info(self, message: str) -> None:
        self.console.print(f"  [dim]INFO[/] {message}")

    def ok(self, message: str) -> None:
        self.console.print(f"  [green]✓[/] {message}")

    def warn(self, message: str) -> None:
        self.console.print(f"  [yellow]WARN[/] {message}")

    def choose(self, title: str, options: Sequence[str]) -> str:
        self.console.print(f"\n  [bold]{title}[/]")
        for i, option in enumerate(options, 1):
            self.console.print(f"    {i}) {option}")
        index = click.prompt(
            "  Select", type=click.IntRange(1, len(options)), default=1,
        )
        return options[index - 1]

    def ask(self, prompt: str, default: str = "") -> str:
        value = click.prompt(
            f"  {prompt}", default=default, show_default=bool(default),
        )
        return str(value).strip()

    def secret(self, prompt: str) -> str:
        return str(click.prompt(f"  {prompt}", hide_input=True)).strip()

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return click.confirm(f"  {prompt}", default=default)

    def recheck(self, title: str, instructions: str) -> bool:
        self.console.print()
        self.console.print(
            Panel(instructions, title=title, border_style="yellow", padding=(1, 2))
        )
        return click.confirm("  Re-check now? (No cancels setup)", default=True)

    def key_values(self, rows: Iterable[Tuple[str, str]]) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in rows:
            table.add_row(f"  {key}:", value)
        self.console.print(table)
