"""Doctor command: check the external tools sous relies on."""

from __future__ import annotations

import click
from rich.table import Table

from ._common import console
from ..preflight import ToolStatus, run_preflight


def register_doctor_commands(main: click.Group) -> None:
    """Register the doctor command."""

    @main.command()
    def doctor():
        """Diagnose git and openssl availability."""
        checks = run_preflight()

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Tool", style="bold")
        table.add_column("Status")
        table.add_column("Version", style="dim")
        table.add_column("Fix", style="cyan")

        colors = {
            ToolStatus.INSTALLED: "green",
            ToolStatus.MISSING: "red",
            ToolStatus.UNSUPPORTED: "yellow",
        }
        for check in checks:
            color = colors[check.status]
            table.add_row(
                check.name,
                f"[{color}]{check.status.value}[/]",
                check.version,
                check.install_cmd or check.download_url,
            )
        console.print(table)

        if not all(c.ok for c in checks):
            raise SystemExit(1)
