"""Shared utilities for all CLI command modules.

Provides the Rich console instance, logging setup, and the error
reporter used by every command.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .. import SOUS_HOME
from ..errors import SousError

console = Console()
logger = logging.getLogger("sous.cli")

__all__ = ["SOUS_HOME", "console", "configure_logging", "fail", "logger"]


def configure_logging(verbose: bool) -> None:
    """Route sous logs through Rich; INFO when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def fail(exc: SousError) -> None:
    """Print a sous error with its remediation hint and exit 1."""
    console.print(f"[bold red]{escape(str(exc))}[/]")
    if exc.hint:
        console.print(f"[yellow]{escape(exc.hint)}[/]")
    raise SystemExit(1)
