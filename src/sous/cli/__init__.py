"""
Sous CLI -- fetch and decrypt Android signing keystores.

The main Click group is defined here and every command module
registers itself via a register function.

Entry point: sous.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="sous")
@click.option("--verbose", "-v", is_flag=True, help="Log each step.")
def main(verbose: bool):
    """Sous: keystores from your git vault, ready to sign with."""
    configure_logging(verbose)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .vault_cmd import register_vault_commands
from .doctor import register_doctor_commands

register_vault_commands(main)
register_doctor_commands(main)
