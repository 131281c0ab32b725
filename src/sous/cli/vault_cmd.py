"""Vault commands: pass, encrypt, locate."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ._common import SOUS_HOME, console, fail
from ..config import load_config
from ..engine import VaultSync
from ..errors import InvalidInput, SousError
from ..models import EncryptFormat
from ..passphrase import PASSPHRASE_ENV_VAR, PromptPassphrase


def _require(value: Optional[str], name: str) -> str:
    if not value or not value.strip():
        raise InvalidInput(name)
    return value


def register_vault_commands(main: click.Group) -> None:
    """Register pass, encrypt, and locate on the main CLI group."""

    @main.command("pass")
    @click.option("--home", default=None, type=click.Path(), help=f"Cache root (default {SOUS_HOME}).")
    @click.option("--git-url", envvar="SOUS_GIT_URL", help="URL of the git repo holding the android secrets.")
    @click.option("--git-branch", envvar="SOUS_GIT_BRANCH", default=None, help="Vault branch (default master).")
    @click.option("--package-name", envvar="SOUS_PACKAGE_NAME", help="Package name of the app.")
    @click.option("--match-secret", envvar=PASSPHRASE_ENV_VAR, default=None,
                  help="Passphrase used to encrypt secrets.")
    def pass_(home, git_url, git_branch, package_name, match_secret):
        """Fetch the vault and decrypt the app's keystore.

        Prints the path of the decrypted keystore on the last line.

        Examples:

            sous pass --git-url git@example.com:team/secrets.git --package-name com.example.app
        """
        config = load_config(Path(home) if home else None)
        try:
            url = _require(git_url or config.git_url, "Git URL")
            package = _require(package_name or config.package_name, "Package name")
            result = VaultSync(config).run(
                url,
                git_branch or config.git_branch,
                PromptPassphrase(preset=match_secret),
                package,
            )
        except SousError as exc:
            fail(exc)

        if result.key_created:
            console.print("[green]Security key generated[/]")
        console.print(f"[green]Vault {result.action.value}[/] [dim]{result.head or ''}[/]")
        click.echo(str(result.plaintext_path))

    @main.command("encrypt")
    @click.argument("keystore", type=click.Path(exists=True, dir_okay=False))
    @click.option("--home", default=None, type=click.Path(), help=f"Cache root (default {SOUS_HOME}).")
    @click.option("--git-url", envvar="SOUS_GIT_URL", help="URL of the git repo holding the android secrets.")
    @click.option("--git-branch", envvar="SOUS_GIT_BRANCH", default=None, help="Vault branch (default master).")
    @click.option("--package-name", envvar="SOUS_PACKAGE_NAME", help="Package name of the app.")
    @click.option("--match-secret", envvar=PASSPHRASE_ENV_VAR, default=None,
                  help="Passphrase used to encrypt secrets.")
    @click.option("--format", "fmt", type=click.Choice([f.value for f in EncryptFormat]),
                  default=None, help="Encrypted file format (default from config).")
    def encrypt(keystore, home, git_url, git_branch, package_name, match_secret, fmt):
        """Encrypt KEYSTORE into the local copy of the vault.

        The local copy is cloned or updated first. Commit and push the
        resulting .enc file yourself.
        """
        config = load_config(Path(home) if home else None)
        if fmt:
            config = config.model_copy(update={"encrypt_format": EncryptFormat(fmt)})
        try:
            url = _require(git_url or config.git_url, "Git URL")
            package = _require(package_name or config.package_name, "Package name")
            encrypted = VaultSync(config).publish(
                url,
                Path(keystore),
                package,
                PromptPassphrase(preset=match_secret),
                branch=git_branch or config.git_branch,
            )
        except SousError as exc:
            fail(exc)

        click.echo(str(encrypted))

    @main.command("locate")
    @click.option("--home", default=None, type=click.Path(), help=f"Cache root (default {SOUS_HOME}).")
    @click.option("--git-url", envvar="SOUS_GIT_URL", help="URL of the git repo holding the android secrets.")
    @click.option("--package-name", envvar="SOUS_PACKAGE_NAME", help="Package name of the app.")
    def locate(home, git_url, package_name):
        """Show where sous keeps the key, clone, and keystore for a vault."""
        config = load_config(Path(home) if home else None)
        try:
            plan = VaultSync(config).plan(
                _require(git_url or config.git_url, "Git URL"),
                _require(package_name or config.package_name, "Package name"),
            )
        except SousError as exc:
            fail(exc)

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Item", style="bold")
        table.add_column("Path", style="cyan", overflow="fold")
        table.add_row("Remote id", plan.remote_id)
        table.add_row("Key", str(plan.key_path))
        table.add_row("Local copy", str(plan.repo_dir))
        table.add_row("Encrypted", str(plan.encrypted_path))
        table.add_row("Keystore", str(plan.plaintext_path))
        console.print(table)
