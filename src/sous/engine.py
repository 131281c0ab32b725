"""
Vault sync -- fetch the keystore vault and decrypt one artifact.

    VaultSync.fetch_and_decrypt(url, branch, passphrase, package)
        -> plan paths
        -> ensure + validate the derived key
        -> lock the remote
        -> clone or update the local copy
        -> decrypt <package>.jks.enc
        -> return the plaintext path

Every step's failure aborts the run with the originating error.
The plaintext is a long-lived cache entry: the caller decides when to
remove it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import locator
from .config import load_config
from .crypto import Cipher, DecryptionEngine, NativeCipher, OpenSSLCipher
from .errors import InvalidInput
from .keys import KeyDeriver
from .locking import vault_lock
from .models import (
    CipherBackend, EncryptFormat, KeyDerivation, SousConfig, SyncResult, VaultPlan,
)
from .passphrase import PassphraseSource
from .repo import GitTransport, RepoSync

logger = logging.getLogger("sous.engine")


def create_cipher(backend: CipherBackend) -> Cipher:
    """Factory for the configured cipher adapter."""
    factories = {
        CipherBackend.NATIVE: NativeCipher,
        CipherBackend.OPENSSL: OpenSSLCipher,
    }
    return factories[CipherBackend(backend)]()


class VaultSync:
    """Orchestrates key derivation, repo sync, and decryption.

    Args:
        config: Settings; loaded from disk and environment if omitted.
        key_deriver: Override the key deriver.
        repo_sync: Override the repo sync (tests inject fakes here).
        engine: Override the decryption engine.
    """

    def __init__(
        self,
        config: Optional[SousConfig] = None,
        key_deriver: Optional[KeyDeriver] = None,
        repo_sync: Optional[RepoSync] = None,
        engine: Optional[DecryptionEngine] = None,
    ) -> None:
        self.config = config or load_config()
        self.cache_root = self.config.cache_root
        self.key_deriver = key_deriver or KeyDeriver(
            self.config.key_derivation, self.config.kdf_iterations
        )
        self.repo_sync = repo_sync or RepoSync(
            GitTransport(token_env_var=self.config.token_env_var)
        )
        self.engine = engine or DecryptionEngine(create_cipher(self.config.cipher_backend))

    def plan(self, remote_url: str, artifact_name: str) -> VaultPlan:
        """Validate inputs and compute paths for *artifact_name*.

        Raises:
            InvalidInput: If the URL or artifact name is empty.
        """
        if not remote_url or not remote_url.strip():
            raise InvalidInput("Git URL")
        if not artifact_name or not artifact_name.strip():
            raise InvalidInput("Package name")
        return locator.plan(
            self.cache_root,
            remote_url.strip(),
            artifact_name.strip(),
            app_subdir=self.config.app_subdir,
            extension=self.config.artifact_extension,
        )

    def ensure_key(self, vault_plan: VaultPlan, passphrase_source: PassphraseSource) -> bool:
        """Derive the key if needed, then validate it.

        Returns:
            True if a new key file was written.
        """
        salt = b""
        if self.key_deriver.scheme == KeyDerivation.PBKDF2_SHA512:
            salt = vault_plan.remote_id.encode("ascii")
        created = self.key_deriver.ensure_key(vault_plan.key_path, passphrase_source, salt=salt)
        self.key_deriver.validate_key(vault_plan.key_path)
        return created

    def run(
        self,
        remote_url: str,
        branch: str,
        passphrase_source: PassphraseSource,
        artifact_name: str,
    ) -> SyncResult:
        """Fetch and decrypt, returning details of what happened.

        Raises:
            SousError: Any failure from a step, unchanged.
        """
        vault_plan = self.plan(remote_url, artifact_name)
        branch = branch or self.config.git_branch

        if not self.cache_root.is_dir():
            logger.info("Creating '%s' working directory...", self.cache_root.name)
        self.cache_root.mkdir(parents=True, exist_ok=True)

        key_created = self.ensure_key(vault_plan, passphrase_source)

        with vault_lock(vault_plan.lock_path, timeout=self.config.lock_timeout):
            action = self.repo_sync.sync(
                remote_url.strip(), branch, vault_plan.repo_dir, exclude=self._excludes()
            )
            head = self.repo_sync.head(vault_plan.repo_dir)
            self.engine.decrypt(
                vault_plan.encrypted_path,
                vault_plan.plaintext_path,
                vault_plan.key_path,
            )

        return SyncResult(
            plaintext_path=vault_plan.plaintext_path,
            remote_id=vault_plan.remote_id,
            key_created=key_created,
            action=action,
            head=head,
        )

    def fetch_and_decrypt(
        self,
        remote_url: str,
        branch: str,
        passphrase_source: PassphraseSource,
        artifact_name: str,
    ) -> Path:
        """Fetch the vault and decrypt *artifact_name*.

        Returns:
            Path of the plaintext keystore.
        """
        return self.run(remote_url, branch, passphrase_source, artifact_name).plaintext_path

    def publish(
        self,
        remote_url: str,
        plaintext: Path,
        artifact_name: str,
        passphrase_source: PassphraseSource,
        branch: Optional[str] = None,
    ) -> Path:
        """Encrypt *plaintext* into the vault's artifact slot.

        The local copy is cloned or updated first, so the encrypted file
        lands in a real working tree on *branch*. Committing and pushing
        it is left to the user.

        Returns:
            Path of the encrypted artifact.

        Raises:
            InvalidInput: If the openssl backend is asked to write GCM.
        """
        vault_plan = self.plan(remote_url, artifact_name)
        fmt = self.config.output_format
        if self.config.cipher_backend == CipherBackend.OPENSSL and fmt != EncryptFormat.CBC:
            raise InvalidInput(
                "encrypt_format",
                message=f"The openssl backend cannot write the {fmt.value} format",
                hint="Use encrypt_format: cbc, or cipher_backend: native.",
            )
        branch = branch or self.config.git_branch

        self.cache_root.mkdir(parents=True, exist_ok=True)
        self.ensure_key(vault_plan, passphrase_source)
        with vault_lock(vault_plan.lock_path, timeout=self.config.lock_timeout):
            self.repo_sync.sync(
                remote_url.strip(), branch, vault_plan.repo_dir, exclude=self._excludes()
            )
            return self.engine.encrypt(
                plaintext,
                vault_plan.encrypted_path,
                vault_plan.key_path,
                fmt=fmt,
            )

    def _excludes(self) -> list[str]:
        return [f"*.{self.config.artifact_extension}"]
