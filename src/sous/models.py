"""
Pydantic models for vault sync configuration, path plans, and results.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class KeyDerivation(str, Enum):
    """How a passphrase becomes the cached 128-hex-char key."""

    SHA512 = "sha512"
    PBKDF2_SHA512 = "pbkdf2-sha512"


class CipherBackend(str, Enum):
    """Which cipher adapter decrypts vault artifacts."""

    NATIVE = "native"
    OPENSSL = "openssl"


class EncryptFormat(str, Enum):
    """On-disk format of an encrypted artifact."""

    GCM = "gcm"
    CBC = "cbc"


class SyncAction(str, Enum):
    """What RepoSync did to the local copy."""

    CLONED = "cloned"
    UPDATED = "updated"


class SousConfig(BaseModel):
    """Persistent configuration, read from ``<home>/config.yaml``."""

    home: Path = Path("~/.sous")
    git_url: Optional[str] = None
    git_branch: str = "master"
    package_name: Optional[str] = None
    app_subdir: str = "android"
    artifact_extension: str = "jks"
    key_derivation: KeyDerivation = KeyDerivation.SHA512
    kdf_iterations: int = Field(default=200_000, ge=1)
    cipher_backend: CipherBackend = CipherBackend.NATIVE
    encrypt_format: Optional[EncryptFormat] = None
    lock_timeout: Optional[float] = None
    token_env_var: Optional[str] = None

    @property
    def cache_root(self) -> Path:
        return self.home.expanduser()

    @property
    def output_format(self) -> EncryptFormat:
        """Format for newly encrypted artifacts.

        Falls back to CBC for the openssl backend, which cannot write GCM,
        and to GCM otherwise.
        """
        if self.encrypt_format is not None:
            return self.encrypt_format
        if self.cipher_backend == CipherBackend.OPENSSL:
            return EncryptFormat.CBC
        return EncryptFormat.GCM


class VaultPlan(BaseModel):
    """Every local path for one remote + artifact pair."""

    remote_id: str
    key_path: Path
    lock_path: Path
    repo_dir: Path
    artifact_dir: Path
    encrypted_path: Path
    plaintext_path: Path


class SyncResult(BaseModel):
    """Outcome of a fetch-and-decrypt run."""

    plaintext_path: Path
    remote_id: str
    key_created: bool = False
    action: SyncAction
    head: Optional[str] = None
