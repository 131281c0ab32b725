"""
Vault locator -- deterministic local paths for a remote vault.

Storage layout:
    ~/.sous/
    ├── <md5(url)>.hex          # derived key
    ├── <md5(url)>.lock         # per-remote sync lock
    └── <md5(url)>/             # local copy of the vault repo
        └── android/
            ├── <package>.jks.enc
            └── <package>.jks   # regenerated on every run
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from .models import VaultPlan

DEFAULT_APP_SUBDIR = "android"
DEFAULT_EXTENSION = "jks"


def remote_id(remote_url: str) -> str:
    """Directory-safe identifier for a remote: md5 hex of the URL."""
    return hashlib.md5(remote_url.encode("utf-8")).hexdigest()


def plan(
    cache_root: Path,
    remote_url: str,
    artifact_name: str,
    app_subdir: str = DEFAULT_APP_SUBDIR,
    extension: str = DEFAULT_EXTENSION,
) -> VaultPlan:
    """Compute every path for *artifact_name* in the vault at *remote_url*.

    Pure computation: nothing is created or read.

    Args:
        cache_root: Base directory holding keys and clones.
        remote_url: Vault repository URL.
        artifact_name: Artifact base name, e.g. the app package name.
        app_subdir: Platform subdirectory inside the vault.
        extension: Plaintext artifact extension.

    Returns:
        VaultPlan with key, lock, repo, and artifact paths.
    """
    rid = remote_id(remote_url)
    repo_dir = cache_root / rid
    artifact_dir = repo_dir / app_subdir
    plaintext_name = f"{artifact_name}.{extension}"

    return VaultPlan(
        remote_id=rid,
        key_path=cache_root / f"{rid}.hex",
        lock_path=cache_root / f"{rid}.lock",
        repo_dir=repo_dir,
        artifact_dir=artifact_dir,
        encrypted_path=artifact_dir / f"{plaintext_name}.enc",
        plaintext_path=artifact_dir / plaintext_name,
    )
