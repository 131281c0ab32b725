"""Shared test fixtures for sous."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from sous.crypto import NativeCipher
from sous.keys import derive_key
from sous.models import EncryptFormat, SousConfig

PASSPHRASE = "correct-horse"
PACKAGE = "com.example.app"
KEYSTORE_BYTES = b"\xfe\xed\xfe\xed\x00\x00\x00\x02fake-java-keystore"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Sous Test",
    "GIT_AUTHOR_EMAIL": "test@sous.local",
    "GIT_COMMITTER_NAME": "Sous Test",
    "GIT_COMMITTER_EMAIL": "test@sous.local",
}


def git(*args: str, cwd: Path) -> str:
    """Run git in *cwd* with a fixed identity; fail the test on error."""
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd), capture_output=True, text=True, check=True,
        env={**os.environ, **_GIT_ENV},
    )
    return result.stdout.strip()


def encrypt_keystore(dest: Path, passphrase: str = PASSPHRASE,
                     data: bytes = KEYSTORE_BYTES,
                     fmt: EncryptFormat = EncryptFormat.GCM) -> Path:
    """Write an encrypted keystore for *passphrase* (sha512 derivation)."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    plain = dest.parent / ".plain.tmp"
    plain.write_bytes(data)
    NativeCipher().encrypt(plain, dest, derive_key(passphrase), fmt)
    plain.unlink()
    return dest


class VaultRemote:
    """A bare git repository plus a working clone used to publish to it."""

    def __init__(self, root: Path) -> None:
        self.bare = root / "secrets.git"
        self.work = root / "publisher"
        self.bare.mkdir(parents=True)
        git("init", "--bare", cwd=self.bare)
        self.work.mkdir()
        git("init", cwd=self.work)
        git("checkout", "-b", "main", cwd=self.work)
        git("remote", "add", "origin", str(self.bare), cwd=self.work)

    @property
    def url(self) -> str:
        return str(self.bare)

    def publish(self, relpath: str, data: bytes, message: str = "update") -> str:
        """Commit *data* at *relpath* and push to main. Returns the commit."""
        target = self.work / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        git("add", "-A", cwd=self.work)
        git("commit", "-m", message, cwd=self.work)
        git("push", "origin", "main", cwd=self.work)
        return git("rev-parse", "HEAD", cwd=self.work)

    def publish_keystore(self, passphrase: str = PASSPHRASE,
                         data: bytes = KEYSTORE_BYTES) -> str:
        staging = self.work.parent / "staging" / f"{PACKAGE}.jks.enc"
        encrypt_keystore(staging, passphrase, data)
        return self.publish(f"android/{PACKAGE}.jks.enc", staging.read_bytes())


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """A not-yet-created cache root, like a fresh ~/.sous."""
    return tmp_path / ".sous"


@pytest.fixture
def config(cache_root: Path) -> SousConfig:
    """Config pointing at the temporary cache root."""
    return SousConfig(home=cache_root, git_branch="main")


@pytest.fixture
def vault_remote(tmp_path: Path) -> VaultRemote:
    """A bare vault repo on branch main holding one encrypted keystore."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    remote = VaultRemote(tmp_path / "remote")
    remote.publish_keystore()
    return remote
