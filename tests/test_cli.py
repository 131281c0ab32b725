"""Tests for the sous command line."""

from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sous.cli import main
from sous.locator import remote_id
from sous.preflight import ToolCheck, ToolStatus

from conftest import KEYSTORE_BYTES, PACKAGE, PASSPHRASE, requires_git

requires_openssl = pytest.mark.skipif(
    shutil.which("openssl") is None, reason="openssl not installed"
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("SOUS_HOME", "SOUS_GIT_URL", "SOUS_GIT_BRANCH",
                "SOUS_PACKAGE_NAME", "SOUS_MATCH_PASSWORD"):
        monkeypatch.delenv(var, raising=False)


class TestHelp:
    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("pass", "encrypt", "locate", "doctor"):
            assert command in result.output

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "sous" in result.output


class TestLocate:
    def test_prints_remote_id(self, cache_root: Path) -> None:
        url = "https://example.com/secrets.git"
        result = CliRunner().invoke(main, [
            "locate", "--home", str(cache_root), "--git-url", url, "--package-name", PACKAGE,
        ])
        assert result.exit_code == 0
        assert remote_id(url) in result.output
        assert not cache_root.exists()

    def test_missing_url(self, cache_root: Path) -> None:
        result = CliRunner().invoke(main, ["locate", "--home", str(cache_root), "--package-name", PACKAGE])
        assert result.exit_code == 1
        assert "Git URL is not defined" in result.output


class TestPass:
    def test_missing_package(self, cache_root: Path) -> None:
        result = CliRunner().invoke(main, [
            "pass", "--home", str(cache_root), "--git-url", "https://example.com/s.git",
        ])
        assert result.exit_code == 1
        assert "Package name is not defined" in result.output

    def test_missing_passphrase(self, cache_root: Path) -> None:
        """An empty prompt answer is reported with the env var hint."""
        result = CliRunner().invoke(main, [
            "pass", "--home", str(cache_root),
            "--git-url", "https://example.com/s.git", "--package-name", PACKAGE,
        ], input="\n")
        assert result.exit_code == 1
        assert "Security password is not defined" in result.output
        assert "SOUS_MATCH_PASSWORD" in result.output

    @requires_git
    def test_end_to_end(self, vault_remote, cache_root: Path) -> None:
        """pass clones, decrypts, and prints the keystore path last."""
        result = CliRunner().invoke(main, [
            "pass", "--home", str(cache_root), "--git-url", vault_remote.url,
            "--git-branch", "main", "--package-name", PACKAGE,
        ], env={"SOUS_MATCH_PASSWORD": PASSPHRASE})

        assert result.exit_code == 0, result.output
        path = Path(result.output.strip().splitlines()[-1])
        assert path == cache_root / remote_id(vault_remote.url) / "android" / f"{PACKAGE}.jks"
        assert path.read_bytes() == KEYSTORE_BYTES


class TestEncrypt:
    @requires_git
    def test_writes_enc_into_cloned_copy(self, vault_remote, cache_root: Path, tmp_path: Path) -> None:
        """encrypt on a fresh cache clones the vault before writing."""
        source = tmp_path / "release.jks"
        source.write_bytes(KEYSTORE_BYTES)

        result = CliRunner().invoke(main, [
            "encrypt", str(source), "--home", str(cache_root), "--git-url", vault_remote.url,
            "--git-branch", "main", "--package-name", "com.example.other",
            "--match-secret", PASSPHRASE, "--format", "cbc",
        ])

        assert result.exit_code == 0, result.output
        enc = Path(result.output.strip().splitlines()[-1])
        repo_dir = cache_root / remote_id(vault_remote.url)
        assert enc == repo_dir / "android" / "com.example.other.jks.enc"
        assert enc.read_bytes().startswith(b"Salted__")
        assert (repo_dir / ".git").is_dir()

    @requires_git
    def test_encrypt_then_pass(self, vault_remote, cache_root: Path, tmp_path: Path) -> None:
        """A keystore published on a fresh cache is decrypted by pass."""
        source = tmp_path / "release.jks"
        source.write_bytes(b"new app keystore")
        common = ["--home", str(cache_root), "--git-url", vault_remote.url,
                  "--git-branch", "main", "--package-name", "com.example.other"]
        env = {"SOUS_MATCH_PASSWORD": PASSPHRASE}

        encrypted = CliRunner().invoke(main, ["encrypt", str(source), *common], env=env)
        assert encrypted.exit_code == 0, encrypted.output

        result = CliRunner().invoke(main, ["pass", *common], env=env)
        assert result.exit_code == 0, result.output
        path = Path(result.output.strip().splitlines()[-1])
        assert path.read_bytes() == b"new app keystore"

    def test_openssl_backend_rejects_gcm(self, cache_root: Path, tmp_path: Path) -> None:
        """An explicit gcm format with the openssl backend is a clean error."""
        cache_root.mkdir()
        (cache_root / "config.yaml").write_text("cipher_backend: openssl\n")
        source = tmp_path / "release.jks"
        source.write_bytes(KEYSTORE_BYTES)

        result = CliRunner().invoke(main, [
            "encrypt", str(source), "--home", str(cache_root),
            "--git-url", "https://example.com/secrets.git", "--package-name", PACKAGE,
            "--match-secret", PASSPHRASE, "--format", "gcm",
        ])

        assert result.exit_code == 1
        assert "cannot write the gcm format" in result.output
        assert not isinstance(result.exception, ValueError)

    @requires_git
    @requires_openssl
    def test_openssl_backend_defaults_to_cbc(self, vault_remote, cache_root: Path, tmp_path: Path) -> None:
        """With no format configured the openssl backend writes CBC."""
        cache_root.mkdir()
        (cache_root / "config.yaml").write_text("cipher_backend: openssl\n")
        source = tmp_path / "release.jks"
        source.write_bytes(KEYSTORE_BYTES)

        result = CliRunner().invoke(main, [
            "encrypt", str(source), "--home", str(cache_root), "--git-url", vault_remote.url,
            "--git-branch", "main", "--package-name", "com.example.other",
            "--match-secret", PASSPHRASE,
        ])

        assert result.exit_code == 0, result.output
        enc = Path(result.output.strip().splitlines()[-1])
        assert enc.read_bytes().startswith(b"Salted__")


class TestDoctor:
    @patch("sous.cli.doctor.run_preflight")
    def test_all_ok(self, mock_preflight) -> None:
        mock_preflight.return_value = [
            ToolCheck(name="Git", status=ToolStatus.INSTALLED, required=True, version="git version 2.43.0"),
            ToolCheck(name="OpenSSL", status=ToolStatus.MISSING, required=False),
        ]
        result = CliRunner().invoke(main, ["doctor"])
        assert result.exit_code == 0
        assert "Git" in result.output

    @patch("sous.cli.doctor.run_preflight")
    def test_missing_git_fails(self, mock_preflight) -> None:
        mock_preflight.return_value = [
            ToolCheck(name="Git", status=ToolStatus.MISSING, required=True),
        ]
        result = CliRunner().invoke(main, ["doctor"])
        assert result.exit_code == 1
