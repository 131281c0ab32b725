"""
Sous error taxonomy.

Every failure aborts the current operation. Each error carries enough
context (which file, which remote, which step) plus a remediation hint
for a human to fix the problem.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SousError(Exception):
    """Base class for all vault sync failures.

    Args:
        message: What went wrong.
        hint: How to fix it, shown by the CLI under the message.
    """

    hint: str = ""

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class InvalidInput(SousError):
    """A required input is empty, or inputs contradict each other."""

    def __init__(
        self, field: str, message: Optional[str] = None, hint: Optional[str] = None,
    ) -> None:
        self.field = field
        super().__init__(
            message or f"{field} is not defined!",
            hint=hint or f"Pass a non-empty {field}.",
        )


class MissingPassphrase(SousError):
    """No passphrase could be resolved to derive a new key."""

    hint = "Set SOUS_MATCH_PASSWORD or pass --match-secret."

    def __init__(self, key_path: Path) -> None:
        self.key_path = key_path
        super().__init__(f"Security password is not defined for key '{key_path.name}'")


class CorruptKey(SousError):
    """The cached key file is malformed or truncated."""

    def __init__(self, key_path: Path, length: int) -> None:
        self.key_path = key_path
        self.length = length
        super().__init__(
            f"The security key '{key_path.name}' is malformed, or not initialized! "
            f"(expected 128 hex characters, found {length})",
            hint=f"Delete {key_path} and run again to re-enter the passphrase.",
        )


class CloneFailed(SousError):
    """Initial clone of the vault repository failed."""

    hint = "Check the URL, branch name, and your git credentials."

    def __init__(self, remote_url: str, branch: str, reason: str) -> None:
        self.remote_url = remote_url
        self.branch = branch
        self.reason = reason
        super().__init__(f"Cloning {remote_url} (branch {branch}) failed: {reason}")


class SyncFailed(SousError):
    """Updating an existing local copy failed part-way."""

    def __init__(self, repo_dir: Path, step: str, reason: str) -> None:
        self.repo_dir = repo_dir
        self.step = step
        self.reason = reason
        super().__init__(
            f"git {step} failed in {repo_dir}: {reason}",
            hint=(
                "The local copy may be in an indeterminate state. "
                f"Retry, or delete {repo_dir} to force a fresh clone."
            ),
        )


class ArtifactNotFound(SousError):
    """The encrypted artifact is missing from the vault."""

    def __init__(self, encrypted_path: Path, hint: Optional[str] = None) -> None:
        self.encrypted_path = encrypted_path
        super().__init__(
            f"Cannot find keystore at path: {encrypted_path}",
            hint=hint or (
                "Please make sure you have run the publish/prep step at least "
                "once and that the keystore is uploaded to your vault."
            ),
        )


class DecryptionFailed(SousError):
    """Decryption failed: wrong key, corrupted ciphertext, or tool error."""

    hint = "Check that the passphrase matches the one used to encrypt the vault."

    def __init__(self, encrypted_path: Path, reason: str) -> None:
        self.encrypted_path = encrypted_path
        self.reason = reason
        super().__init__(f"Could not decrypt {encrypted_path}: {reason}")


class ToolUnavailable(SousError):
    """An external program (git, openssl) is missing or unusable."""

    def __init__(self, tool: str, detail: str = "", hint: Optional[str] = None) -> None:
        self.tool = tool
        message = f"{tool} is not available"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, hint=hint)


class LockTimeout(SousError):
    """Another process held the vault lock for too long."""

    def __init__(self, lock_path: Path, timeout: float) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.0f}s waiting for {lock_path}",
            hint="Another sous process is syncing the same vault. Retry later.",
        )
