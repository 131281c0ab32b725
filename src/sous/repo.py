"""
Repo sync -- keeps the local copy of the keystore vault current.

The local copy is a disposable cache, never a workspace: local edits
are discarded on every sync.

    no .git        git clone -b <branch> <url> <dir>
    .git present   git fetch origin
                   git checkout --force origin/<branch>
                   git pull --ff-only origin <branch>

Decrypted artifacts are listed in ``.git/info/exclude`` so they never
appear as untracked files in the local copy.
"""

from __future__ import annotations

import base64
import logging
import os
import subprocess
from pathlib import Path
from typing import Iterable, Optional

from .errors import CloneFailed, SyncFailed, ToolUnavailable
from .models import SyncAction

logger = logging.getLogger("sous.repo")


class GitCommandError(Exception):
    """A git invocation exited non-zero."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(self.stderr or f"{' '.join(cmd)} exited {returncode}")


class GitTransport:
    """Subprocess adapter over the ``git`` binary.

    Args:
        git: Path or name of the git executable.
        token_env_var: Environment variable holding an HTTPS access token.
            When set, the token is handed to git through GIT_CONFIG_*
            variables so it never appears on the command line.
    """

    def __init__(self, git: str = "git", token_env_var: Optional[str] = None) -> None:
        self.git = git
        self.token_env_var = token_env_var

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        if self.token_env_var:
            token = os.environ.get(self.token_env_var, "")
            if token:
                basic = base64.b64encode(f"x-access-token:{token}".encode()).decode()
                env["GIT_CONFIG_COUNT"] = "1"
                env["GIT_CONFIG_KEY_0"] = "http.extraHeader"
                env["GIT_CONFIG_VALUE_0"] = f"Authorization: Basic {basic}"
        return env

    def _run(self, args: list[str], cwd: Optional[Path] = None) -> str:
        cmd = [self.git, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True, text=True, check=False,
                cwd=str(cwd) if cwd else None,
                env=self._env(),
            )
        except FileNotFoundError:
            raise ToolUnavailable(
                "Git", f"'{self.git}' not found on PATH",
                hint="Install git: https://git-scm.com/downloads",
            ) from None
        if result.returncode != 0:
            logger.debug("Git command failed: %s -> %s", " ".join(cmd), result.stderr)
            raise GitCommandError(cmd, result.returncode, result.stderr)
        return result.stdout

    def clone(self, url: str, branch: str, dest: Path) -> None:
        self._run(["clone", "--branch", branch, url, str(dest)])

    def fetch(self, repo_dir: Path) -> None:
        self._run(["fetch", "origin"], cwd=repo_dir)

    def force_checkout(self, repo_dir: Path, ref: str) -> None:
        self._run(["checkout", "--force", ref], cwd=repo_dir)

    def pull(self, repo_dir: Path, remote: str, branch: str) -> None:
        self._run(["pull", "--ff-only", remote, branch], cwd=repo_dir)

    def rev_parse(self, repo_dir: Path, ref: str = "HEAD") -> str:
        return self._run(["rev-parse", ref], cwd=repo_dir).strip()


class RepoSync:
    """Clone-if-absent, update-if-present.

    Args:
        transport: Git adapter; defaults to the subprocess GitTransport.
    """

    def __init__(self, transport: Optional[GitTransport] = None) -> None:
        self.transport = transport or GitTransport()

    def sync(
        self,
        remote_url: str,
        branch: str,
        local_dir: Path,
        exclude: Iterable[str] = (),
    ) -> SyncAction:
        """Bring *local_dir* to the tip of ``origin/<branch>``.

        Patterns in *exclude* are added to ``.git/info/exclude`` so that
        decrypted artifacts never show up as untracked files.

        Returns:
            SyncAction.CLONED on first use, SyncAction.UPDATED after.

        Raises:
            CloneFailed: If the initial clone fails.
            SyncFailed: If fetch, checkout, or pull fails on an existing copy.
            ToolUnavailable: If git is not installed.
        """
        if not (local_dir / ".git").is_dir():
            logger.info("Cloning remote keystores repository...")
            logger.info("Directory: %s", local_dir)
            local_dir.parent.mkdir(parents=True, exist_ok=True)
            try:
                self.transport.clone(remote_url, branch, local_dir)
            except GitCommandError as exc:
                raise CloneFailed(remote_url, branch, str(exc)) from exc
            _add_excludes(local_dir, exclude)
            return SyncAction.CLONED

        logger.info("Pulling remote keystores repository...%s", branch)
        steps = (
            ("fetch", lambda: self.transport.fetch(local_dir)),
            ("checkout", lambda: self.transport.force_checkout(local_dir, f"origin/{branch}")),
            ("pull", lambda: self.transport.pull(local_dir, "origin", branch)),
        )
        for step, run in steps:
            try:
                run()
            except GitCommandError as exc:
                raise SyncFailed(local_dir, step, str(exc)) from exc
        _add_excludes(local_dir, exclude)
        return SyncAction.UPDATED

    def head(self, local_dir: Path) -> Optional[str]:
        """Current commit of the local copy, or None if unavailable."""
        try:
            return self.transport.rev_parse(local_dir)
        except GitCommandError:
            return None


def _add_excludes(local_dir: Path, patterns: Iterable[str]) -> None:
    """Append any missing *patterns* to the repo's local exclude file."""
    patterns = [p for p in patterns if p]
    if not patterns:
        return
    exclude_file = local_dir / ".git" / "info" / "exclude"
    existing = exclude_file.read_text(encoding="utf-8") if exclude_file.exists() else ""
    missing = [p for p in patterns if p not in existing.splitlines()]
    if not missing:
        return
    exclude_file.parent.mkdir(parents=True, exist_ok=True)
    with open(exclude_file, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write("\n".join(missing) + "\n")
    logger.debug("Excluded %s in %s", ", ".join(missing), local_dir)
