"""
Preflight checks for the external programs sous shells out to.

Checks for:
  - Git (required: the vault is a git repository)
  - OpenSSL (only needed with the ``openssl`` cipher backend)

Each check returns a ToolCheck with the installed version or a
platform-specific install command.
"""

from __future__ import annotations

import platform
import re
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ToolUnavailable

OPENSSL_MIN_VERSION = (1, 1, 1)


class ToolStatus(str, Enum):
    """Status of a system tool."""
    INSTALLED = "installed"
    MISSING = "missing"
    UNSUPPORTED = "unsupported"


@dataclass
class ToolCheck:
    """Result of checking a single system tool."""

    name: str
    status: ToolStatus
    required: bool
    version: str = ""
    install_cmd: str = ""
    download_url: str = ""
    install_note: str = ""

    @property
    def installed(self) -> bool:
        """Whether the tool is installed and usable."""
        return self.status == ToolStatus.INSTALLED

    @property
    def ok(self) -> bool:
        """Whether this check passes (installed, or optional and missing)."""
        return self.installed or not self.required


def _detect_linux_pkg_manager() -> Optional[str]:
    """Detect the Linux package manager."""
    for mgr in ("apt", "dnf", "pacman", "zypper", "apk"):
        if shutil.which(mgr):
            return mgr
    return None


def _install_cmd(package: str, brew: str, winget: str) -> str:
    system = platform.system()
    if system == "Linux":
        mgr = _detect_linux_pkg_manager() or "apt"
        return {
            "apt": f"sudo apt install -y {package}",
            "dnf": f"sudo dnf install -y {package}",
            "pacman": f"sudo pacman -S --noconfirm {package}",
            "zypper": f"sudo zypper install -y {package}",
            "apk": f"sudo apk add {package}",
        }[mgr]
    if system == "Darwin":
        return f"brew install {brew}"
    if system == "Windows":
        return f"winget install --id {winget}"
    return ""


def _first_line(cmd: list[str]) -> str:
    """Run ``<tool> version`` and return the first line of stdout."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip().split("\n")[0][:60]


def check_git(required: bool = True) -> ToolCheck:
    """Check if Git is installed.

    Returns:
        ToolCheck for Git.
    """
    if shutil.which("git"):
        return ToolCheck(
            name="Git",
            status=ToolStatus.INSTALLED,
            required=required,
            version=_first_line(["git", "--version"]),
        )

    return ToolCheck(
        name="Git",
        status=ToolStatus.MISSING,
        required=required,
        install_cmd=_install_cmd("git", "git", "Git.Git"),
        download_url="https://git-scm.com/downloads",
        install_note="Git fetches the keystore vault.",
    )


def parse_openssl_version(output: str) -> Optional[tuple[int, int, int]]:
    """Extract (major, minor, patch) from ``openssl version`` output.

    Only genuine OpenSSL qualifies; LibreSSL and friends return None.
    """
    match = re.match(r"OpenSSL (\d+)\.(\d+)\.(\d+)", output)
    if not match:
        return None
    return tuple(int(part) for part in match.groups())  # type: ignore[return-value]


def check_openssl(required: bool = False) -> ToolCheck:
    """Check for OpenSSL 1.1.1 or newer (needed for ``-pbkdf2``).

    Returns:
        ToolCheck for OpenSSL.
    """
    install_cmd = _install_cmd("openssl", "openssl@3", "ShiningLight.OpenSSL")
    if not shutil.which("openssl"):
        return ToolCheck(
            name="OpenSSL",
            status=ToolStatus.MISSING,
            required=required,
            install_cmd=install_cmd,
            download_url="https://www.openssl.org/",
            install_note="Only needed with cipher_backend: openssl.",
        )

    version = _first_line(["openssl", "version"])
    parsed = parse_openssl_version(version)
    status = (
        ToolStatus.INSTALLED
        if parsed is not None and parsed >= OPENSSL_MIN_VERSION
        else ToolStatus.UNSUPPORTED
    )
    return ToolCheck(
        name="OpenSSL",
        status=status,
        required=required,
        version=version,
        install_cmd="" if status == ToolStatus.INSTALLED else install_cmd,
        install_note=(
            "" if status == ToolStatus.INSTALLED
            else "Please install OpenSSL at least version 1.1.1"
        ),
    )


def require_tool(check: ToolCheck) -> ToolCheck:
    """Raise ToolUnavailable unless *check* reports an installed tool."""
    if check.installed:
        return check
    hint = check.install_note
    if check.install_cmd:
        hint = f"{hint} Install with: {check.install_cmd}".strip()
    detail = check.version or check.status.value
    raise ToolUnavailable(check.name, detail, hint=hint or None)


def run_preflight() -> list[ToolCheck]:
    """Run every check, for the ``doctor`` command."""
    return [check_git(), check_openssl()]
