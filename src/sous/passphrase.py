"""
Passphrase sources -- where the security password comes from.

A pre-supplied value (parameter or environment variable) always wins
over interactive prompting. Tests inject StaticPassphrase.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Optional

import click

PASSPHRASE_ENV_VAR = "SOUS_MATCH_PASSWORD"


class PassphraseSource(ABC):
    """Capability that resolves a passphrase."""

    @abstractmethod
    def get(self, prompt: str, secret: bool = True) -> str:
        """Return the passphrase, possibly empty.

        Args:
            prompt: Text shown if the user must be asked.
            secret: Whether input must not be echoed.
        """


class StaticPassphrase(PassphraseSource):
    """A fixed, already-known passphrase."""

    def __init__(self, value: Optional[str]) -> None:
        self._value = value or ""

    def get(self, prompt: str, secret: bool = True) -> str:
        return self._value


class PromptPassphrase(PassphraseSource):
    """Prompt on the terminal unless a preset value was supplied."""

    def __init__(self, preset: Optional[str] = None) -> None:
        self._preset = preset

    def get(self, prompt: str, secret: bool = True) -> str:
        if self._preset:
            return self._preset
        return click.prompt(
            prompt.rstrip(": ").rstrip(),
            hide_input=secret,
            default="",
            show_default=False,
        )


class EnvPassphrase(PassphraseSource):
    """Read the passphrase from an environment variable.

    Falls back to *fallback* (e.g. a prompt) when the variable is unset.
    """

    def __init__(
        self,
        var: str = PASSPHRASE_ENV_VAR,
        fallback: Optional[PassphraseSource] = None,
    ) -> None:
        self.var = var
        self._fallback = fallback

    def get(self, prompt: str, secret: bool = True) -> str:
        value = os.environ.get(self.var, "")
        if value or self._fallback is None:
            return value
        return self._fallback.get(prompt, secret=secret)
