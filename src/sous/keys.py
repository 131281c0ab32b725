"""
Key deriver -- turns a security password into the cached vault key.

The key file holds a 512-bit digest rendered as 128 hex characters.
Two derivations produce that shape:

    sha512          Plain SHA-512 of the passphrase. Matches keys cached
                    by earlier releases, so existing vaults keep working.
    pbkdf2-sha512   PBKDF2-HMAC-SHA512 salted with the remote identity.
                    Slower to brute-force; still deterministic per remote.

The key file is written once per remote and validated on every run.
A malformed key is never repaired automatically: the user deletes it
and enters the passphrase again.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from .errors import CorruptKey, MissingPassphrase
from .fsutil import write_atomic
from .models import KeyDerivation
from .passphrase import PassphraseSource

logger = logging.getLogger("sous.keys")

KEY_HEX_LENGTH = 128
PASSPHRASE_PROMPT = "Security password: "

_KEY_RE = re.compile(r"[0-9a-fA-F]{%d}" % KEY_HEX_LENGTH)


def derive_key(
    passphrase: str,
    scheme: KeyDerivation = KeyDerivation.SHA512,
    salt: bytes = b"",
    iterations: int = 200_000,
) -> str:
    """Derive the 128-hex-char key for *passphrase*.

    Args:
        passphrase: The security password.
        scheme: Derivation scheme.
        salt: PBKDF2 salt (ignored by sha512).
        iterations: PBKDF2 iteration count (ignored by sha512).

    Returns:
        Lowercase hex string of length 128.
    """
    data = passphrase.encode("utf-8")
    if scheme == KeyDerivation.SHA512:
        return hashlib.sha512(data).hexdigest()

    from cryptography.hazmat.primitives.hashes import SHA512
    from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

    kdf = PBKDF2HMAC(
        algorithm=SHA512(),
        length=KEY_HEX_LENGTH // 2,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(data).hex()


def read_key(key_path: Path) -> str:
    """Read and validate the key material at *key_path*.

    Raises:
        CorruptKey: If the file is missing, unreadable, or not 128 hex chars.
    """
    try:
        key = key_path.read_text(encoding="ascii", errors="replace").strip()
    except OSError:
        raise CorruptKey(key_path, 0) from None

    if not _KEY_RE.fullmatch(key):
        raise CorruptKey(key_path, len(key))
    return key


class KeyDeriver:
    """Creates and validates the cached key file for one remote.

    Args:
        scheme: Derivation scheme for newly created keys.
        iterations: PBKDF2 iteration count.
    """

    def __init__(
        self,
        scheme: KeyDerivation = KeyDerivation.SHA512,
        iterations: int = 200_000,
    ) -> None:
        self.scheme = KeyDerivation(scheme)
        self.iterations = iterations

    def ensure_key(
        self,
        key_path: Path,
        passphrase_source: PassphraseSource,
        salt: bytes = b"",
    ) -> bool:
        """Make sure a key file exists at *key_path*.

        An existing file is left alone (call :meth:`validate_key` after).

        Args:
            key_path: Where the key lives.
            passphrase_source: Asked only when no key is cached.
            salt: Salt for strengthened derivation, usually the remote id.

        Returns:
            True if a new key was derived and written.

        Raises:
            MissingPassphrase: If the resolved passphrase is empty.
        """
        if key_path.is_file():
            return False

        passphrase = passphrase_source.get(PASSPHRASE_PROMPT, secret=True)
        if not passphrase or not passphrase.strip():
            raise MissingPassphrase(key_path)

        logger.info("Generating security key '%s'...", key_path.name)
        digest = derive_key(
            passphrase, self.scheme, salt=salt, iterations=self.iterations
        )
        write_atomic(key_path, digest.encode("ascii"))
        return True

    def validate_key(self, key_path: Path) -> str:
        """Check the key file holds exactly 128 hex characters.

        Returns:
            The key material, whitespace stripped.

        Raises:
            CorruptKey: If the file is missing, unreadable, or malformed.
        """
        key = read_key(key_path)
        logger.info("Security key '%s' initialized", key_path.name)
        return key
