"""
Decryption engine -- turns ``<name>.jks.enc`` into ``<name>.jks``.

Two on-disk formats are understood, detected from the file header:

    Salted__  OpenSSL ``enc -aes-256-cbc -pbkdf2`` output. 8-byte salt,
              PBKDF2-HMAC-SHA256 (10000 iterations) -> 32-byte key +
              16-byte IV, PKCS#7 padding. Existing vaults use this.
    SOUSGCM1  AES-256-GCM. 16-byte salt, 4-byte big-endian iteration
              count, 12-byte nonce, then ciphertext + 16-byte tag. The
              header is authenticated as associated data.

The CBC format carries no authentication: a wrong key is caught only
when the padding fails to check out, which a small fraction of wrong
keys pass. GCM always rejects a wrong key or a tampered file.

The cipher password is the 128-hex-char key from the key file, exactly
as ``openssl enc -pass file:<key>`` would read it.

Plaintext is always regenerated: written to a temporary sibling and
moved into place only after the cipher succeeds.
"""

from __future__ import annotations

import logging
import os
import struct
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .errors import ArtifactNotFound, DecryptionFailed, ToolUnavailable
from .fsutil import atomic_output
from .keys import read_key
from .models import EncryptFormat
from .preflight import check_openssl, require_tool

logger = logging.getLogger("sous.crypto")

OPENSSL_MAGIC = b"Salted__"
OPENSSL_SALT_LEN = 8
OPENSSL_ITERATIONS = 10_000

GCM_MAGIC = b"SOUSGCM1"
GCM_SALT_LEN = 16
GCM_NONCE_LEN = 12
GCM_ITERATIONS = 200_000
GCM_MAX_ITERATIONS = 10 * GCM_ITERATIONS
_GCM_HEADER = struct.Struct(f">{len(GCM_MAGIC)}s{GCM_SALT_LEN}sI{GCM_NONCE_LEN}s")


# ---------------------------------------------------------------------------
# Cryptographic helpers
# ---------------------------------------------------------------------------

def _pbkdf2_sha256(password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
    from cryptography.hazmat.primitives.hashes import SHA256
    from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

    return PBKDF2HMAC(
        algorithm=SHA256(), length=length, salt=salt, iterations=iterations,
    ).derive(password)


def _cbc_encrypt(data: bytes, password: bytes) -> bytes:
    from cryptography.hazmat.primitives import padding
    from cryptography.hazmat.primitives.ciphers import Cipher as _Cipher, algorithms, modes

    salt = os.urandom(OPENSSL_SALT_LEN)
    material = _pbkdf2_sha256(password, salt, OPENSSL_ITERATIONS, 48)
    key, iv = material[:32], material[32:]

    padder = padding.PKCS7(128).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = _Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return OPENSSL_MAGIC + salt + encryptor.update(padded) + encryptor.finalize()


def _cbc_decrypt(blob: bytes, password: bytes) -> bytes:
    from cryptography.hazmat.primitives import padding
    from cryptography.hazmat.primitives.ciphers import Cipher as _Cipher, algorithms, modes

    header_len = len(OPENSSL_MAGIC) + OPENSSL_SALT_LEN
    salt = blob[len(OPENSSL_MAGIC):header_len]
    body = blob[header_len:]
    if not body or len(body) % 16:
        raise ValueError("ciphertext length is not a multiple of the block size")

    material = _pbkdf2_sha256(password, salt, OPENSSL_ITERATIONS, 48)
    key, iv = material[:32], material[32:]

    decryptor = _Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def _gcm_encrypt(data: bytes, password: bytes, iterations: int = GCM_ITERATIONS) -> bytes:
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM

    salt = os.urandom(GCM_SALT_LEN)
    nonce = os.urandom(GCM_NONCE_LEN)
    header = _GCM_HEADER.pack(GCM_MAGIC, salt, iterations, nonce)
    key = _pbkdf2_sha256(password, salt, iterations, 32)
    return header + AESGCM(key).encrypt(nonce, data, header)


def _gcm_decrypt(blob: bytes, password: bytes) -> bytes:
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM

    if len(blob) < _GCM_HEADER.size + 16:
        raise ValueError("file is too short to be an AES-256-GCM artifact")
    header = blob[:_GCM_HEADER.size]
    _, salt, iterations, nonce = _GCM_HEADER.unpack(header)
    if not 0 < iterations <= GCM_MAX_ITERATIONS:
        raise ValueError(f"iteration count {iterations} out of range")
    key = _pbkdf2_sha256(password, salt, iterations, 32)
    return AESGCM(key).decrypt(nonce, blob[_GCM_HEADER.size:], header)


def detect_format(blob: bytes) -> Optional[EncryptFormat]:
    """Identify an encrypted artifact from its leading bytes."""
    if blob.startswith(GCM_MAGIC):
        return EncryptFormat.GCM
    if blob.startswith(OPENSSL_MAGIC):
        return EncryptFormat.CBC
    return None


# ---------------------------------------------------------------------------
# Cipher adapters
# ---------------------------------------------------------------------------

class Cipher(ABC):
    """Symmetric cipher collaborator keyed by the cached key material."""

    @abstractmethod
    def decrypt(self, input_path: Path, output_path: Path, key: str) -> None:
        """Decrypt *input_path* into *output_path*.

        Raises:
            DecryptionFailed: Wrong key, corrupt input, or cipher error.
        """

    @abstractmethod
    def encrypt(
        self,
        input_path: Path,
        output_path: Path,
        key: str,
        fmt: EncryptFormat = EncryptFormat.GCM,
    ) -> None:
        """Encrypt *input_path* into *output_path* in format *fmt*."""


class NativeCipher(Cipher):
    """In-process cipher built on the ``cryptography`` package."""

    def decrypt(self, input_path: Path, output_path: Path, key: str) -> None:
        blob = input_path.read_bytes()
        fmt = detect_format(blob)
        if fmt is None:
            raise DecryptionFailed(input_path, "unrecognized encrypted file format")

        from cryptography.exceptions import InvalidTag

        try:
            if fmt == EncryptFormat.GCM:
                plaintext = _gcm_decrypt(blob, key.encode("ascii"))
            else:
                plaintext = _cbc_decrypt(blob, key.encode("ascii"))
        except InvalidTag:
            raise DecryptionFailed(
                input_path, "authentication failed (wrong key or tampered file)"
            ) from None
        except ValueError as exc:
            raise DecryptionFailed(input_path, f"bad decrypt ({exc})") from exc

        output_path.write_bytes(plaintext)

    def encrypt(
        self,
        input_path: Path,
        output_path: Path,
        key: str,
        fmt: EncryptFormat = EncryptFormat.GCM,
    ) -> None:
        data = input_path.read_bytes()
        if EncryptFormat(fmt) == EncryptFormat.GCM:
            blob = _gcm_encrypt(data, key.encode("ascii"))
        else:
            blob = _cbc_encrypt(data, key.encode("ascii"))
        output_path.write_bytes(blob)


class OpenSSLCipher(Cipher):
    """Shells out to ``openssl enc`` (CBC format only).

    The key is fed on stdin (``-pass stdin``) so it never shows up in
    the process list.
    """

    def __init__(self, openssl: str = "openssl") -> None:
        self.openssl = openssl
        self._checked = False

    def _ensure_available(self) -> None:
        if not self._checked:
            check = require_tool(check_openssl(required=True))
            logger.info("OpenSSL version: %s", check.version)
            self._checked = True

    def _run(self, args: list[str], key: str, input_path: Path) -> None:
        self._ensure_available()
        cmd = [self.openssl, "enc", *args, "-aes-256-cbc", "-pbkdf2", "-pass", "stdin"]
        try:
            result = subprocess.run(
                cmd, input=key + "\n", capture_output=True, text=True, check=False,
            )
        except FileNotFoundError:
            raise ToolUnavailable("OpenSSL", f"'{self.openssl}' not found on PATH") from None
        if result.returncode != 0:
            raise DecryptionFailed(input_path, result.stderr.strip() or "openssl failed")

    def decrypt(self, input_path: Path, output_path: Path, key: str) -> None:
        with open(input_path, "rb") as f:
            head = f.read(len(GCM_MAGIC))
        if head == GCM_MAGIC:
            raise DecryptionFailed(
                input_path, "AES-256-GCM artifacts need cipher_backend: native"
            )
        self._run(["-d", "-in", str(input_path), "-out", str(output_path)], key, input_path)

    def encrypt(
        self,
        input_path: Path,
        output_path: Path,
        key: str,
        fmt: EncryptFormat = EncryptFormat.CBC,
    ) -> None:
        if EncryptFormat(fmt) != EncryptFormat.CBC:
            raise ValueError("The openssl backend only writes the CBC format")
        self._run(["-salt", "-in", str(input_path), "-out", str(output_path)], key, input_path)


# ---------------------------------------------------------------------------
# DecryptionEngine
# ---------------------------------------------------------------------------

class DecryptionEngine:
    """Produces plaintext artifacts from their encrypted siblings.

    Args:
        cipher: Cipher adapter; defaults to NativeCipher.
    """

    def __init__(self, cipher: Optional[Cipher] = None) -> None:
        self.cipher = cipher or NativeCipher()

    def decrypt(self, encrypted_path: Path, plaintext_path: Path, key_path: Path) -> Path:
        """Decrypt *encrypted_path* into *plaintext_path*.

        Any existing plaintext is removed first, even when the encrypted
        artifact turns out to be missing. On failure no plaintext file is
        left behind.

        Returns:
            The plaintext path.

        Raises:
            ArtifactNotFound: If the encrypted artifact does not exist.
            CorruptKey: If the key file is malformed.
            DecryptionFailed: If the cipher rejects the input.
        """
        if plaintext_path.exists():
            plaintext_path.unlink()
        if not encrypted_path.is_file():
            raise ArtifactNotFound(encrypted_path)

        key = read_key(key_path)

        with atomic_output(plaintext_path, mode=0o600) as tmp_path:
            self.cipher.decrypt(encrypted_path, tmp_path, key)

        logger.info("Decrypted %s", plaintext_path.name)
        return plaintext_path

    def encrypt(
        self,
        plaintext_path: Path,
        encrypted_path: Path,
        key_path: Path,
        fmt: EncryptFormat = EncryptFormat.GCM,
    ) -> Path:
        """Encrypt *plaintext_path* into *encrypted_path* for publishing.

        Returns:
            The encrypted path.

        Raises:
            ArtifactNotFound: If the plaintext artifact does not exist.
            CorruptKey: If the key file is malformed.
        """
        if not plaintext_path.is_file():
            raise ArtifactNotFound(plaintext_path, hint="Check the keystore path.")

        key = read_key(key_path)
        with atomic_output(encrypted_path, mode=0o644) as tmp_path:
            self.cipher.encrypt(plaintext_path, tmp_path, key, fmt)

        logger.info("Encrypted %s -> %s", plaintext_path.name, encrypted_path.name)
        return encrypted_path
