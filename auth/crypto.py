"""
auth/crypto.py -- Symmetric encryption for secrets stored at rest.

AES-256-CBC with PKCS7 padding via the `cryptography` library. The stored
form is "<iv hex>:<base64 ciphertext>" with a fresh random 16-byte IV per
encryption, so encrypting the same secret twice yields different strings.

The key is the configured ENCRYPTION_KEY string, latin-1 encoded. It must be
exactly 32 bytes (AES-256).

Every failure mode -- wrong key size, malformed input, bad padding (which is
what a wrong key usually looks like), non-UTF-8 plaintext -- surfaces as
SymmetricCryptoError so callers have one thing to catch.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_KEY_BYTES = 32
_IV_BYTES = 16


class SymmetricCryptoError(ValueError):
    """Raised when a value cannot be encrypted or decrypted."""


def _key_bytes(key: str) -> bytes:
    try:
        raw = key.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise SymmetricCryptoError("Encryption key must be latin-1 text") from exc
    if len(raw) != _KEY_BYTES:
        raise SymmetricCryptoError(f"Encryption key must be {_KEY_BYTES} bytes, got {len(raw)}")
    return raw


def symmetric_encrypt(text: str, key: str) -> str:
    """Encrypt UTF-8 text. Returns "<iv hex>:<base64 ciphertext>"."""
    iv = os.urandom(_IV_BYTES)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(text.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_key_bytes(key)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + ":" + base64.b64encode(ciphertext).decode("ascii")


def symmetric_decrypt(text: str, key: str) -> str:
    """Reverse symmetric_encrypt(). Raises SymmetricCryptoError on any failure."""
    key_bytes = _key_bytes(key)
    iv_hex, sep, body = text.partition(":")
    if not sep:
        raise SymmetricCryptoError("Ciphertext is missing the IV separator")
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = base64.b64decode(body, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise SymmetricCryptoError("Ciphertext is not valid hex/base64") from exc
    if len(iv) != _IV_BYTES:
        raise SymmetricCryptoError("Ciphertext has a corrupted IV")
    try:
        decryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except ValueError as exc:
        raise SymmetricCryptoError("Ciphertext could not be decrypted") from exc
