"""
auth/totp.py -- Time-based one-time password helpers (pyotp).

Secrets are 32-character base32 strings (160 bits), the same size every
mainstream authenticator app expects. check_code() accepts codes from
`valid_window` time steps either side of now to absorb clock drift.
"""

from __future__ import annotations

import pyotp

SECRET_LENGTH = 32


def generate_secret() -> str:
    return pyotp.random_base32(length=SECRET_LENGTH)


def is_base32_secret(secret: str) -> bool:
    """Return True if pyotp can decode secret into key bytes."""
    try:
        pyotp.TOTP(secret).byte_secret()
    except ValueError:
        return False
    return True


def check_code(code: str, secret: str, valid_window: int = 1) -> bool:
    """Return True if code is the current TOTP for secret (within valid_window steps)."""
    code = (code or "").strip()
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=valid_window)


def provisioning_uri(secret: str, account: str, issuer: str) -> str:
    """Return the otpauth:// URI that authenticator apps scan as a QR code."""
    return pyotp.TOTP(secret).provisioning_uri(name=account, issuer_name=issuer)
