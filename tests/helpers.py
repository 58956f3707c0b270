"""
tests/helpers.py -- Store and user factories shared by the test modules.

Imported after tests/conftest.py has set the environment, so auth modules
see the test ENCRYPTION_KEY and DEBUG settings.
"""

from __future__ import annotations

import os
import time
import uuid

import pyotp

from auth.crypto import symmetric_encrypt
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password

TEST_KEY = os.environ["ENCRYPTION_KEY"]
PASSWORD = "correct horse battery staple"

# bcrypt is slow on purpose; hash the shared test password once.
PASSWORD_HASH = hash_password(PASSWORD)


def make_store() -> UserStore:
    """Isolated named shared-memory SQLite store.

    Plain :memory: would give each threadpool worker its own blank database.
    """
    name = f"test_auth_{uuid.uuid4().hex}"
    return UserStore(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def add_user(
    store: UserStore,
    email: str | None = None,
    *,
    username: str | None = None,
    locale: str = "en",
    password_hash: str | None = PASSWORD_HASH,
    totp_secret: str | None = None,
    encrypted_secret: str | None = None,
    two_factor_enabled: bool | None = None,
) -> User:
    """Create and return a user.

    totp_secret is encrypted with TEST_KEY before storing. encrypted_secret is
    stored verbatim, for records that are deliberately broken. Two-factor is
    enabled whenever a secret is given unless two_factor_enabled says otherwise.
    """
    suffix = uuid.uuid4().hex[:8]
    email = email or f"user-{suffix}@example.com"
    secret = encrypted_secret
    if totp_secret is not None:
        secret = symmetric_encrypt(totp_secret, TEST_KEY)
    enabled = two_factor_enabled if two_factor_enabled is not None else secret is not None
    uid = store.create_user(
        User(
            email=email,
            username=username or f"user-{suffix}",
            name=f"Test User {suffix}",
            locale=locale,
            hashed_password=password_hash,
            two_factor_enabled=enabled,
            two_factor_secret=secret,
        )
    )
    return store.get_by_id(uid)


def new_totp_secret() -> str:
    return pyotp.random_base32(length=32)


def wrong_code(secret: str) -> str:
    """A well-formed code that is not accepted right now (window of 1 step)."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    accepted = {totp.at(now + drift) for drift in (-30, 0, 30)}
    for candidate in ("000000", "111111", "123456", "999999"):
        if candidate not in accepted:
            return candidate
    raise AssertionError("every candidate code is currently valid")
