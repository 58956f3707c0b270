"""
auth/credentials.py -- The credentials provider's authorize() step.

Verification sequence (each step short-circuits):
  1. exact-email lookup                  -> user-not-found
  2. account has a local password        -> missing-password
  3. bcrypt verify                       -> incorrect-password
  4. two-factor off                      -> success
  5. two-factor on:
       no code submitted                 -> second-factor-required
       no stored secret                  -> internal-server-error (logged)
       no encryption key                 -> internal-server-error (logged)
       secret fails to decrypt           -> internal-server-error (logged)
       decrypted secret not 32 chars     -> internal-server-error (logged)
       decrypted secret not base32       -> internal-server-error (logged)
       TOTP mismatch                     -> incorrect-two-factor-code
       otherwise                         -> success

Integrity faults are logged with diagnostic detail (user id, lengths) and
collapsed to the single internal-server-error code. The client never learns
which one happened.

Collaborators (password verifier, decrypt, TOTP check) are constructor
parameters with production defaults, and so is the encryption key, so the
whole sequence is deterministic under test.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from starlette.concurrency import run_in_threadpool

from auth.crypto import SymmetricCryptoError, symmetric_decrypt
from auth.errors import AuthResult, ErrorCode
from auth.models import Credentials, User, UserIdentity
from auth.store import UserStore
from auth.tokens import verify_password
from auth.totp import SECRET_LENGTH, check_code, is_base32_secret

logger = logging.getLogger("passgate.auth")

PasswordVerifier = Callable[[str, str], bool]
Decryptor = Callable[[str, str], str]
CodeChecker = Callable[[str, str], bool]


def read_two_factor_secret(
    user: User,
    encryption_key: str | None,
    decrypt: Decryptor = symmetric_decrypt,
) -> str | None:
    """Decrypt a user's stored TOTP secret.

    Returns the plaintext base32 secret, or None after logging when the record
    or the server configuration cannot produce a trustworthy secret.
    """
    if not user.two_factor_secret:
        logger.error("Two factor is enabled for user %s but they have no secret", user.id)
        return None
    if not encryption_key:
        logger.error("Missing encryption key; cannot proceed with two factor login.")
        return None
    try:
        secret = decrypt(user.two_factor_secret, encryption_key)
    except SymmetricCryptoError as exc:
        logger.error("Two factor secret decryption failed for user %s: %s", user.id, exc)
        return None
    if len(secret) != SECRET_LENGTH:
        logger.error(
            "Two factor secret decryption failed. Expected key with length %d but got %d",
            SECRET_LENGTH,
            len(secret),
        )
        return None
    if not is_base32_secret(secret):
        logger.error("Two factor secret for user %s is not valid base32", user.id)
        return None
    return secret


class CredentialAuthorizer:
    """Turns submitted credentials into a verified identity or an error code.

    Usage:
        authorizer = CredentialAuthorizer(store, encryption_key=settings.encryption_key)
        result = await authorizer.authorize(Credentials(email, password, totp_code))
        if result.ok:
            ...result.identity
        else:
            ...result.error
    """

    def __init__(
        self,
        store: UserStore,
        encryption_key: str | None,
        *,
        verify: PasswordVerifier = verify_password,
        decrypt: Decryptor = symmetric_decrypt,
        check: CodeChecker | None = None,
        totp_valid_window: int = 1,
    ) -> None:
        self._store = store
        self._encryption_key = encryption_key
        self._verify = verify
        self._decrypt = decrypt
        self._check = check or partial(check_code, valid_window=totp_valid_window)

    async def authorize(self, credentials: Credentials) -> AuthResult:
        user = await run_in_threadpool(self._store.get_by_email, credentials.email)
        if user is None:
            return AuthResult.failure(ErrorCode.user_not_found)

        if not user.hashed_password:
            return AuthResult.failure(ErrorCode.user_missing_password)

        # bcrypt is deliberately slow; keep it off the event loop.
        is_correct_password = await run_in_threadpool(self._verify, credentials.password, user.hashed_password)
        if not is_correct_password:
            return AuthResult.failure(ErrorCode.incorrect_password)

        if user.two_factor_enabled:
            if not credentials.totp_code:
                return AuthResult.failure(ErrorCode.second_factor_required)

            secret = read_two_factor_secret(user, self._encryption_key, self._decrypt)
            if secret is None:
                return AuthResult.failure(ErrorCode.internal_server_error)

            if not self._check(credentials.totp_code, secret):
                return AuthResult.failure(ErrorCode.incorrect_two_factor_code)

        return AuthResult.success(UserIdentity.from_user(user))
