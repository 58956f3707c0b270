"""
auth/two_factor.py -- TOTP setup, enable and disable for a signed-in user.

Flow:
  setup   -- password re-check, generate a secret, store it encrypted with
             two_factor_enabled still False. Returns the secret and the
             otpauth:// URI once; it is never readable again in plaintext.
  enable  -- prove the authenticator app holds the pending secret by
             submitting a current code, then flip the flag.
  disable -- password plus a current code, then wipe the secret.

Failures raise TwoFactorError carrying an ErrorCode. The route layer maps it
onto the standard error envelope.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from starlette.concurrency import run_in_threadpool

from auth.credentials import CodeChecker, Decryptor, PasswordVerifier, read_two_factor_secret
from auth.crypto import SymmetricCryptoError, symmetric_decrypt, symmetric_encrypt
from auth.errors import ErrorCode
from auth.models import User
from auth.store import UserStore
from auth.tokens import verify_password
from auth.totp import check_code, generate_secret, provisioning_uri

logger = logging.getLogger("passgate.auth")


class TwoFactorError(Exception):
    """A two-factor management request was rejected."""

    def __init__(self, code: ErrorCode) -> None:
        super().__init__(code.value)
        self.code = code


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    key_uri: str


class TwoFactorManager:
    def __init__(
        self,
        store: UserStore,
        encryption_key: str | None,
        *,
        issuer: str = "PassGate",
        totp_valid_window: int = 1,
        verify: PasswordVerifier = verify_password,
        decrypt: Decryptor = symmetric_decrypt,
        check: CodeChecker | None = None,
    ) -> None:
        self._store = store
        self._encryption_key = encryption_key
        self._verify = verify
        self._decrypt = decrypt
        self._issuer = issuer
        self._check = check or partial(check_code, valid_window=totp_valid_window)

    async def _require_password(self, user: User, password: str) -> None:
        if not user.hashed_password:
            raise TwoFactorError(ErrorCode.user_missing_password)
        if not await run_in_threadpool(self._verify, password, user.hashed_password):
            raise TwoFactorError(ErrorCode.incorrect_password)

    def _secret_for(self, user: User) -> str:
        secret = read_two_factor_secret(user, self._encryption_key, self._decrypt)
        if secret is None:
            raise TwoFactorError(ErrorCode.internal_server_error)
        return secret

    async def setup(self, user: User, password: str) -> TwoFactorSetup:
        """Start (or restart) setup. Any earlier pending secret is replaced."""
        await self._require_password(user, password)
        if user.two_factor_enabled:
            raise TwoFactorError(ErrorCode.two_factor_already_enabled)
        if not self._encryption_key:
            logger.error("Missing encryption key; cannot set up two factor authentication.")
            raise TwoFactorError(ErrorCode.internal_server_error)

        secret = generate_secret()
        try:
            encrypted = symmetric_encrypt(secret, self._encryption_key)
        except SymmetricCryptoError as exc:
            logger.error("Could not encrypt two factor secret for user %s: %s", user.id, exc)
            raise TwoFactorError(ErrorCode.internal_server_error) from exc
        await run_in_threadpool(partial(self._store.set_two_factor, user.id, secret=encrypted, enabled=False))
        logger.info("Two factor setup started for user %s", user.id)
        return TwoFactorSetup(
            secret=secret,
            key_uri=provisioning_uri(secret, user.email, self._issuer),
        )

    async def enable(self, user: User, code: str) -> None:
        if user.two_factor_enabled:
            raise TwoFactorError(ErrorCode.two_factor_already_enabled)
        if not user.two_factor_secret:
            raise TwoFactorError(ErrorCode.two_factor_setup_required)
        secret = self._secret_for(user)
        if not self._check(code, secret):
            raise TwoFactorError(ErrorCode.incorrect_two_factor_code)
        await run_in_threadpool(
            partial(self._store.set_two_factor, user.id, secret=user.two_factor_secret, enabled=True)
        )
        logger.info("Two factor enabled for user %s", user.id)

    async def disable(self, user: User, password: str, code: str) -> None:
        await self._require_password(user, password)
        if not user.two_factor_enabled:
            raise TwoFactorError(ErrorCode.two_factor_disabled)
        secret = self._secret_for(user)
        if not self._check(code, secret):
            raise TwoFactorError(ErrorCode.incorrect_two_factor_code)
        await run_in_threadpool(partial(self._store.set_two_factor, user.id, secret=None, enabled=False))
        logger.info("Two factor disabled for user %s", user.id)
