"""
tests/test_two_factor.py -- TOTP setup / enable / disable.

Covers:
  - TwoFactorManager rules: password re-check, already-enabled, setup
    required, wrong code, missing key
  - Corrupt stored secrets collapse to internal-server-error and are logged
  - The stored secret is encrypted and two-factor stays off until enabled
  - End-to-end over HTTP: setup -> enable -> sign-in needs a code -> disable
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import MagicMock

import pyotp
import pytest
from fastapi.testclient import TestClient

from auth.crypto import symmetric_decrypt, symmetric_encrypt
from auth.errors import ErrorCode
from auth.store import UserStore
from auth.two_factor import TwoFactorError, TwoFactorManager
from tests.helpers import PASSWORD, TEST_KEY, add_user, new_totp_secret, wrong_code


def _code_of(exc_info: pytest.ExceptionInfo) -> ErrorCode:
    return exc_info.value.code


class TestTwoFactorManager:
    def test_setup_stores_encrypted_pending_secret(self, store) -> None:
        user = add_user(store)
        setup = asyncio.run(TwoFactorManager(store, TEST_KEY, issuer="PassGate").setup(user, PASSWORD))

        assert len(setup.secret) == 32
        assert setup.key_uri.startswith("otpauth://totp/PassGate:")
        assert f"secret={setup.secret}" in setup.key_uri

        stored = store.get_by_id(user.id)
        assert stored.two_factor_enabled is False
        assert stored.two_factor_secret != setup.secret
        assert symmetric_decrypt(stored.two_factor_secret, TEST_KEY) == setup.secret

    def test_setup_wrong_password(self, store) -> None:
        user = add_user(store)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).setup(user, "nope"))
        assert _code_of(exc_info) is ErrorCode.incorrect_password

    def test_setup_without_local_password(self, store) -> None:
        user = add_user(store, password_hash=None)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).setup(user, PASSWORD))
        assert _code_of(exc_info) is ErrorCode.user_missing_password

    def test_setup_when_already_enabled(self, store) -> None:
        user = add_user(store, totp_secret=new_totp_secret())
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).setup(user, PASSWORD))
        assert _code_of(exc_info) is ErrorCode.two_factor_already_enabled

    def test_setup_without_key(self, store) -> None:
        user = add_user(store)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, None).setup(user, PASSWORD))
        assert _code_of(exc_info) is ErrorCode.internal_server_error
        assert store.get_by_id(user.id).two_factor_secret is None

    def test_enable_requires_setup(self, store) -> None:
        user = add_user(store)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).enable(user, "123456"))
        assert _code_of(exc_info) is ErrorCode.two_factor_setup_required

    def test_enable_wrong_code_keeps_disabled(self, store) -> None:
        secret = new_totp_secret()
        user = add_user(store, totp_secret=secret, two_factor_enabled=False)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).enable(user, wrong_code(secret)))
        assert _code_of(exc_info) is ErrorCode.incorrect_two_factor_code
        assert store.get_by_id(user.id).two_factor_enabled is False

    def test_enable_with_valid_code(self, store) -> None:
        secret = new_totp_secret()
        user = add_user(store, totp_secret=secret, two_factor_enabled=False)
        asyncio.run(TwoFactorManager(store, TEST_KEY).enable(user, pyotp.TOTP(secret).now()))
        stored = store.get_by_id(user.id)
        assert stored.two_factor_enabled is True
        assert stored.two_factor_secret == user.two_factor_secret

    def test_disable_when_not_enabled(self, store) -> None:
        user = add_user(store)
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).disable(user, PASSWORD, "123456"))
        assert _code_of(exc_info) is ErrorCode.two_factor_disabled

    def test_disable_clears_secret(self, store) -> None:
        secret = new_totp_secret()
        user = add_user(store, totp_secret=secret)
        asyncio.run(TwoFactorManager(store, TEST_KEY).disable(user, PASSWORD, pyotp.TOTP(secret).now()))
        stored = store.get_by_id(user.id)
        assert stored.two_factor_enabled is False
        assert stored.two_factor_secret is None

    def test_disable_with_broken_secret(self, store) -> None:
        user = add_user(store, encrypted_secret="garbage")
        with pytest.raises(TwoFactorError) as exc_info:
            asyncio.run(TwoFactorManager(store, TEST_KEY).disable(user, PASSWORD, "123456"))
        assert _code_of(exc_info) is ErrorCode.internal_server_error

    @pytest.mark.parametrize("enabled", [False, True])
    def test_secret_not_base32(self, store, caplog, enabled: bool) -> None:
        user = add_user(store, encrypted_secret=symmetric_encrypt("1" * 32, TEST_KEY), two_factor_enabled=enabled)
        manager = TwoFactorManager(store, TEST_KEY)
        with caplog.at_level(logging.ERROR, logger="passgate.auth"), pytest.raises(TwoFactorError) as exc_info:
            if enabled:
                asyncio.run(manager.disable(user, PASSWORD, "123456"))
            else:
                asyncio.run(manager.enable(user, "123456"))
        assert _code_of(exc_info) is ErrorCode.internal_server_error
        assert f"user {user.id} is not valid base32" in caplog.text
        assert store.get_by_id(user.id).two_factor_enabled is enabled

    def test_injected_collaborators(self, store) -> None:
        user = add_user(store, encrypted_secret="opaque")
        verify = MagicMock(return_value=True)
        decrypt = MagicMock(return_value="A" * 32)
        check = MagicMock(return_value=True)
        manager = TwoFactorManager(store, TEST_KEY, verify=verify, decrypt=decrypt, check=check)

        asyncio.run(manager.disable(user, "anything", "123456"))

        verify.assert_called_once_with("anything", user.hashed_password)
        decrypt.assert_called_once_with("opaque", TEST_KEY)
        check.assert_called_once_with("123456", "A" * 32)
        assert store.get_by_id(user.id).two_factor_enabled is False


class TestTwoFactorRoutes:
    def test_requires_session(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, _ = api_client
        client.cookies.clear()
        resp = client.post("/api/v1/auth/two-factor/totp/setup", json={"password": PASSWORD})
        assert resp.status_code == 401

    def test_full_lifecycle(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        client.cookies.clear()
        user = add_user(store)
        sign_in = {"email": user.email, "password": PASSWORD}
        token = client.post("/api/v1/auth/callback/credentials", json=sign_in).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        setup = client.post("/api/v1/auth/two-factor/totp/setup", json={"password": PASSWORD}, headers=headers)
        assert setup.status_code == 200
        assert setup.headers["cache-control"] == "no-store"
        secret = setup.json()["secret"]
        assert setup.json()["key_uri"].startswith("otpauth://totp/")

        # Pending setup does not change sign-in yet
        assert client.post("/api/v1/auth/callback/credentials", json=sign_in).status_code == 200

        bad = client.post("/api/v1/auth/two-factor/totp/enable", json={"code": wrong_code(secret)}, headers=headers)
        assert bad.status_code == 401
        assert bad.json()["error"]["code"] == "incorrect-two-factor-code"

        totp = pyotp.TOTP(secret)
        enable = client.post("/api/v1/auth/two-factor/totp/enable", json={"code": totp.now()}, headers=headers)
        assert enable.status_code == 200

        again = client.post("/api/v1/auth/two-factor/totp/enable", json={"code": totp.now()}, headers=headers)
        assert again.status_code == 400
        assert again.json()["error"]["code"] == "two-factor-already-enabled"

        needs_code = client.post("/api/v1/auth/callback/credentials", json=sign_in)
        assert needs_code.json()["error"]["code"] == "second-factor-required"
        with_code = client.post("/api/v1/auth/callback/credentials", json={**sign_in, "totp_code": totp.now()})
        assert with_code.status_code == 200

        disable = client.post(
            "/api/v1/auth/two-factor/totp/disable",
            json={"password": PASSWORD, "code": totp.now()},
            headers=headers,
        )
        assert disable.status_code == 200
        assert client.post("/api/v1/auth/callback/credentials", json=sign_in).status_code == 200

    def test_enable_with_corrupt_secret_uses_error_code(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        client.cookies.clear()
        user = add_user(store, encrypted_secret=symmetric_encrypt("1" * 32, TEST_KEY), two_factor_enabled=False)
        assert client.post(
            "/api/v1/auth/callback/credentials", json={"email": user.email, "password": PASSWORD}
        ).status_code == 200

        resp = client.post("/api/v1/auth/two-factor/totp/enable", json={"code": "123456"})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "internal-server-error"

    def test_deleted_account_cannot_manage_two_factor(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        client.cookies.clear()
        user = add_user(store)
        token = client.post(
            "/api/v1/auth/callback/credentials", json={"email": user.email, "password": PASSWORD}
        ).json()["access_token"]
        client.cookies.clear()
        store.delete_user(user.id)
        resp = client.post(
            "/api/v1/auth/two-factor/totp/setup",
            json={"password": PASSWORD},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401
