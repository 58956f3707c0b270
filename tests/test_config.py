"""
tests/test_config.py -- Settings validation and small pure helpers.

Covers:
  - SECRET_KEY policy: generated in debug, required in production, min length
  - ENCRYPTION_KEY problems only warn
  - error descriptions and error page URLs
  - TOTP helper edge cases
  - bcrypt verification never raises
"""

from __future__ import annotations

import logging

import pyotp
import pytest
from pydantic import ValidationError

from auth.errors import AuthResult, ErrorCode, describe_error
from auth.provider import AuthPages
from auth.tokens import verify_password
from auth.totp import check_code, generate_secret, is_base32_secret
from core.config import Settings
from tests.helpers import PASSWORD, PASSWORD_HASH


class TestSettings:
    def test_debug_generates_secret_key(self) -> None:
        settings = Settings(_env_file=None, debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_production_requires_secret_key(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, debug=False, secret_key="")

    def test_short_secret_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, debug=True, secret_key="too-short")

    def test_bad_encryption_key_only_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="passgate.config"):
            settings = Settings(_env_file=None, debug=True, encryption_key="short")
        assert settings.encryption_key == "short"
        assert "exactly 32 characters" in caplog.text

    def test_missing_encryption_key_only_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="passgate.config"):
            Settings(_env_file=None, debug=True, encryption_key="")
        assert "ENCRYPTION_KEY is not set" in caplog.text


class TestErrors:
    def test_codes_are_stable(self) -> None:
        assert {c.value for c in ErrorCode} >= {
            "user-not-found",
            "missing-password",
            "incorrect-password",
            "second-factor-required",
            "incorrect-two-factor-code",
            "internal-server-error",
        }

    def test_every_code_has_a_message(self) -> None:
        for code in ErrorCode:
            assert describe_error(code) != describe_error(None)
            assert describe_error(code.value) == describe_error(code)

    def test_result_is_tagged(self) -> None:
        assert AuthResult.failure(ErrorCode.incorrect_password).ok is False
        assert AuthResult().ok is False

    def test_error_url(self) -> None:
        pages = AuthPages(error="/auth/error")
        assert pages.error_url(ErrorCode.second_factor_required) == "/auth/error?error=second-factor-required"


class TestTotpHelpers:
    def test_generated_secret_is_32_base32_chars(self) -> None:
        secret = generate_secret()
        assert len(secret) == 32
        pyotp.TOTP(secret).now()  # valid base32

    def test_base32_secret_detection(self) -> None:
        assert is_base32_secret(generate_secret())
        assert not is_base32_secret("1" * 32)

    def test_code_with_whitespace_accepted(self) -> None:
        secret = generate_secret()
        assert check_code(f" {pyotp.TOTP(secret).now()} ", secret) is True

    @pytest.mark.parametrize("code", ["", "12a456", "not-a-code"])
    def test_non_numeric_rejected(self, code: str) -> None:
        assert check_code(code, generate_secret()) is False


class TestPasswords:
    def test_matching_password(self) -> None:
        assert verify_password(PASSWORD, PASSWORD_HASH) is True

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password(PASSWORD, "not-a-bcrypt-hash") is False

    def test_over_long_password_is_a_mismatch(self) -> None:
        # bcrypt 5 raises on >72 bytes, bcrypt 4 truncates; neither may escape
        assert verify_password("x" * 100, PASSWORD_HASH) is False
