"""
auth/errors.py -- Authentication error taxonomy and the authorize() result type.

Error codes are stable string identifiers. The HTTP layer surfaces them to
clients as the `code` field of the error envelope and as the `?error=` query
parameter of the error page, so the values must never change once shipped.

AuthResult is a tagged result: exactly one of identity / error is set.
Expected authentication failures are data, not exceptions -- callers branch
on result.ok instead of catching.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import UserIdentity


class ErrorCode(str, Enum):
    user_not_found = "user-not-found"
    user_missing_password = "missing-password"
    incorrect_password = "incorrect-password"
    second_factor_required = "second-factor-required"
    incorrect_two_factor_code = "incorrect-two-factor-code"
    internal_server_error = "internal-server-error"
    # Two-factor management only
    two_factor_disabled = "two-factor-disabled"
    two_factor_already_enabled = "two-factor-already-enabled"
    two_factor_setup_required = "two-factor-setup-required"


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.user_not_found: "No account exists for that email address.",
    ErrorCode.user_missing_password: "This account has no password. Sign in with the method you registered with.",
    ErrorCode.incorrect_password: "Incorrect password.",
    ErrorCode.second_factor_required: "Enter the code from your authenticator app.",
    ErrorCode.incorrect_two_factor_code: "Two-factor code is incorrect.",
    ErrorCode.internal_server_error: "Something went wrong. Please try again later.",
    ErrorCode.two_factor_disabled: "Two-factor authentication is not enabled.",
    ErrorCode.two_factor_already_enabled: "Two-factor authentication is already enabled.",
    ErrorCode.two_factor_setup_required: "Set up two-factor authentication before enabling it.",
}

_DEFAULT_MESSAGE = "Unable to sign in."


def describe_error(code: str | ErrorCode | None) -> str:
    """Return the user-facing message for an error code.

    Accepts raw strings because the error page reads the code from a query
    parameter. Unknown or missing codes get a generic message.
    """
    try:
        return _MESSAGES[ErrorCode(code)]
    except ValueError:
        return _DEFAULT_MESSAGE


@dataclass(frozen=True)
class AuthResult:
    identity: UserIdentity | None = None
    error: ErrorCode | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.identity is not None

    @classmethod
    def success(cls, identity: UserIdentity) -> AuthResult:
        return cls(identity=identity)

    @classmethod
    def failure(cls, code: ErrorCode) -> AuthResult:
        return cls(error=code)
