"""
API request and response models for PassGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Session, UserIdentity

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class AuthErrorResponse(ErrorResponse):
    """Rejected sign-in. `url` is the error page with ?error=<code>."""

    url: str


class ErrorPageResponse(BaseModel):
    """Response for GET /api/v1/auth/error."""

    model_config = ConfigDict(frozen=True)

    code: Optional[str]
    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/callback/credentials.

    Whitespace is not stripped: passwords may legitimately contain it, and
    email lookup is an exact match.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    totp_code: Optional[str] = Field(default=None, max_length=16)


class IdentityResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: Optional[str]
    email: str
    name: Optional[str]
    locale: Optional[str]

    @classmethod
    def from_identity(cls, identity: UserIdentity) -> "IdentityResponse":
        return cls(**identity.as_dict())


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: IdentityResponse
    access_token: str
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password
    expires_in: int


class SessionUserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    id: Optional[int] = None
    username: Optional[str] = None
    locale: Optional[str] = None


class SessionResponse(BaseModel):
    """Response for GET /api/v1/auth/session."""

    model_config = ConfigDict(frozen=True)

    user: SessionUserResponse
    expires: Optional[str]

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(**session.as_dict())


class SignOutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Signed out."
    url: str


# ---------------------------------------------------------------------------
# Provider discovery
# ---------------------------------------------------------------------------


class ProviderField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    type: str
    placeholder: str


class ProviderInfo(BaseModel):
    """Response for GET /api/v1/auth/providers (one entry per provider)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = "credentials"
    callback_url: str
    signin_url: str
    fields: list[ProviderField]


# ---------------------------------------------------------------------------
# Two-factor management
# ---------------------------------------------------------------------------


class TwoFactorSetupRequest(BaseModel):
    password: str = Field(min_length=1, max_length=255)


class TwoFactorEnableRequest(BaseModel):
    code: str = Field(min_length=1, max_length=16)


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=16)


class TwoFactorSetupResponse(BaseModel):
    """Returned once. The secret is never readable again in plaintext."""

    model_config = ConfigDict(frozen=True)

    secret: str
    key_uri: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
