"""
api/routes/v1/auth.py -- Credentials sign-in, session and two-factor endpoints.

Routes:
  GET  /api/v1/auth/providers                -- credentials provider descriptor (public)
  POST /api/v1/auth/callback/credentials     -- sign in; sets session cookie
  GET  /api/v1/auth/session                  -- refreshed session view (requires session)
  POST /api/v1/auth/signout                  -- clears cookie
  GET  /api/v1/auth/error?error=<code>       -- message for the error page (public)
  POST /api/v1/auth/two-factor/totp/setup    -- start TOTP setup (requires session)
  POST /api/v1/auth/two-factor/totp/enable   -- confirm a code, enable TOTP (requires session)
  POST /api/v1/auth/two-factor/totp/disable  -- password + code, disable TOTP (requires session)

Security:
  [H2] POST /callback/credentials is rate-limited per IP (LOGIN_RATE_LIMIT).
  [M5] Cache-Control: no-store on every response that carries a token or a
       two-factor secret.
  Rejected sign-ins return the stable error code only. Integrity faults were
  already logged by the authorizer and reach the client as internal-server-error.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthErrorResponse,
    ErrorDetail,
    ErrorPageResponse,
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProviderField,
    ProviderInfo,
    SessionResponse,
    SignOutResponse,
    TwoFactorDisableRequest,
    TwoFactorEnableRequest,
    TwoFactorSetupRequest,
    TwoFactorSetupResponse,
)
from auth.dependencies import SessionContext, get_current_user, get_session_context
from auth.errors import ErrorCode, describe_error
from auth.models import Credentials, Token, User
from auth.provider import AuthConfig
from auth.tokens import clear_session_cookie, encode_session_token, set_session_cookie
from auth.two_factor import TwoFactorError
from core.config import get_settings

_settings = get_settings()

router = APIRouter()

_STATUS_FOR_CODE: dict[ErrorCode, int] = {
    ErrorCode.user_not_found: 401,
    ErrorCode.user_missing_password: 401,
    ErrorCode.incorrect_password: 401,
    ErrorCode.second_factor_required: 401,
    ErrorCode.incorrect_two_factor_code: 401,
    ErrorCode.internal_server_error: 500,
    ErrorCode.two_factor_disabled: 400,
    ErrorCode.two_factor_already_enabled: 400,
    ErrorCode.two_factor_setup_required: 400,
}


def _auth(request: Request) -> AuthConfig:
    return request.app.state.auth


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _two_factor_error(exc: TwoFactorError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_FOR_CODE[exc.code],
        detail={"code": exc.code.value, "message": describe_error(exc.code)},
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[ProviderInfo])
async def list_providers(request: Request) -> list[ProviderInfo]:
    """Describe the credentials provider so a sign-in page can render its form."""
    auth = _auth(request)
    return [
        ProviderInfo(
            id=auth.provider_id,
            name=auth.name,
            callback_url=f"/api/v1/auth/callback/{auth.provider_id}",
            signin_url=auth.pages.sign_in,
            fields=[ProviderField(**vars(f)) for f in auth.fields],
        )
    ]


@limiter.limit(_settings.login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/callback/credentials", response_model=LoginResponse)
async def sign_in(request: Request, body: LoginRequest) -> JSONResponse:
    """Authorize credentials, run the jwt() callback, and set the session cookie.

    A second-factor-required rejection is an expected step, not a failure:
    the client re-submits with totp_code filled in.
    """
    auth = _auth(request)
    result = await auth.authorize(Credentials(email=body.email, password=body.password, totp_code=body.totp_code))
    if not result.ok:
        code = result.error
        return _no_store(
            JSONResponse(
                status_code=_STATUS_FOR_CODE[code],
                content=AuthErrorResponse(
                    error=ErrorDetail(code=code.value, message=describe_error(code)),
                    url=auth.pages.error_url(code),
                ).model_dump(),
            )
        )

    identity = result.identity
    token = Token(sub=str(identity.id), name=identity.name, email=identity.email)
    token = await auth.jwt(token, identity)
    raw = encode_session_token(token)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user=IdentityResponse.from_identity(identity),
            access_token=raw,
            expires_in=_settings.session_max_age,
        ).model_dump(),
    )
    set_session_cookie(resp, raw)
    return _no_store(resp)


@router.post("/auth/signout", response_model=SignOutResponse)
async def sign_out(request: Request) -> JSONResponse:
    """Clear the session cookie. The JWT itself stays valid until it expires."""
    resp = JSONResponse(content=SignOutResponse(url=_auth(request).pages.sign_out).model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/error", response_model=ErrorPageResponse)
async def error_page(error: Optional[str] = None) -> ErrorPageResponse:
    """Translate an ?error= code into the message the error page shows."""
    return ErrorPageResponse(code=error, message=describe_error(error))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/auth/session", response_model=SessionResponse)
async def get_session(ctx: SessionContext = Depends(get_session_context)) -> JSONResponse:
    """Return the session view and re-issue the cookie with refreshed claims."""
    resp = JSONResponse(content=SessionResponse.from_session(ctx.session).model_dump())
    set_session_cookie(resp, encode_session_token(ctx.token))
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Two-factor management (authenticated)
# ---------------------------------------------------------------------------


@router.post("/auth/two-factor/totp/setup", response_model=TwoFactorSetupResponse)
async def totp_setup(
    request: Request,
    body: TwoFactorSetupRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Generate a TOTP secret. Two-factor stays disabled until /enable succeeds."""
    try:
        setup = await _auth(request).two_factor.setup(current_user, body.password)
    except TwoFactorError as exc:
        raise _two_factor_error(exc) from exc
    resp = JSONResponse(content=TwoFactorSetupResponse(secret=setup.secret, key_uri=setup.key_uri).model_dump())
    return _no_store(resp)


@router.post("/auth/two-factor/totp/enable", response_model=MessageResponse)
async def totp_enable(
    request: Request,
    body: TwoFactorEnableRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    try:
        await _auth(request).two_factor.enable(current_user, body.code)
    except TwoFactorError as exc:
        raise _two_factor_error(exc) from exc
    return MessageResponse(message="Two-factor authentication enabled.")


@router.post("/auth/two-factor/totp/disable", response_model=MessageResponse)
async def totp_disable(
    request: Request,
    body: TwoFactorDisableRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    try:
        await _auth(request).two_factor.disable(current_user, body.password, body.code)
    except TwoFactorError as exc:
        raise _two_factor_error(exc) from exc
    return MessageResponse(message="Two-factor authentication disabled.")
