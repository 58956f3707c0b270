"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. Session cookie ("session_token") -- set by the sign-in flow.
  2. Authorization: Bearer <token> header -- API clients.

Every successful read runs the jwt() callback, so identity fields in the
returned SessionContext reflect the current user record rather than whatever
was true at sign-in.

try_get_session() is the soft variant (returns None on failure).
get_session_context() wraps it and raises HTTP 401 if unauthenticated.
get_current_user() additionally loads the full user record.

Layer rule: no imports from api/. This module may import from fastapi because
it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from fastapi import HTTPException, Request
from starlette.concurrency import run_in_threadpool

from auth.models import Session, SessionUser, Token, User
from auth.provider import AuthConfig
from auth.tokens import SESSION_COOKIE, decode_session_token


@dataclass
class SessionContext:
    """A resolved request session: the refreshed token and its projection."""

    token: Token
    session: Session


def _raw_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def base_session(token: Token, expires: datetime | None) -> Session:
    """The session shape before the session() callback runs."""
    return Session(
        user=SessionUser(name=token.name, email=token.email),
        expires=expires.isoformat() if expires else None,
    )


async def try_get_session(request: Request) -> SessionContext | None:
    """Decode, refresh and project the request's session token.

    Returns None if there is no token or it fails verification. Never raises.
    """
    raw = _raw_token(request)
    if raw is None:
        return None
    decoded = decode_session_token(raw)
    if decoded is None:
        return None
    token, expires = decoded
    auth: AuthConfig = request.app.state.auth
    token = await auth.jwt(token)
    return SessionContext(token=token, session=auth.session(base_session(token, expires), token))


async def get_session_context(request: Request) -> SessionContext:
    """Require a session. Raises HTTP 401 if the request is not authenticated."""
    ctx = await try_get_session(request)
    if ctx is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return ctx


async def get_current_user(request: Request) -> User:
    """Require a session whose account still exists.

    Use as a FastAPI dependency:
        @router.post("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    ctx = await get_session_context(request)
    auth: AuthConfig = request.app.state.auth
    user = await run_in_threadpool(auth.store.get_by_id, ctx.token.id)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
