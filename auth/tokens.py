"""
auth/tokens.py -- Password hashing, session JWT encoding, and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. The session token is the Token claim bag
       (sub, name, email, id, username, locale) plus iat/exp, signed with
       SECRET_KEY. Decoding returns None on any failure -- the caller treats
       that as "no session".

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force of low-entropy passwords expensive.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup
       [M6] [M7].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Token
from core.config import get_settings

logger = logging.getLogger("passgate.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE = "session_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads 72 bytes of input. bcrypt 4.x silently truncates longer
    passwords and 5.x raises ValueError, so callers must enforce the limit
    first (the CLI rejects anything over 72 bytes). verify_password() treats
    that ValueError as a mismatch.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def session_expiry(expire_seconds: int = 0) -> datetime:
    duration = expire_seconds if expire_seconds > 0 else _settings.session_max_age
    return datetime.now(timezone.utc) + timedelta(seconds=duration)


def encode_session_token(token: Token, expire_seconds: int = 0) -> str:
    """Sign the token claims with a fresh iat/exp.

    Every re-issue slides the expiry forward, so an active session never
    expires while an idle one lapses after session_max_age.
    """
    payload = token.to_claims()
    payload["iat"] = datetime.now(timezone.utc)
    payload["exp"] = session_expiry(expire_seconds)
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(raw: str) -> tuple[Token, datetime] | None:
    """Decode and verify a session JWT.

    Returns (token, expires_at) or None on any failure (bad signature,
    expired, malformed, or missing the id claim).
    """
    try:
        payload = jwt.decode(raw, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "id" not in payload or "exp" not in payload:
        return None
    expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    return Token.from_claims(payload), expires


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, raw: str, expire_seconds: int = 0) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_max_age
    response.set_cookie(
        SESSION_COOKIE,
        value=raw,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
