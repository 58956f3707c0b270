"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store, the authorizer and the routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class User:
    """A persisted account record.

    hashed_password is None for accounts that never set a local password
    (e.g. created by an import or a social login elsewhere) -- they cannot use
    the credentials provider.

    two_factor_secret holds the *encrypted* base32 TOTP secret
    ("<iv hex>:<base64>"). It is written by the setup flow while
    two_factor_enabled is still False, and only becomes authoritative once the
    enable flow flips the flag.
    """

    email: str
    username: str | None = None
    name: str | None = None
    locale: str | None = None
    id: int | None = None
    hashed_password: str | None = None  # None = no local password
    two_factor_enabled: bool = False
    two_factor_secret: str | None = None  # encrypted, never plaintext
    created_at: str | None = None


@dataclass(frozen=True)
class Credentials:
    """One login attempt. Ephemeral -- never persisted or logged."""

    email: str
    password: str
    totp_code: str | None = None


@dataclass(frozen=True)
class UserIdentity:
    """The public identity returned by a successful authorization.

    Exactly five fields. Nothing from the credential side of the record
    (hash, two-factor flags, secret) ever leaves the authorizer.
    """

    id: int
    username: str | None
    email: str
    name: str | None
    locale: str | None

    @classmethod
    def from_user(cls, user: User) -> UserIdentity:
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            locale=user.locale,
        )

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class Token:
    """Mutable claim bag carried across the session lifetime.

    sub/name/email are the base claims set once at sign-in. id/username/locale
    are owned by the token enricher and refreshed on every session read.
    """

    sub: str | None = None
    name: str | None = None
    email: str | None = None
    id: int | None = None
    username: str | None = None
    locale: str | None = None

    def to_claims(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_claims(cls, claims: dict) -> Token:
        return cls(
            sub=claims.get("sub"),
            name=claims.get("name"),
            email=claims.get("email"),
            id=claims.get("id"),
            username=claims.get("username"),
            locale=claims.get("locale"),
        )


@dataclass(frozen=True)
class SessionUser:
    name: str | None = None
    email: str | None = None
    image: str | None = None
    id: int | None = None
    username: str | None = None
    locale: str | None = None


@dataclass(frozen=True)
class Session:
    """Read-only session view handed to clients."""

    user: SessionUser = field(default_factory=SessionUser)
    expires: str | None = None  # ISO 8601

    def as_dict(self) -> dict:
        return asdict(self)
