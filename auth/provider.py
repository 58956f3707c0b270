"""
auth/provider.py -- The credentials provider configuration object.

AuthConfig bundles everything the HTTP layer needs to run a sign-in:
  - the credentials provider (id, display name, form field descriptors)
  - the authorize() hook
  - the jwt() and session() lifecycle callbacks
  - the page addresses (sign-in, sign-out, error)
  - the session strategy (always "jwt": no server-side session table)

Routes call auth.authorize / auth.jwt / auth.session and never reach into the
authorizer or the callbacks directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlencode

from auth.callbacks import enrich_token, project_session
from auth.credentials import CredentialAuthorizer
from auth.errors import AuthResult, ErrorCode
from auth.models import Credentials, Session, Token, UserIdentity
from auth.store import UserStore
from auth.two_factor import TwoFactorManager
from core.config import Settings, get_settings


@dataclass(frozen=True)
class CredentialField:
    name: str
    label: str
    type: str
    placeholder: str


CREDENTIAL_FIELDS: tuple[CredentialField, ...] = (
    CredentialField("email", "Email Address", "email", "john.doe@example.com"),
    CredentialField("password", "Password", "password", "Your super secure password"),
    CredentialField("totp_code", "Two-factor Code", "input", "Code from authenticator app"),
)


@dataclass(frozen=True)
class AuthPages:
    sign_in: str = "/auth/login"
    sign_out: str = "/auth/logout"
    error: str = "/auth/error"

    def error_url(self, code: ErrorCode) -> str:
        """Error page address with the code in the query string (?error=...)."""
        return f"{self.error}?{urlencode({'error': code.value})}"


@dataclass
class AuthConfig:
    store: UserStore
    authorizer: CredentialAuthorizer
    two_factor: TwoFactorManager
    name: str = "PassGate"
    provider_id: str = "credentials"
    session_strategy: str = "jwt"
    fields: tuple[CredentialField, ...] = CREDENTIAL_FIELDS
    pages: AuthPages = field(default_factory=AuthPages)

    async def authorize(self, credentials: Credentials) -> AuthResult:
        return await self.authorizer.authorize(credentials)

    async def jwt(self, token: Token, user: UserIdentity | None = None) -> Token:
        return await enrich_token(self.store, token, user)

    def session(self, session: Session, token: Token) -> Session:
        return project_session(session, token)


def build_auth_config(store: UserStore, settings: Settings | None = None) -> AuthConfig:
    """Wire an AuthConfig from Settings.

    The encryption key is read here, once, and handed to the authorizer and
    the two-factor manager explicitly.
    """
    settings = settings or get_settings()
    key = settings.encryption_key or None
    return AuthConfig(
        store=store,
        authorizer=CredentialAuthorizer(store, key, totp_valid_window=settings.totp_valid_window),
        two_factor=TwoFactorManager(
            store,
            key,
            issuer=settings.totp_issuer,
            totp_valid_window=settings.totp_valid_window,
        ),
        name=settings.provider_name,
        pages=AuthPages(
            sign_in=settings.sign_in_page,
            sign_out=settings.sign_out_page,
            error=settings.error_page,
        ),
    )
