"""
auth/callbacks.py -- Session lifecycle callbacks: token enrichment and session projection.

enrich_token() runs on every token issue/refresh. Without it a username or
locale change would only reach the session after the user signs in again, so
when there is no fresh sign-in it re-reads the record by token.id. A fresh
sign-in always wins over the re-read.

A record that no longer exists leaves the token untouched. Deleted accounts
therefore keep their last-known identity fields until the token expires.

project_session() is pure: it never mutates its inputs.
"""

from __future__ import annotations

from dataclasses import replace

from starlette.concurrency import run_in_threadpool

from auth.models import Session, Token, UserIdentity
from auth.store import UserStore


async def enrich_token(store: UserStore, token: Token, user: UserIdentity | None = None) -> Token:
    if user is None and token.id is not None:
        current = await run_in_threadpool(store.get_by_id, token.id)
        if current is not None:
            token.id = current.id
            token.username = current.username
            token.locale = current.locale

    if user is not None:
        token.id = user.id
        token.username = user.username
        token.locale = user.locale
    return token


def project_session(session: Session, token: Token) -> Session:
    return replace(
        session,
        user=replace(session.user, id=token.id, username=token.username, locale=token.locale),
    )
