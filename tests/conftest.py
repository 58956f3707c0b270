"""
tests/conftest.py -- Shared test fixtures for PassGate.

This module provides:
  - store: function-scoped isolated UserStore
  - api_client: (TestClient, UserStore) with a patched lifespan, one per module

Environment variables must be set before any auth/core import: get_settings()
is cached and auth.tokens reads it at module load. Factories live in
tests/helpers.py, which is only imported after this file has run.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ["ENCRYPTION_KEY"] = "0123456789abcdef0123456789abcdef"
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost"]'
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.provider import build_auth_config
from auth.store import UserStore
from tests.helpers import make_store


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store()
    yield s
    s.close()


def _patch_lifespan(user_store: UserStore):
    """Replace the real lifespan so routes see the isolated test store."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth = build_auth_config(user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    The TestClient keeps a cookie jar across requests; tests that depend on
    being signed out clear client.cookies first.
    """
    user_store = make_store()
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()
