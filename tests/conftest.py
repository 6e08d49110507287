"""
tests/conftest.py -- Shared test fixtures for the portal test suite.

This module provides:
  - FakeMailer: records rendered mail instead of talking to SMTP
  - account_store / forum_store: isolated in-memory stores for unit tests
  - client: TestClient over the real app with a patched lifespan that wires
    fresh stores, a FakeMailer, and a tmp_path avatar directory into app.state
  - signed_up: helper fixture that registers an account through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any auth/core import so get_settings() generates the
signing keys instead of raising. Rate limiting is switched off so the suite
can sign in as often as it likes.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.avatars import AvatarStorage
from auth.store import AccountStore
from core.config import get_settings
from forum.store import ForumStore
from mailer.sender import Mailer


class FakeMailer(Mailer):
    """Mailer that renders templates for real but keeps messages in memory."""

    def __init__(self) -> None:
        super().__init__(get_settings())
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, template: str, context: dict) -> None:
        body = self.render(template, context)
        if self.fail:
            raise OSError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "body": body, "context": context})


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore(_memory_url("accounts"))
    yield store
    store.close()


@pytest.fixture
def forum_store() -> Generator[ForumStore, None, None]:
    store = ForumStore(_memory_url("forum"))
    yield store
    store.close()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(account_store: AccountStore, forum: ForumStore, avatars: AvatarStorage, mailer: FakeMailer):
    """Return a lifespan that installs the given test doubles on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        app.state.forum = forum
        app.state.avatars = avatars
        app.state.mailer = mailer
        yield

    return test_lifespan


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def client(account_store, forum_store, mailer, tmp_path) -> Generator[TestClient, None, None]:
    """TestClient over the real app with isolated stores per test."""
    avatars = AvatarStorage(tmp_path / "uploads", max_bytes=1024)
    app.router.lifespan_context = _patch_lifespan(account_store, forum_store, avatars, mailer)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def signed_up(client: TestClient) -> dict:
    """Register name="knight" through the API and return the response body."""
    resp = client.post(
        "/account/sign-up",
        json={"name": "knight", "password": "s3cret", "email": "knight@example.com"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()
