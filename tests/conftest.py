"""
tests/conftest.py -- Shared fixtures for listauth tests.

This module provides:
  - make_auth() / make_app_config(): the User list used across the suite,
    with a NON-unique email field so duplicate-identity cases can be seeded
  - seed_user(): inserts a user with a hashed password through a sudo context
  - FixedLatencySecret / mock_store(): counted, fixed-latency secret field
    double behind a mocked ListStore, for the timing-equalization tests
  - database: isolated in-memory Database per test
  - outbox: records every send_token() call made by the token-link mutations
  - client: TestClient over create_app() with the test Database injected

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from unittest.mock import MagicMock

# CRITICAL: Set env before any auth/core import; get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("AUTH_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.factory import Auth, create_auth
from auth.models import AuthConfig, InitFirstItemConfig, TokenLinkConfig
from core.context import Context
from core.fields import password, text
from core.models import AdminConfig, AppConfig, ListConfig
from core.store import Database, ListStore

# bcrypt's minimum work factor keeps the suite fast; the value is irrelevant
# to the behaviour under test.
TEST_ROUNDS = 4


def make_auth(**overrides) -> Auth:
    options = {"init_first_item": InitFirstItemConfig(fields=["name", "email", "password"])}
    options.update(overrides)
    return create_auth(AuthConfig(list_key="User", identity_field="email", secret_field="password", **options))


def make_app_config(auth: Auth) -> AppConfig:
    return auth.with_auth(
        AppConfig(
            lists={
                "User": ListConfig(
                    fields={
                        "name": text(is_required=True),
                        "email": text(),
                        "password": password(rounds=TEST_ROUNDS),
                    }
                )
            },
            admin=AdminConfig(),
        )
    )


def memory_db_url() -> str:
    return f"sqlite:///file:test_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def seed_user(store: ListStore, name: str, email: str, plain: str | None = None) -> dict:
    data = {"name": name, "email": email}
    if plain is not None:
        data["password"] = store.config.fields["password"].hash_sync(plain)
    return store.create_item(Context(lists={store.key: store}).sudo(), data)


class FixedLatencySecret:
    """Secret field double: both operations take the same fixed time and are counted."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.hashed: list[str] = []
        self.compared: list[tuple[str, str]] = []

    @property
    def operations(self) -> int:
        return len(self.hashed) + len(self.compared)

    async def generate_hash(self, plain: str) -> str:
        self.hashed.append(plain)
        await asyncio.sleep(self.delay)
        return f"hashed:{plain}"

    async def compare(self, plain: str, hashed: str) -> bool:
        self.compared.append((plain, hashed))
        await asyncio.sleep(self.delay)
        return hashed == f"hashed:{plain}"


def mock_store(secret: FixedLatencySecret, items: list[dict]) -> MagicMock:
    """A User ListStore stand-in whose password field is secret and whose find() returns items."""
    store = MagicMock()
    store.key = "User"
    store.label = "User"
    store.plural_label = "Users"
    store.config.fields = {"password": secret}
    store.find.return_value = items
    store.update_item.return_value = []
    return store


@pytest.fixture
def outbox() -> list[dict]:
    return []


@pytest.fixture
def auth(outbox: list[dict]) -> Auth:
    """Auth with recording delivery for both token types."""

    def send_token(**payload) -> None:
        outbox.append(payload)

    return make_auth(
        protect_identities=False,
        password_reset_link=TokenLinkConfig(send_token=send_token),
        magic_auth_link=TokenLinkConfig(send_token=send_token),
    )


@pytest.fixture
def app_config(auth: Auth) -> AppConfig:
    return make_app_config(auth)


@pytest.fixture
def database(app_config: AppConfig) -> Generator[Database, None, None]:
    db = Database(app_config, memory_db_url())
    yield db
    db.close()


@pytest.fixture
def users(database: Database) -> ListStore:
    return database.lists["User"]


@pytest.fixture
def client(app_config: AppConfig, database: Database) -> Generator[TestClient, None, None]:
    """TestClient over the real app with the test Database injected.

    follow_redirects=False so admin redirect tests can assert on Location.
    """
    app = create_app(app_config, database=database)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client
