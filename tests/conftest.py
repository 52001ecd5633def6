"""Shared test fixtures for the virail client tests.

Fixtures build real components wired to an in-memory store; only the HTTP
layer is mocked, through pytest-httpx.
"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from virail.auth.credentials import USER_KEY, CredentialStore
from virail.auth.mode import AuthMode, SessionContext
from virail.auth.redirect import LoggingRedirector
from virail.auth.service import AuthService
from virail.auth.storage import MemoryStore
from virail.config.api import ApiSettings
from virail.config.auth import AuthSettings
from virail.config.settings import Settings
from virail.core.http import HTTPXTransport


BASE_URL = "http://api.virail.test"

ALICE = {"id": "alice", "email": "alice@example.com", "username": "alice"}


def stored_user(user: dict | None = None) -> str:
    """Serialized user record as it sits in the store."""
    return json.dumps(user or ALICE)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def context() -> SessionContext:
    """Fresh session context in cookies mode, not yet negotiated."""
    return SessionContext(AuthMode.COOKIES)


@pytest.fixture
def bearer_context() -> SessionContext:
    """Session context already downgraded to bearer mode."""
    ctx = SessionContext(AuthMode.COOKIES)
    ctx.downgrade_to_bearer()
    return ctx


@pytest.fixture
def credentials(memory_store: MemoryStore, context: SessionContext) -> CredentialStore:
    return CredentialStore(memory_store, context)


@pytest_asyncio.fixture
async def transport() -> AsyncGenerator[HTTPXTransport, None]:
    transport = HTTPXTransport()
    yield transport
    await transport.close()


@pytest.fixture
def redirector() -> LoggingRedirector:
    return LoggingRedirector()


def build_service(
    store: MemoryStore,
    context: SessionContext,
    transport: HTTPXTransport,
    redirector: LoggingRedirector,
) -> AuthService:
    return AuthService(
        BASE_URL,
        CredentialStore(store, context),
        transport,
        redirector=redirector,
    )


@pytest.fixture
def auth_service(
    memory_store: MemoryStore,
    context: SessionContext,
    transport: HTTPXTransport,
    redirector: LoggingRedirector,
) -> AuthService:
    """Service in cookies mode with an empty store."""
    return build_service(memory_store, context, transport, redirector)


@pytest.fixture
def bearer_service(
    memory_store: MemoryStore,
    bearer_context: SessionContext,
    transport: HTTPXTransport,
    redirector: LoggingRedirector,
) -> AuthService:
    """Service in bearer mode with a signed-in user and a token pair."""
    memory_store.set(USER_KEY, stored_user())
    memory_store.set("access_token", "old-access")
    memory_store.set("refresh_token", "old-refresh")
    return build_service(memory_store, bearer_context, transport, redirector)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Isolated settings pointing at the mocked API with in-memory storage."""
    return Settings(
        api=ApiSettings(base_url=BASE_URL, timeout=5.0),
        auth=AuthSettings(storage="memory", storage_path=tmp_path / "session.json"),
    )


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with no config file or virail env vars."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    for name in (
        "API__BASE_URL",
        "API__TIMEOUT",
        "AUTH__STORAGE",
        "AUTH__INITIAL_MODE",
        "LOGGING__LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
