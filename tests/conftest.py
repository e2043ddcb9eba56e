"""Shared test fixtures and factories."""

import asyncio
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from hmytodo.app import Backend
from hmytodo.auth import AuthProvider, PasswordHasher, Role, User
from hmytodo.config.models import HmyTodoConfig, StoreConfig
from hmytodo.config.paths import get_hmytodo_home
from hmytodo.errors import StoreError
from hmytodo.notifications import Notification, Notifier
from hmytodo.store import InMemoryDocumentStore, SqliteDocumentStore
from hmytodo.store.types import Record
from hmytodo.todos.types import Todo, TodoStatus

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

# Few iterations keep password hashing fast in tests.
FAST_HASHER = PasswordHasher(iterations=1_000)

# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def eventually(
    predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005
) -> None:
    """Yield to the event loop until predicate() holds or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


# =============================================================================
# Store Fixtures
# =============================================================================


class FlakyStore:
    """Wraps a store and fails writes while ``failing`` is set."""

    def __init__(self, inner: InMemoryDocumentStore):
        self.inner = inner
        self.failing = False

    def _check(self) -> None:
        if self.failing:
            raise StoreError("store unavailable")

    async def create(self, collection: str, record: Record) -> str:
        self._check()
        return await self.inner.create(collection, record)

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Record,
        expect: Record | None = None,
    ) -> None:
        self._check()
        await self.inner.update(collection, doc_id, partial, expect=expect)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check()
        await self.inner.delete(collection, doc_id)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)


@pytest.fixture
async def store() -> AsyncGenerator[InMemoryDocumentStore, None]:
    store = InMemoryDocumentStore()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite"])
async def any_store(request: pytest.FixtureRequest, tmp_path: Path):
    """Each backend in turn."""
    if request.param == "memory":
        store = InMemoryDocumentStore()
    else:
        store = SqliteDocumentStore(database_path=tmp_path / "store.db")
        await store.connect()
    yield store
    await store.close()


@pytest.fixture
def flaky_store(store: InMemoryDocumentStore) -> FlakyStore:
    return FlakyStore(store)


# =============================================================================
# Auth Fixtures
# =============================================================================


@pytest.fixture
def auth(store: InMemoryDocumentStore, clock: FakeClock) -> AuthProvider:
    return AuthProvider(store, hasher=FAST_HASHER, clock=clock)


@pytest.fixture
async def admin(auth: AuthProvider) -> User:
    """First registered user; owns the first-admin claim."""
    user = await auth.sign_up("alice@gmail.com", "secret-pass", "Alice")
    assert user.role == Role.ADMIN
    return user


@pytest.fixture
async def member(auth: AuthProvider, admin: User) -> User:
    """Second registered user with the ordinary role."""
    return await auth.sign_up("bob@gmail.com", "secret-pass", "Bob")


def make_user(
    id: str = "u1",
    email: str = "u1@gmail.com",
    display_name: str = "",
    role: Role = Role.USER,
) -> User:
    """Factory for users that skip registration."""
    return User(id=id, email=email, display_name=display_name, role=role)


def make_todo(
    id: str = "t1",
    title: str = "Buy milk",
    owner: str = "u1",
    created_at: datetime = T0,
    status: TodoStatus = TodoStatus.ACTIVE,
) -> Todo:
    """Factory for todos with the standard 24h deadline."""
    return Todo(
        id=id,
        title=title,
        owner=owner,
        created_at=created_at,
        deadline=created_at + timedelta(hours=24),
        status=status,
    )


# =============================================================================
# Notifications
# =============================================================================


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def notifications(notifier: Notifier) -> list[Notification]:
    """Every notification emitted through the notifier fixture."""
    received: list[Notification] = []
    notifier.subscribe(received.append)
    return received


# =============================================================================
# Backend
# =============================================================================


@pytest.fixture
def memory_config() -> HmyTodoConfig:
    return HmyTodoConfig(store=StoreConfig(backend="memory"))


@pytest.fixture
async def backend(
    memory_config: HmyTodoConfig, store: InMemoryDocumentStore, clock: FakeClock
) -> Backend:
    return Backend(
        config=memory_config,
        store=store,
        auth=AuthProvider(
            store, config=memory_config.auth, hasher=FAST_HASHER, clock=clock
        ),
    )


# =============================================================================
# CLI Test Helpers
# =============================================================================


@pytest.fixture
def hmytodo_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point HMYTODO_HOME at a temporary directory."""
    home = tmp_path / "hmytodo-home"
    monkeypatch.setenv("HMYTODO_HOME", str(home))
    monkeypatch.delenv("HMYTODO_OAUTH_CLIENT_ID", raising=False)
    monkeypatch.chdir(tmp_path)
    get_hmytodo_home.cache_clear()
    yield home
    get_hmytodo_home.cache_clear()


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
