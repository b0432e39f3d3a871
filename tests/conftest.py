from typing import AsyncIterator, Callable
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from inkwell.config import Settings
from inkwell.database import create_engine, create_sessionmaker, init_db
from inkwell.main import create_app
from inkwell.sessions import InMemorySessionStore
from inkwell.storage import InMemoryStorage, SqlStorage, Storage
from inkwell.uploads import LocalFileStorage


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def sql_storage(tmp_path) -> AsyncIterator[SqlStorage]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'inkwell.db'}")
    await init_db(engine)
    yield SqlStorage(create_sessionmaker(engine))
    await engine.dispose()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def storage(request, tmp_path) -> AsyncIterator[Storage]:
    """Every persistence test runs against both backends."""
    if request.param == "memory":
        yield InMemoryStorage()
    else:
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'inkwell.db'}")
        await init_db(engine)
        yield SqlStorage(create_sessionmaker(engine))
        await engine.dispose()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        upload_dir=str(tmp_path / "uploads"),
        session_backend="memory",
        upload_backend="local",
        tracing_enabled=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store(settings, clock) -> InMemorySessionStore:
    return InMemorySessionStore(settings.session_ttl_seconds, clock=clock)


@pytest.fixture
def file_storage(settings) -> LocalFileStorage:
    return LocalFileStorage(
        settings.upload_dir,
        max_bytes=settings.upload_max_bytes,
        allowed_extensions=settings.upload_allowed_extensions,
        url_prefix=settings.upload_url_prefix,
    )


@pytest.fixture
def api_storage() -> Storage:
    return InMemoryStorage()


@pytest.fixture
def app(settings, api_storage, session_store, file_storage) -> FastAPI:
    return create_app(
        settings,
        storage=api_storage,
        session_store=session_store,
        file_storage=file_storage,
    )


@pytest_asyncio.fixture
async def client_factory(app) -> AsyncIterator[Callable[[], AsyncClient]]:
    """Independent clients (one cookie jar each) against the same app."""
    clients: list[AsyncClient] = []

    def make() -> AsyncClient:
        c = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(c)
        return c

    yield make
    for c in clients:
        await c.aclose()


@pytest_asyncio.fixture
async def client(client_factory) -> AsyncClient:
    return client_factory()


def make_user_payload(prefix: str) -> dict[str, str]:
    suffix = uuid4().hex[:8]
    return {
        "email": f"{prefix}_{suffix}@mail.com",
        "password": "Sup3rSecret!",
        "username": f"{prefix}_{suffix}",
    }


async def register(client: AsyncClient, prefix: str = "user") -> dict:
    response = await client.post("/auth/register", json=make_user_payload(prefix))
    assert response.status_code == 201, response.text
    return response.json()


def post_payload(**overrides) -> dict:
    payload = {
        "title": "Hello World",
        "subtitle": "A first post",
        "content": "Some words about nothing in particular.",
        "published": True,
    }
    payload.update(overrides)
    return payload
