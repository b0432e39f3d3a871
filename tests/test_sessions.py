import pytest

from inkwell.clients.redis_client import RedisSessionStore
from inkwell.config import Settings
from inkwell.sessions import InMemorySessionStore, init_session_store

from tests.conftest import FakeClock

DAY = 24 * 60 * 60


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the session store."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def set(self, key, value, ex=None):
        self.values[key] = value
        self.ttls[key] = ex

    async def getex(self, key, ex=None):
        if key not in self.values:
            return None
        self.ttls[key] = ex
        return self.values[key]

    async def delete(self, key):
        self.values.pop(key, None)
        self.ttls.pop(key, None)

    async def aclose(self):
        self.closed = True


async def test_session_resolves_to_user():
    store = InMemorySessionStore(DAY, clock=FakeClock())
    token = await store.create(7)

    assert len(token) >= 32
    assert await store.resolve(token) == 7
    assert await store.resolve("not-a-token") is None


async def test_session_expires_after_a_day_of_inactivity():
    clock = FakeClock()
    store = InMemorySessionStore(DAY, clock=clock)
    token = await store.create(7)

    clock.advance(DAY + 1)

    assert await store.resolve(token) is None


async def test_each_resolve_slides_the_expiry():
    clock = FakeClock()
    store = InMemorySessionStore(DAY, clock=clock)
    token = await store.create(7)

    for _ in range(3):
        clock.advance(DAY - 60)
        assert await store.resolve(token) == 7


async def test_revoked_session_no_longer_resolves():
    store = InMemorySessionStore(DAY, clock=FakeClock())
    token = await store.create(7)

    await store.revoke(token)
    await store.revoke(token)

    assert await store.resolve(token) is None


async def test_tokens_are_unique_per_session():
    store = InMemorySessionStore(DAY, clock=FakeClock())

    assert await store.create(1) != await store.create(1)


async def test_redis_store_sets_and_renews_ttl():
    redis = FakeRedis()
    store = RedisSessionStore(redis, DAY)

    token = await store.create(42)
    key = f"sess:{token}"
    assert redis.values[key] == "42"
    assert redis.ttls[key] == DAY

    redis.ttls[key] = 5
    assert await store.resolve(token) == 42
    assert redis.ttls[key] == DAY

    await store.revoke(token)
    assert await store.resolve(token) is None

    await store.close()
    assert redis.closed


async def test_memory_backend_from_settings():
    store = await init_session_store(Settings(_env_file=None, session_backend="memory"))

    assert isinstance(store, InMemorySessionStore)
    assert store.ttl_seconds == DAY


async def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        await init_session_store(Settings(_env_file=None, session_backend="cookie"))
