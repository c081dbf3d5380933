"""Tests for the key/value stores and the refresh-token registry."""

import json
from datetime import timedelta

import pytest

from readiness_auth.adapters.outbound.cache.memory_store import InMemoryKeyValueStore
from readiness_auth.adapters.outbound.cache.redis_store import RedisKeyValueStore
from readiness_auth.adapters.outbound.security.token_registry import KEY_PREFIX, TokenRegistry
from readiness_auth.domain.models.user_domain_model import RegistryEntry, utcnow


def make_entry(user_id="user-1", session_id="session-1", lifetime=timedelta(days=7)):
    now = utcnow()
    return RegistryEntry(
        user_id=user_id,
        role="client",
        session_id=session_id,
        expires_at=now + lifetime,
        created_at=now,
        last_used=now,
        user_agent="pytest",
        ip_address="127.0.0.1",
    )


@pytest.fixture
def clocked_store(clock):
    return InMemoryKeyValueStore(clock=clock)


class TestInMemoryKeyValueStore:
    async def test_set_get_delete(self, clocked_store):
        assert await clocked_store.set("a", "1")
        assert await clocked_store.get("a") == "1"
        assert await clocked_store.delete("a") == 1
        assert await clocked_store.delete("a") == 0
        assert await clocked_store.get("a") is None

    async def test_values_expire(self, clocked_store, clock):
        await clocked_store.set("a", "1", ttl_seconds=10)

        clock.advance(9)
        assert await clocked_store.get("a") == "1"

        clock.advance(1)
        assert await clocked_store.get("a") is None

    async def test_only_if_exists(self, clocked_store):
        assert not await clocked_store.set("missing", "1", only_if_exists=True)
        assert await clocked_store.get("missing") is None

        await clocked_store.set("present", "1")
        assert await clocked_store.set("present", "2", only_if_exists=True)
        assert await clocked_store.get("present") == "2"

    async def test_keys_matches_glob_and_skips_expired(self, clocked_store, clock):
        await clocked_store.set("token:1", "a", ttl_seconds=5)
        await clocked_store.set("token:2", "b", ttl_seconds=50)
        await clocked_store.set("other:3", "c")

        clock.advance(10)

        assert await clocked_store.keys("token:*") == ["token:2"]

    async def test_expire(self, clocked_store, clock):
        await clocked_store.set("a", "1")
        assert await clocked_store.expire("a", 5)
        assert not await clocked_store.expire("missing", 5)

        clock.advance(6)
        assert await clocked_store.get("a") is None

    async def test_get_and_delete(self, clocked_store):
        await clocked_store.set("a", "1")

        assert await clocked_store.get_and_delete("a") == "1"
        assert await clocked_store.get_and_delete("a") is None


class FakeRedisClient:
    """Records the redis.asyncio calls made by RedisKeyValueStore."""

    def __init__(self):
        self.calls = []
        self.closed = False

    async def set(self, key, value, ex=None, xx=False):
        self.calls.append(("set", key, value, ex, xx))
        return None if xx else True

    async def getdel(self, key):
        self.calls.append(("getdel", key))
        return "value"

    async def scan_iter(self, match=None, count=None):
        self.calls.append(("scan_iter", match, count))
        for key in ("token:a", "token:b"):
            yield key

    async def aclose(self):
        self.closed = True


class TestRedisKeyValueStore:
    async def test_set_maps_ttl_and_only_if_exists(self):
        client = FakeRedisClient()
        store = RedisKeyValueStore("redis://unused", client=client)

        assert await store.set("k", "v", ttl_seconds=30)
        assert not await store.set("k", "v", ttl_seconds=30, only_if_exists=True)

        assert client.calls == [("set", "k", "v", 30, False), ("set", "k", "v", 30, True)]

    async def test_keys_uses_scan(self):
        client = FakeRedisClient()
        store = RedisKeyValueStore("redis://unused", client=client)

        assert await store.keys("token:*") == ["token:a", "token:b"]
        assert client.calls == [("scan_iter", "token:*", 500)]

    async def test_get_and_delete_and_close(self):
        client = FakeRedisClient()
        store = RedisKeyValueStore("redis://unused", client=client)

        assert await store.get_and_delete("k") == "value"
        await store.close()
        assert client.closed


class TestTokenRegistry:
    async def test_save_and_get(self, registry, kv_store):
        entry = make_entry()
        await registry.save("abc", entry, 3600)

        assert await kv_store.get(f"{KEY_PREFIX}abc") is not None
        loaded = await registry.get("abc")
        assert loaded == entry

    async def test_corrupt_entry_is_discarded(self, registry, kv_store):
        await kv_store.set(f"{KEY_PREFIX}bad", "not json")
        await kv_store.set(f"{KEY_PREFIX}partial", json.dumps({"user_id": "x"}))

        assert await registry.get("bad") is None
        assert await registry.get("partial") is None
        assert await kv_store.get(f"{KEY_PREFIX}bad") is None
        assert await kv_store.get(f"{KEY_PREFIX}partial") is None

    async def test_take_is_single_use(self, registry):
        await registry.save("abc", make_entry(), 3600)

        assert await registry.take("abc") is not None
        assert await registry.take("abc") is None
        assert await registry.get("abc") is None

    async def test_touch_does_not_resurrect_deleted_entry(self, registry):
        entry = make_entry()
        await registry.save("abc", entry, 3600)
        await registry.delete("abc")

        await registry.touch("abc", entry)

        assert await registry.get("abc") is None

    async def test_touch_updates_existing_entry(self, registry):
        entry = make_entry()
        await registry.save("abc", entry, 3600)

        entry.last_used = entry.last_used + timedelta(minutes=5)
        await registry.touch("abc", entry)

        assert (await registry.get("abc")).last_used == entry.last_used

    async def test_touch_removes_expired_entry(self, registry):
        entry = make_entry(lifetime=timedelta(seconds=-1))
        await registry.save("abc", entry, 3600)

        await registry.touch("abc", entry)

        assert await registry.get("abc") is None

    async def test_scan_returns_every_entry(self, registry):
        await registry.save("one", make_entry(user_id="u1"), 3600)
        await registry.save("two", make_entry(user_id="u2"), 3600)

        found = dict(await registry.scan())

        assert set(found) == {"one", "two"}
        assert found["two"].user_id == "u2"

