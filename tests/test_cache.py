"""Tests for the Redis-backed JSON store wrapper."""

import asyncio
import json

import pytest

from common_lib.cache import AsyncCache
from src.core.errors import CacheUnavailableError
from tests.conftest import BrokenRedis, FakeRedis


class SlowRedis(FakeRedis):
    async def get(self, key):
        await asyncio.sleep(1)
        return None


class TestAsyncCache:
    @pytest.mark.asyncio
    async def test_round_trips_json_with_default_ttl(self, cache, fake_redis):
        await cache.set("k", {"a": [1, 2]})

        assert await cache.get("k") == {"a": [1, 2]}
        assert fake_redis.ttls["k"] == 14400

    @pytest.mark.asyncio
    async def test_explicit_ttl_and_persist(self, cache, fake_redis):
        await cache.set("short", 1, ttl=60)
        await cache.set("forever", 2, persist=True)

        assert fake_redis.ttls["short"] == 60
        assert fake_redis.ttls["forever"] is None

    @pytest.mark.asyncio
    async def test_missing_and_corrupt_values_read_as_none(self, cache, fake_redis):
        fake_redis.store["corrupt"] = "{not json"
        assert await cache.get("missing") is None
        assert await cache.get("corrupt") is None

    @pytest.mark.asyncio
    async def test_namespace_prefixes_keys(self, fake_redis):
        namespaced = AsyncCache(client=fake_redis, namespace="test", ttl_seconds=10, io_timeout=1.0)
        await namespaced.set("k", "v")
        assert json.loads(fake_redis.store["test:k"]) == "v"

    @pytest.mark.asyncio
    async def test_connection_errors_become_cache_unavailable(self):
        broken = AsyncCache(client=BrokenRedis(), ttl_seconds=10, io_timeout=1.0)
        with pytest.raises(CacheUnavailableError) as exc_info:
            await broken.get("k")
        assert exc_info.value.operation == "get"
        with pytest.raises(CacheUnavailableError):
            await broken.set("k", 1)

    @pytest.mark.asyncio
    async def test_timeout_becomes_cache_unavailable(self):
        slow = AsyncCache(client=SlowRedis(), ttl_seconds=10, io_timeout=0.01)
        with pytest.raises(CacheUnavailableError) as exc_info:
            await slow.get("k")
        assert exc_info.value.reason == "timeout"

    @pytest.mark.asyncio
    async def test_ping(self, cache):
        assert await cache.ping() is True
