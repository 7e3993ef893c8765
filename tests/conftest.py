"""Pytest configuration and shared fixtures."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from common_lib.cache import AsyncCache
from common_lib.config import Settings
from snapshot_cache.app.repository import SnapshotRepository
from snapshot_cache.app.service import SnapshotCache
from src.core.data import Asset


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (get/set/ping only)."""

    def __init__(self) -> None:
        self.store: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.set_calls: List[str] = []

    async def get(self, key: str) -> Any:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ex
        self.set_calls.append(key)
        return True

    async def ping(self) -> bool:
        return True


class BrokenRedis:
    """Redis double whose every call fails with a connection error."""

    async def get(self, key: str) -> Any:
        raise RedisConnectionError("connection refused")

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        raise RedisConnectionError("connection refused")

    async def ping(self) -> bool:
        raise RedisConnectionError("connection refused")


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        redis_url="redis://localhost:6379/0",
        nvd_api_key="",
        cron_secret="",
        allow_external_calls=True,
        include_last_modified=False,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> AsyncCache:
    return AsyncCache(client=fake_redis, ttl_seconds=14400, io_timeout=1.0)


@pytest.fixture
def repository(cache: AsyncCache) -> SnapshotRepository:
    return SnapshotRepository(cache)


@pytest.fixture
def snapshots(repository: SnapshotRepository) -> SnapshotCache:
    return SnapshotCache(repository)


@pytest.fixture
def asset() -> Asset:
    return Asset(
        id="acme",
        name="Acme Router",
        vendor="Acme",
        cpe_vendor="acme",
        cpe_products=["router_os"],
        keywords=["acme", "acme router"],
    )


@pytest.fixture
def assets() -> List[Asset]:
    return [
        Asset(id=f"asset-{index}", name=f"Asset {index}", vendor=f"Vendor{index}", keywords=[f"vendor{index}"])
        for index in range(10)
    ]
