"""Redis 캐시 저장소(Redis-backed cache store)."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Optional, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from redis.asyncio import Redis
else:
    Redis = Any

from src.core.errors import CacheUnavailableError

from .config import get_settings
from .logger import get_logger

logger = get_logger(__name__)
_redis_pool: Optional[Redis] = None
_lock = asyncio.Lock()


async def get_redis() -> Redis:
    """Redis 연결 풀 반환(Return redis connection pool)."""

    global _redis_pool
    if _redis_pool is None:
        async with _lock:
            if _redis_pool is None:
                settings = get_settings()
                logger.info("Connecting to Redis")
                _redis_pool = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
    return cast(Redis, _redis_pool)


async def close_redis() -> None:
    """Redis 연결 종료(Close redis connection)."""

    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


class AsyncCache:
    """Redis 기반 비동기 JSON 저장소(Async redis-backed JSON key/value store).

    Every failure (connection, timeout, server error) surfaces as
    ``CacheUnavailableError``; callers must not continue with a partial view
    of the store.
    """

    def __init__(
        self,
        client: Optional[Redis] = None,
        namespace: str = "",
        ttl_seconds: Optional[int] = None,
        io_timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        resolved_ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        if resolved_ttl is not None and resolved_ttl <= 0:
            logger.warning("Invalid cache_ttl_seconds value: %s", resolved_ttl)
            resolved_ttl = None
        resolved_timeout = io_timeout if io_timeout is not None else settings.cache_io_timeout_seconds

        self._client = client
        self._ttl_seconds = resolved_ttl
        self._namespace = namespace
        self._io_timeout = resolved_timeout if resolved_timeout > 0 else None

    @property
    def ttl_seconds(self) -> Optional[int]:
        return self._ttl_seconds

    @staticmethod
    def _serialize(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    def _build_key(self, key: str) -> str:
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def _client_or_pool(self, operation: str, key: str) -> Redis:
        if self._client is not None:
            return self._client
        try:
            self._client = await get_redis()
        except (RedisError, OSError) as exc:
            raise CacheUnavailableError(operation, key, str(exc)) from exc
        return self._client

    async def _run(self, operation: str, key: str, call: Awaitable[Any]) -> Any:
        try:
            if self._io_timeout is not None:
                return await asyncio.wait_for(call, timeout=self._io_timeout)
            return await call
        except asyncio.TimeoutError as exc:
            logger.warning("Redis timeout during %s for %s", operation, key)
            raise CacheUnavailableError(operation, key, "timeout") from exc
        except (RedisError, OSError) as exc:
            logger.warning("Redis error during %s for %s", operation, key)
            logger.debug("Redis %s failure details", operation, exc_info=exc)
            raise CacheUnavailableError(operation, key, str(exc)) from exc

    async def get(self, key: str) -> Any:
        """캐시 값 조회(Get a decoded JSON value, or None when absent or corrupt)."""

        client = await self._client_or_pool("get", key)
        payload = await self._run("get", key, client.get(self._build_key(key)))
        if payload is None:
            return None

        try:
            return json.loads(payload)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Failed to decode cache payload for %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, persist: bool = False) -> None:
        """캐시에 값 저장(Store a JSON value; ``persist=True`` skips the TTL)."""

        client = await self._client_or_pool("set", key)
        try:
            payload = json.dumps(value, default=self._serialize)
        except (TypeError, ValueError) as exc:
            raise CacheUnavailableError("set", key, f"unserializable payload: {exc}") from exc

        ttl_seconds = None if persist else (ttl if ttl is not None else self._ttl_seconds)
        if ttl_seconds is not None and ttl_seconds <= 0:
            ttl_seconds = None
        await self._run("set", key, client.set(self._build_key(key), payload, ex=ttl_seconds))

    async def ping(self) -> bool:
        """연결 확인(Check the store responds)."""

        client = await self._client_or_pool("ping", "-")
        return bool(await self._run("ping", "-", client.ping()))
