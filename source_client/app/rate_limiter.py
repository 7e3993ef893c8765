"""NVD 요청 속도 제한기(Rate limiter for NVD requests)."""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger

from .models import RateLimiterState

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """요청 간 최소 간격과 지수 백오프를 관리(Spacing plus exponential backoff between requests).

    ``current_delay()`` is the base delay while healthy and
    ``min(base * 2**errors, max_delay)`` after consecutive failures.
    The wall clock is used (not ``time.monotonic``) because the state is
    persisted and restored by a different process.
    """

    def __init__(
        self,
        base_delay: float,
        max_delay: float = 60.0,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep
        self.last_request_at = 0.0
        self.consecutive_errors = 0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "RateLimiter":
        """API 키 유무에 따라 기본 간격 결정(Pick the base delay from API key presence)."""

        settings = settings or get_settings()
        base = (
            settings.nvd_delay_with_key_seconds
            if settings.has_nvd_api_key
            else settings.nvd_delay_without_key_seconds
        )
        return cls(base_delay=base, max_delay=settings.nvd_max_delay_seconds, **kwargs)

    def current_delay(self) -> float:
        if self.consecutive_errors > 0:
            return min(self.base_delay * (2 ** self.consecutive_errors), self.max_delay)
        return self.base_delay

    async def acquire(self) -> None:
        """다음 요청 가능 시점까지 대기(Wait until the next request may go out, then stamp it)."""

        required = self.current_delay()
        elapsed = self._clock() - self.last_request_at
        if elapsed < required:
            wait_for = required - elapsed
            logger.debug("Rate limiting: waiting %.2fs", wait_for)
            await self._sleep(wait_for)
        self.mark()

    def mark(self) -> None:
        """요청 시각 기록(Stamp the time a request went out)."""

        self.last_request_at = self._clock()

    async def backoff(self) -> float:
        """재계산된 지연만큼 대기(Sleep for the recomputed delay and return it)."""

        delay = self.current_delay()
        logger.info("Backing off %.2fs after %d consecutive errors", delay, self.consecutive_errors)
        await self._sleep(delay)
        return delay

    def record_success(self) -> None:
        if self.consecutive_errors:
            logger.info("NVD request succeeded; resetting error counter")
        self.consecutive_errors = 0

    def record_error(self) -> None:
        self.consecutive_errors += 1
        logger.warning("NVD request failed; consecutive errors: %d", self.consecutive_errors)

    def state(self) -> RateLimiterState:
        return RateLimiterState(
            last_request_at=self.last_request_at,
            consecutive_errors=self.consecutive_errors,
        )

    def restore(self, state: RateLimiterState) -> None:
        self.last_request_at = state.last_request_at
        self.consecutive_errors = state.consecutive_errors
