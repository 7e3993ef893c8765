"""스케줄러 로직(Scheduler logic)."""
from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, List, Sequence

from common_lib.logger import get_logger
from snapshot_cache.app.repository import SnapshotRepository
from src.core.data import Asset

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .service import RefreshService

logger = get_logger(__name__)


class BatchScheduler:
    """회전 배치 커서(Rotating batch cursor over the asset catalog).

    The cursor lives in the cache store without a TTL so that consecutive
    stateless invocations walk the catalog in order.
    """

    def __init__(self, repository: SnapshotRepository, assets: Sequence[Asset], batch_size: int = 4) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._repository = repository
        self._assets = list(assets)
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def total_batches(self) -> int:
        return max(1, math.ceil(len(self._assets) / self._batch_size))

    async def current_index(self) -> int:
        raw = await self._repository.read_batch_index()
        if raw is None:
            return 0
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            logger.warning("Invalid batch index %r in store; resetting to 0", raw)
            return 0
        return raw

    async def select_batch(self) -> List[Asset]:
        """현재 배치 자산(Assets in the current slice; empty when the cursor is past the end)."""

        index = await self.current_index()
        start = index * self._batch_size
        return self._assets[start : start + self._batch_size]

    async def advance(self) -> int:
        """커서 전진(Move the cursor forward, wrapping to 0; returns the new value)."""

        index = await self.current_index()
        if index >= self.total_batches:
            next_index = 0
        else:
            next_index = (index + 1) % self.total_batches
        await self._repository.write_batch_index(next_index)
        return next_index


class RefreshScheduler:
    """주기적 작업 실행기(Periodic job runner for deployments without an external cron)."""

    def __init__(self, service: "RefreshService", interval_seconds: int = 600) -> None:
        self._interval_seconds = interval_seconds
        self._service = service
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """스케줄러 시작(Start scheduler loop)."""

        if self._is_running:
            return
        self._is_running = True
        while self._is_running:
            await self._run_once()
            if self._is_running:
                await asyncio.sleep(self._interval_seconds)

    async def stop(self) -> None:
        """스케줄러 중지(Stop scheduler loop)."""

        self._is_running = False

    async def _run_once(self) -> None:
        """단일 실행(Tick execution)."""

        result = await self._service.run_once()
        logger.info(
            "RefreshScheduler tick processed batch %d (%d assets, %d failed slices).",
            result.batch_index,
            len(result.assets_processed),
            len(result.failed_slices),
        )
