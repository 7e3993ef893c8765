"""갱신 실행 서비스(Refresh invocation service).

One invocation refreshes a single batch of assets across every lookback
window, then rebuilds all assembled snapshots and cascades them.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from common_lib.cache import AsyncCache
from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger
from common_lib.observability import bind_request_id, request_id_ctx
from enrichment.app.epss import EPSSService
from enrichment.app.pipeline import EnrichmentPipeline
from reconciler.app.service import Reconciler, merge_exploited
from snapshot_cache.app.keys import RATE_LIMIT_KEY
from snapshot_cache.app.repository import SnapshotRepository
from snapshot_cache.app.service import SnapshotCache
from source_client.app.kev import KEVService
from source_client.app.models import RateLimiterState
from source_client.app.rate_limiter import RateLimiter
from source_client.app.service import NVDService
from src.core.catalog import ASSETS, get_asset
from src.core.data import Asset, VulnerabilityRecord
from src.core.errors import PartialSourceError, SourceUnavailableError
from src.core.utils.timestamps import utcnow
from src.core.windows import LookbackWindow

from .models import FailedSlice, RefreshResult
from .scheduler import BatchScheduler

logger = get_logger(__name__)

EMPTY_BATCH_MESSAGE = "No assets in this batch (resetting index)"


class RefreshService:
    """배치 갱신 서비스(Batch refresh service)."""

    def __init__(
        self,
        reconciler: Reconciler,
        enrichment: EnrichmentPipeline,
        snapshots: SnapshotCache,
        scheduler: BatchScheduler,
        rate_limiter: RateLimiter,
        assets: Sequence[Asset] = ASSETS,
    ) -> None:
        self._reconciler = reconciler
        self._enrichment = enrichment
        self._snapshots = snapshots
        self._scheduler = scheduler
        self._limiter = rate_limiter
        self._assets = list(assets)

    @property
    def snapshots(self) -> SnapshotCache:
        return self._snapshots

    async def _restore_limiter(self) -> None:
        raw = await self._snapshots.repository.cache.get(RATE_LIMIT_KEY)
        if not isinstance(raw, dict):
            return
        try:
            self._limiter.restore(RateLimiterState.model_validate(raw))
        except ValidationError:
            logger.warning("Ignoring malformed rate limiter state")

    async def _persist_limiter(self) -> None:
        state = self._limiter.state().model_dump(by_alias=True)
        await self._snapshots.repository.cache.set(RATE_LIMIT_KEY, state)

    async def _refresh_slice(self, asset: Asset, window: LookbackWindow) -> Optional[FailedSlice]:
        start, end = window.date_range()
        try:
            records = await self._reconciler.reconcile(asset, start, end)
        except PartialSourceError as exc:
            logger.warning("Fetch failed for %s (%s): %s", asset.id, window.value, exc)
            await self._store_exploited_only(asset, window, exc.records)
            return FailedSlice(asset_id=asset.id, time_range=window.value, error=str(exc))
        except (SourceUnavailableError, httpx.HTTPError) as exc:
            # nothing is written, so assembly keeps the previous slice
            logger.warning("Fetch failed for %s (%s): %s", asset.id, window.value, exc)
            logger.debug("Slice failure details", exc_info=exc)
            return FailedSlice(asset_id=asset.id, time_range=window.value, error=str(exc))

        enriched = await self._enrichment.run(records)
        await self._snapshots.store_asset_window(asset.id, window, enriched)
        logger.info("%s (%s): stored %d vulns", asset.name, window.value, len(enriched))
        return None

    async def _store_exploited_only(
        self, asset: Asset, window: LookbackWindow, exploited: List[VulnerabilityRecord]
    ) -> None:
        """KEV 결과만 이전 슬라이스에 병합(Merge KEV matches into the last known slice)."""

        previous = await self._snapshots.repository.read_asset_window(asset.id, window)
        if previous is None:
            snapshot = await self._snapshots.get_snapshot(window)
            previous = list(snapshot.by_asset.get(asset.id, [])) if snapshot is not None else []

        merged = await self._enrichment.run(merge_exploited(previous, exploited))
        await self._snapshots.store_asset_window(asset.id, window, merged)
        logger.info(
            "%s (%s): kept %d previous vulns plus KEV matches (%d total)",
            asset.name,
            window.value,
            len(previous),
            len(merged),
        )

    async def _refresh(self, assets: Iterable[Asset]) -> List[FailedSlice]:
        failed: List[FailedSlice] = []
        for asset in assets:
            for window in LookbackWindow.ascending():
                failure = await self._refresh_slice(asset, window)
                if failure is not None:
                    failed.append(failure)
        return failed

    async def rebuild(self) -> int:
        """전체 윈도우 재조립 및 전파(Reassemble every window, then cascade)."""

        await self._snapshots.assemble_all(self._assets)
        return await self._snapshots.cascade_windows(self._assets)

    async def _advance(self) -> int:
        next_index = await self._scheduler.advance()
        if next_index == 0:
            metadata = await self._snapshots.get_metadata()
            metadata.last_full_refresh = utcnow().isoformat()
            await self._snapshots.repository.write_metadata(metadata)
            logger.info("Full catalog rotation complete")
        return next_index

    async def run_once(self) -> RefreshResult:
        """단일 배치 갱신(Refresh the current batch and publish every window).

        Raises:
            CacheUnavailableError: if the cache store cannot be read or written
        """

        invocation_id, token = bind_request_id()
        try:
            await self._restore_limiter()
            batch_index = await self._scheduler.current_index()
            batch = await self._scheduler.select_batch()

            if not batch:
                next_index = await self._advance()
                logger.info("Batch %d is empty; cursor reset to %d", batch_index, next_index)
                return RefreshResult(
                    batch_index=batch_index,
                    next_batch_index=next_index,
                    total_assets=len(self._assets),
                    no_op=True,
                    message=EMPTY_BATCH_MESSAGE,
                    invocation_id=invocation_id,
                )

            logger.info(
                "Batch %d/%d: %s",
                batch_index + 1,
                self._scheduler.total_batches,
                ", ".join(asset.name for asset in batch),
            )
            failed = await self._refresh(batch)
            cascaded = await self.rebuild()
            next_index = await self._advance()
            await self._persist_limiter()

            return RefreshResult(
                batch_index=batch_index,
                next_batch_index=next_index,
                assets_processed=[asset.name for asset in batch],
                total_assets=len(self._assets),
                failed_slices=failed,
                cascaded=cascaded,
                invocation_id=invocation_id,
            )
        finally:
            request_id_ctx.reset(token)

    async def refresh_assets(self, asset_ids: Sequence[str]) -> RefreshResult:
        """지정 자산 수동 갱신(Refresh specific assets without moving the cursor).

        Raises:
            DataValidationError: if an id is not in the catalog
        """

        assets = [get_asset(asset_id) for asset_id in asset_ids]
        invocation_id, token = bind_request_id()
        try:
            await self._restore_limiter()
            batch_index = await self._scheduler.current_index()
            failed = await self._refresh(assets)
            cascaded = await self.rebuild()
            await self._persist_limiter()
            return RefreshResult(
                batch_index=batch_index,
                next_batch_index=batch_index,
                assets_processed=[asset.name for asset in assets],
                total_assets=len(self._assets),
                failed_slices=failed,
                cascaded=cascaded,
                invocation_id=invocation_id,
            )
        finally:
            request_id_ctx.reset(token)


def build_refresh_service(
    settings: Optional[Settings] = None,
    cache: Optional[AsyncCache] = None,
    assets: Sequence[Asset] = ASSETS,
) -> RefreshService:
    """설정 기반 서비스 조립(Wire a refresh service from settings)."""

    settings = settings or get_settings()
    cache = cache or AsyncCache(
        ttl_seconds=settings.cache_ttl_seconds,
        io_timeout=settings.cache_io_timeout_seconds,
    )
    repository = SnapshotRepository(cache)
    limiter = RateLimiter.from_settings(settings)
    reconciler = Reconciler(
        nvd=NVDService(rate_limiter=limiter, settings=settings),
        kev=KEVService(settings=settings, cache=cache),
        settings=settings,
    )
    return RefreshService(
        reconciler=reconciler,
        enrichment=EnrichmentPipeline(EPSSService(settings=settings)),
        snapshots=SnapshotCache(repository),
        scheduler=BatchScheduler(repository, assets, batch_size=settings.batch_size),
        rate_limiter=limiter,
        assets=assets,
    )
