"""스냅샷 조립 및 윈도우 전파 서비스(Snapshot assembly and window cascade service).

Assembly never regresses: an asset whose per-asset key expired or failed to
refresh keeps the slice it had in the previous assembled snapshot.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from common_lib.logger import get_logger
from src.core.data import AssembledSnapshot, Asset, CacheMetadata, VulnerabilityRecord, sort_by_recency
from src.core.utils.timestamps import parse_timestamp, utcnow
from src.core.windows import LookbackWindow

from .repository import SnapshotRepository

logger = get_logger(__name__)


class SnapshotCache:
    """윈도우별 스냅샷 관리(Per-window snapshot management)."""

    def __init__(self, repository: SnapshotRepository, clock: Callable[[], datetime] = utcnow) -> None:
        self._repository = repository
        self._clock = clock

    @property
    def repository(self) -> SnapshotRepository:
        return self._repository

    async def store_asset_window(
        self, asset_id: str, window: LookbackWindow, records: List[VulnerabilityRecord]
    ) -> None:
        """자산/윈도우 결과 저장(Overwrite one asset's records for a window)."""

        await self._repository.write_asset_window(asset_id, window, records)
        logger.debug("Stored %d records for %s (%s)", len(records), asset_id, window.value)

    async def get_snapshot(self, window: LookbackWindow) -> Optional[AssembledSnapshot]:
        return await self._repository.read_snapshot(window)

    async def get_metadata(self) -> CacheMetadata:
        return await self._repository.read_metadata()

    async def assemble_snapshot(self, window: LookbackWindow, assets: Sequence[Asset]) -> AssembledSnapshot:
        """전체 스냅샷 재구성(Rebuild the window's snapshot from per-asset keys)."""

        previous = await self._repository.read_snapshot(window)

        by_asset: Dict[str, List[VulnerabilityRecord]] = {}
        missing = 0
        for asset in assets:
            records = await self._repository.read_asset_window(asset.id, window)
            if records is not None:
                by_asset[asset.id] = records
                continue

            missing += 1
            fallback = previous.by_asset.get(asset.id) if previous is not None else None
            if fallback:
                logger.info(
                    "Using fallback data for %s (%s): %d vulns", asset.id, window.value, len(fallback)
                )
                by_asset[asset.id] = list(fallback)
            else:
                by_asset[asset.id] = []

        if missing:
            logger.warning(
                "%d/%d assets missing per-asset keys for %s", missing, len(assets), window.value
            )

        now = self._clock()
        snapshot = AssembledSnapshot(
            by_asset=by_asset,
            all=sort_by_recency(record for records in by_asset.values() for record in records),
            fetched_at=now,
            time_range=window.value,
        )
        await self._repository.write_snapshot(snapshot)

        metadata = await self._repository.read_metadata()
        metadata.last_updated[window.value] = now.isoformat()
        await self._repository.write_metadata(metadata)

        logger.info("Assembled %s: %d vulns across %d assets", window.value, len(snapshot.all), len(assets))
        return snapshot

    async def assemble_all(self, assets: Sequence[Asset]) -> Dict[LookbackWindow, AssembledSnapshot]:
        return {window: await self.assemble_snapshot(window, assets) for window in LookbackWindow.ascending()}

    async def cascade_windows(self, assets: Optional[Sequence[Asset]] = None) -> int:
        """긴 윈도우에서 짧은 윈도우로 전파(Back-fill shorter windows from longer ones).

        A record from a longer window is copied into a shorter one when its
        ``published`` date lies inside the shorter window and the asset does
        not already list it there. Shorter windows without a snapshot are
        skipped. Returns the number of records added.
        """

        descending = LookbackWindow.descending()
        snapshots: Dict[LookbackWindow, Optional[AssembledSnapshot]] = {
            window: await self._repository.read_snapshot(window) for window in descending
        }
        allowed = {asset.id for asset in assets} if assets is not None else None
        now = self._clock()
        total_added = 0

        for position, shorter in enumerate(descending[1:], start=1):
            target = snapshots[shorter]
            if target is None:
                continue

            existing = {asset_id: target.ids_for(asset_id) for asset_id in target.by_asset}
            touched: set[str] = set()
            added = 0

            for longer in descending[:position]:
                source = snapshots[longer]
                if source is None:
                    continue
                for asset_id, records in source.by_asset.items():
                    if allowed is not None and asset_id not in allowed:
                        continue
                    seen = existing.setdefault(asset_id, set())
                    for record in records:
                        if record.id in seen:
                            continue
                        if not shorter.contains(parse_timestamp(record.published), now):
                            continue
                        target.by_asset.setdefault(asset_id, []).append(record)
                        target.all.append(record)
                        seen.add(record.id)
                        touched.add(asset_id)
                        added += 1

            if added:
                for asset_id in touched:
                    target.by_asset[asset_id] = sort_by_recency(target.by_asset[asset_id])
                target.all = sort_by_recency(target.all)
                target.fetched_at = now
                await self._repository.write_snapshot(target)
                logger.info("Cascaded %d vulns into %s", added, shorter.value)
                total_added += added

        if total_added:
            logger.info("Cascade complete: %d total vulns added to shorter windows", total_added)
        return total_added

    async def cache_status(self) -> Dict[str, Dict[str, object]]:
        """윈도우별 캐시 상태(Per-window cache status summary)."""

        metadata = await self._repository.read_metadata()
        status: Dict[str, Dict[str, object]] = {}
        for window in LookbackWindow.ascending():
            snapshot = await self._repository.read_snapshot(window)
            status[window.value] = {
                "hasData": snapshot is not None,
                "total": len(snapshot.all) if snapshot else 0,
                "assetsWithVulns": sum(1 for records in snapshot.by_asset.values() if records) if snapshot else 0,
                "fetchedAt": snapshot.fetched_at.isoformat() if snapshot else None,
                "lastUpdated": metadata.last_updated.get(window.value),
            }
        return status
