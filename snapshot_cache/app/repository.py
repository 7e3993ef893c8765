"""스냅샷 캐시 데이터 접근 계층(Snapshot cache data access layer)."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import ValidationError

from common_lib.cache import AsyncCache
from common_lib.logger import get_logger
from src.core.data import AssembledSnapshot, CacheMetadata, VulnerabilityRecord
from src.core.windows import LookbackWindow

from .keys import BATCH_INDEX_KEY, METADATA_KEY, asset_window_key, snapshot_key

logger = get_logger(__name__)


def parse_record_list(raw: Any) -> Optional[List[VulnerabilityRecord]]:
    """잘 구성된 레코드 목록만 허용(Return records only when every element validates)."""

    if not isinstance(raw, list):
        return None
    try:
        return [VulnerabilityRecord.model_validate(item) for item in raw]
    except ValidationError:
        return None


class SnapshotRepository:
    """캐시 키 단위 읽기/쓰기(Reads and writes per cache key)."""

    def __init__(self, cache: AsyncCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> AsyncCache:
        return self._cache

    async def write_asset_window(
        self, asset_id: str, window: LookbackWindow, records: List[VulnerabilityRecord]
    ) -> None:
        await self._cache.set(asset_window_key(asset_id, window), [record.to_json() for record in records])

    async def read_asset_window(self, asset_id: str, window: LookbackWindow) -> Optional[List[VulnerabilityRecord]]:
        """자산/윈도우 레코드 조회(None when the key is missing or malformed)."""

        raw = await self._cache.get(asset_window_key(asset_id, window))
        if raw is None:
            return None
        records = parse_record_list(raw)
        if records is None:
            logger.warning("Malformed per-asset value for %s (%s); ignoring", asset_id, window.value)
        return records

    async def read_snapshot(self, window: LookbackWindow) -> Optional[AssembledSnapshot]:
        raw = await self._cache.get(snapshot_key(window))
        if not isinstance(raw, dict):
            return None
        try:
            return AssembledSnapshot.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed assembled snapshot for %s; treating as missing", window.value)
            logger.debug("Snapshot validation failure details", exc_info=exc)
            return None

    async def write_snapshot(self, snapshot: AssembledSnapshot) -> None:
        await self._cache.set(snapshot_key(snapshot.time_range), snapshot.to_json())

    async def read_metadata(self) -> CacheMetadata:
        raw = await self._cache.get(METADATA_KEY)
        if isinstance(raw, dict):
            try:
                return CacheMetadata.model_validate(raw)
            except ValidationError:
                logger.warning("Malformed cache metadata; starting fresh")
        return CacheMetadata()

    async def write_metadata(self, metadata: CacheMetadata) -> None:
        await self._cache.set(METADATA_KEY, metadata.to_json())

    async def read_batch_index(self) -> Any:
        return await self._cache.get(BATCH_INDEX_KEY)

    async def write_batch_index(self, index: int) -> None:
        await self._cache.set(BATCH_INDEX_KEY, index, persist=True)
