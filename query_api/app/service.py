"""QueryAPI 서비스 레이어(QueryAPI service layer)."""
from __future__ import annotations

from typing import Any, Dict

from common_lib.errors import CacheNotReady, InvalidInputError
from common_lib.logger import get_logger
from snapshot_cache.app.service import SnapshotCache
from src.core.catalog import ASSETS
from src.core.errors import DataValidationError
from src.core.windows import DEFAULT_WINDOW, LookbackWindow

from .models import CacheInfo, VulnerabilitiesResponse

logger = get_logger(__name__)


class QueryService:
    """쿼리 처리 서비스(Query handling service)."""

    def __init__(self, snapshots: SnapshotCache) -> None:
        self._snapshots = snapshots

    async def get_vulnerabilities(self, time_range: str | None = None) -> VulnerabilitiesResponse:
        """윈도우별 스냅샷 조회(Return the assembled snapshot for a window).

        Raises:
            InvalidInputError: if the window is unknown
            CacheNotReady: if the window has never been assembled
        """

        try:
            window = LookbackWindow.parse(time_range or DEFAULT_WINDOW.value)
        except DataValidationError as exc:
            raise InvalidInputError("timeRange", exc.reason) from exc

        snapshot = await self._snapshots.get_snapshot(window)
        if snapshot is None:
            logger.info("Cache miss for %s", window.value)
            raise CacheNotReady(window.value)

        metadata = await self._snapshots.get_metadata()
        return VulnerabilitiesResponse(
            data=snapshot,
            cache_info=CacheInfo(
                last_updated=metadata.last_updated.get(window.value),
                next_update=None,
                time_range=window.value,
            ),
        )

    async def status(self) -> Dict[str, Any]:
        """캐시 상태 조회(Cache status per window)."""

        metadata = await self._snapshots.get_metadata()
        return {
            "windows": await self._snapshots.cache_status(),
            "lastFullRefresh": metadata.last_full_refresh,
            "totalAssets": len(ASSETS),
        }
