"""QueryAPI 데이터 모델(QueryAPI data models)."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.core.data import AssembledSnapshot


class CacheInfo(BaseModel):
    """캐시 정보(Cache freshness information).

    Fields:
        last_updated: When the window was last assembled (ISO timestamp), null if never.
        next_update: Always null; refreshes are driven by an external trigger.
        time_range: Lookback window the data belongs to.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_updated: Optional[str] = None
    next_update: Optional[str] = None
    time_range: str


class VulnerabilitiesResponse(BaseModel):
    """취약점 조회 응답 모델(Vulnerability read response model)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    data: AssembledSnapshot
    cache_info: CacheInfo
