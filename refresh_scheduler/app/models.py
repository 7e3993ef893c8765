"""갱신 결과 모델(Refresh result models)."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FailedSlice(BaseModel):
    """실패한 자산/윈도우 조합(An asset and window whose fetch failed)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    asset_id: str
    time_range: str
    error: str


class RefreshResult(BaseModel):
    """단일 갱신 실행 결과(Outcome of one refresh invocation)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    batch_index: int
    next_batch_index: int
    assets_processed: List[str] = Field(default_factory=list)
    total_assets: int
    failed_slices: List[FailedSlice] = Field(default_factory=list)
    cascaded: int = 0
    no_op: bool = False
    message: Optional[str] = None
    invocation_id: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
