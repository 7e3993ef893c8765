"""Cached snapshot and metadata models."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.data.vulnerability import SOURCE_NVD, VulnerabilityRecord
from src.core.utils.timestamps import utcnow


class AssembledSnapshot(BaseModel):
    """Every asset's records for one lookback window."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    by_asset: Dict[str, List[VulnerabilityRecord]] = Field(default_factory=dict)
    all: List[VulnerabilityRecord] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utcnow)
    time_range: str
    source: str = SOURCE_NVD

    def ids_for(self, asset_id: str) -> set[str]:
        return {record.id for record in self.by_asset.get(asset_id, [])}

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CacheMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_updated: Dict[str, str] = Field(default_factory=dict)
    last_full_refresh: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
