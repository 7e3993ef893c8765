"""Asset catalog entry model."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Asset(BaseModel):
    """A monitored vendor/product grouping.

    ``keywords[0]`` is the broad search term sent to the primary source; the
    remaining keywords only widen KEV matching. The false-positive filter for
    an asset lives in the validator registry keyed by ``id``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    vendor: str
    cpe_vendor: Optional[str] = None
    additional_cpe_vendors: List[str] = Field(default_factory=list)
    cpe_products: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    @property
    def primary_keyword(self) -> Optional[str]:
        return self.keywords[0] if self.keywords else None

    @property
    def cpe_vendors(self) -> List[str]:
        """CPE vendor names to search vendor-wide, primary first."""
        if not self.cpe_vendor:
            return []
        return [self.cpe_vendor, *[v for v in self.additional_cpe_vendors if v != self.cpe_vendor]]
