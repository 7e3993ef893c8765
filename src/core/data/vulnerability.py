"""Vulnerability record models shared by every pipeline stage."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.utils.timestamps import EPOCH, parse_timestamp

SOURCE_NVD = "NVD"
SOURCE_KEV = "CISA KEV"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"
    UNKNOWN = "UNKNOWN"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reference(_CamelModel):
    url: str
    source: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class AffectedProduct(_CamelModel):
    cpe: Optional[str] = None
    vendor: Optional[str] = None
    product: Optional[str] = None
    version_start: Optional[str] = None
    version_end: Optional[str] = None


class CISAData(_CamelModel):
    """Exploitation details copied from the CISA KEV catalog row."""

    vendor_project: Optional[str] = None
    product: Optional[str] = None
    vulnerability_name: Optional[str] = None
    date_added: Optional[str] = None
    due_date: Optional[str] = None
    required_action: Optional[str] = None
    known_ransomware_campaign_use: Optional[str] = None


class AttackTechnique(_CamelModel):
    id: str
    name: str


class ThreatActor(_CamelModel):
    name: str
    source: str


class KEVEntry(BaseModel):
    """One row of the CISA Known Exploited Vulnerabilities catalog."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cve_id: str = Field(alias="cveID")
    vendor_project: str = Field(default="", alias="vendorProject")
    product: str = Field(default="", alias="product")
    vulnerability_name: str = Field(default="", alias="vulnerabilityName")
    date_added: Optional[str] = Field(default=None, alias="dateAdded")
    short_description: str = Field(default="", alias="shortDescription")
    required_action: Optional[str] = Field(default=None, alias="requiredAction")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    known_ransomware_campaign_use: Optional[str] = Field(default=None, alias="knownRansomwareCampaignUse")

    def to_cisa_data(self) -> CISAData:
        return CISAData(
            vendor_project=self.vendor_project,
            product=self.product,
            vulnerability_name=self.vulnerability_name,
            date_added=self.date_added,
            due_date=self.due_date,
            required_action=self.required_action,
            known_ransomware_campaign_use=self.known_ransomware_campaign_use,
        )


class VulnerabilityRecord(_CamelModel):
    """A normalized vulnerability record.

    ``id`` is the dedup key within one asset+window bucket. Enrichment
    fields stay ``None``/empty until the matching stage has run.
    """

    id: str
    published: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    description: str = "No description available"
    severity: Severity = Severity.UNKNOWN
    cvss_score: Optional[float] = None
    cvss_vector: Optional[str] = None
    references: List[Reference] = Field(default_factory=list)
    affected_products: List[AffectedProduct] = Field(default_factory=list)
    source: str = SOURCE_NVD
    recently_modified: bool = False

    asset_id: Optional[str] = None
    asset_name: Optional[str] = None

    actively_exploited: Optional[bool] = None
    cisa_data: Optional[CISAData] = None
    epss_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    epss_percentile: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    attack_techniques: List[AttackTechnique] = Field(default_factory=list, max_length=3)
    threat_actors: List[ThreatActor] = Field(default_factory=list)

    def most_recent_date(self) -> datetime:
        """Later of ``published`` and ``last_modified``; missing values count as epoch."""
        published = parse_timestamp(self.published) or EPOCH
        modified = parse_timestamp(self.last_modified) or EPOCH
        return max(published, modified)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def sort_by_recency(records: Iterable[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    """Most recent first by ``most_recent_date()``; stable for ties."""
    return sorted(records, key=lambda record: record.most_recent_date(), reverse=True)
