"""Domain models for assets, vulnerability records and cached snapshots."""

from src.core.data.asset import Asset
from src.core.data.snapshot import AssembledSnapshot, CacheMetadata
from src.core.data.vulnerability import (
    SOURCE_KEV,
    SOURCE_NVD,
    AffectedProduct,
    AttackTechnique,
    CISAData,
    KEVEntry,
    Reference,
    Severity,
    ThreatActor,
    VulnerabilityRecord,
    sort_by_recency,
)

__all__ = [
    "Asset",
    "AssembledSnapshot",
    "CacheMetadata",
    "SOURCE_KEV",
    "SOURCE_NVD",
    "AffectedProduct",
    "AttackTechnique",
    "CISAData",
    "KEVEntry",
    "Reference",
    "Severity",
    "ThreatActor",
    "VulnerabilityRecord",
    "sort_by_recency",
]
