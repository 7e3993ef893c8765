"""보강 단계 조합(Enrichment stage composition)."""
from __future__ import annotations

from typing import List, Optional

from common_lib.logger import get_logger
from src.core.data import VulnerabilityRecord

from .attack_mapping import enrich_with_attack_techniques
from .epss import EPSSService
from .threat_actors import enrich_with_threat_actors

logger = get_logger(__name__)


class EnrichmentPipeline:
    """ATT&CK 매핑 → EPSS → 위협 행위자 순서로 실행(Run the three stages in order)."""

    def __init__(self, epss: Optional[EPSSService] = None) -> None:
        self._epss = epss or EPSSService()

    async def run(self, records: List[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
        if not records:
            return records
        with_attack = enrich_with_attack_techniques(records)
        with_epss = await self._epss.enrich(with_attack)
        enriched = enrich_with_threat_actors(with_epss)
        logger.debug("Enriched %d records", len(enriched))
        return enriched
