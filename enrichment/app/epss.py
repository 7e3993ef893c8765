"""EPSS 점수 보강 서비스 모듈(EPSS score enrichment service module)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import AsyncRetrying

from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger
from common_lib.retry_config import get_retry_strategy
from src.core.data import VulnerabilityRecord

logger = get_logger(__name__)

EPSSScore = Tuple[float, float]


def _probability(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if 0.0 <= number <= 1.0:
        return number
    return None


class EPSSService:
    """EPSS 점수 조회 서비스(Service fetching EPSS scores from FIRST.org).

    Identifiers go out in comma-joined batches. A failing batch is logged and
    skipped; the records it covered keep no EPSS fields.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        retry_strategy: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._retry_strategy = retry_strategy or get_retry_strategy()
        self._allow_external = self._settings.allow_external_calls

    async def _get(self, params: Dict[str, str]) -> httpx.Response:
        async for attempt in AsyncRetrying(**self._retry_strategy):
            with attempt:
                if self._client is not None:
                    response = await self._client.get(
                        self._settings.epss_api_url,
                        params=params,
                        timeout=self._settings.epss_timeout_seconds,
                    )
                else:
                    async with httpx.AsyncClient(timeout=self._settings.epss_timeout_seconds) as client:
                        response = await client.get(self._settings.epss_api_url, params=params)
                response.raise_for_status()
                return response

    async def fetch_scores(self, cve_ids: List[str]) -> Dict[str, EPSSScore]:
        """FIRST.org API를 통해 EPSS 점수 조회(Fetch EPSS scores for the given CVE ids)."""

        scores: Dict[str, EPSSScore] = {}
        batch_size = self._settings.epss_batch_size
        for offset in range(0, len(cve_ids), batch_size):
            batch = cve_ids[offset : offset + batch_size]
            try:
                response = await self._get({"cve": ",".join(batch)})
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning(
                    "FIRST.org EPSS 배치 실패 (EPSS batch starting at %d failed): %s",
                    offset,
                    type(exc).__name__,
                )
                logger.debug("EPSS batch failure details", exc_info=exc)
                continue

            rows = data.get("data") if isinstance(data, dict) else None
            if not isinstance(rows, list):
                rows = []
            for row in rows:
                if not isinstance(row, dict):
                    continue
                score = _probability(row.get("epss"))
                percentile = _probability(row.get("percentile"))
                if row.get("cve") and score is not None and percentile is not None:
                    scores[row["cve"]] = (score, percentile)
            logger.info("Fetched EPSS scores for %d/%d CVEs", len(rows), len(batch))
        return scores

    async def enrich(self, records: List[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
        """레코드에 EPSS 점수 부여(Attach EPSS score and percentile where available)."""

        if not records:
            return records
        if not self._allow_external:
            logger.info("외부 EPSS 조회 비활성화됨(External EPSS lookups disabled)")
            return records

        cve_ids = list(dict.fromkeys(record.id for record in records if record.id.startswith("CVE-")))
        if not cve_ids:
            return records

        try:
            scores = await self.fetch_scores(cve_ids)
        except Exception as exc:  # enrichment is best-effort
            logger.error("EPSS 보강 실패(EPSS enrichment failed); returning records unchanged")
            logger.debug("EPSS enrichment failure details", exc_info=exc)
            return records

        enriched: List[VulnerabilityRecord] = []
        for record in records:
            score = scores.get(record.id)
            if score is None:
                enriched.append(record)
            else:
                enriched.append(
                    record.model_copy(update={"epss_score": score[0], "epss_percentile": score[1]})
                )
        return enriched
