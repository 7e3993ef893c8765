"""다중 소스 병합 서비스(Multi-source reconcile service)."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger
from source_client.app.kev import KEVService
from source_client.app.service import NVDService
from src.core.data import Asset, Reference, VulnerabilityRecord, sort_by_recency
from src.core.errors import PartialSourceError, SourceUnavailableError
from src.core.utils.timestamps import parse_timestamp

from .validators import validate_for_asset

logger = get_logger(__name__)

DEAD_REFERENCE_DOMAINS = ("securityfocus.com", "securitytracker.com")


def dedupe(records: Iterable[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    """ID 기준 병합(Merge by id; a recently modified variant replaces the first one seen)."""

    seen: Dict[str, VulnerabilityRecord] = {}
    for record in records:
        if record.id not in seen or record.recently_modified:
            seen[record.id] = record
    return list(seen.values())


def within_range(record: VulnerabilityRecord, start: datetime, end: datetime) -> bool:
    # only the publication date counts; NVD bumps lastModified for trivial metadata edits
    published = parse_timestamp(record.published)
    return published is not None and start <= published <= end


def is_dead_reference(url: Optional[str]) -> bool:
    if not url:
        return True
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return True
    if not hostname:
        return True
    return any(hostname == domain or hostname.endswith("." + domain) for domain in DEAD_REFERENCE_DOMAINS)


def filter_dead_references(references: List[Reference]) -> List[Reference]:
    return [ref for ref in references if not is_dead_reference(ref.url)]


def merge_exploited(
    primary: List[VulnerabilityRecord], exploited: List[VulnerabilityRecord]
) -> List[VulnerabilityRecord]:
    """KEV 결과 병합(Flag primary records listed in KEV and append KEV-only ones)."""

    by_id = {record.id: record for record in exploited}
    merged: List[VulnerabilityRecord] = []
    for record in primary:
        kev = by_id.get(record.id)
        if kev is None:
            merged.append(record)
            continue
        merged.append(
            record.model_copy(
                update={"actively_exploited": True, "cisa_data": kev.cisa_data or record.cisa_data}
            )
        )

    primary_ids = {record.id for record in primary}
    merged.extend(record for record in exploited if record.id not in primary_ids)
    return sort_by_recency(merged)


class Reconciler:
    """자산별 취약점 병합기(Per-asset reconcile across NVD and CISA KEV)."""

    def __init__(
        self,
        nvd: NVDService,
        kev: Optional[KEVService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._nvd = nvd
        self._kev = kev
        self._settings = settings or get_settings()

    async def _primary_results(self, asset: Asset, start: datetime, end: datetime) -> List[VulnerabilityRecord]:
        results: List[VulnerabilityRecord] = []
        keyword = asset.primary_keyword
        include_modified = self._settings.include_last_modified

        if keyword:
            logger.info("NVD keyword search for %s: %r", asset.name, keyword)
            results.extend(await self._nvd.fetch_by_keyword(keyword, start, end))
            if include_modified:
                results.extend(await self._nvd.fetch_by_keyword_last_modified(keyword, start, end))

        # vendor-wide CPE search catches entries whose description never names the vendor
        for vendor in asset.cpe_vendors:
            logger.info("NVD vendor CPE search for %s: %s:*", asset.name, vendor)
            results.extend(await self._nvd.fetch_by_cpe(vendor, "*", start, end))
            if include_modified:
                results.extend(await self._nvd.fetch_by_cpe_last_modified(vendor, "*", start, end))

        return results

    async def fetch_primary(self, asset: Asset, start: datetime, end: datetime) -> List[VulnerabilityRecord]:
        """1차 소스 조회 및 정제(Fetch, merge, filter and validate primary-source records).

        Raises:
            SourceUnavailableError: if any primary search fails
        """

        candidates = dedupe(await self._primary_results(asset, start, end))

        in_range = [record for record in candidates if within_range(record, start, end)]
        dropped = len(candidates) - len(in_range)
        if dropped:
            logger.debug("Dropped %d records for %s published outside the range", dropped, asset.id)

        validated = [record for record in in_range if validate_for_asset(record, asset.id)]
        cleaned = [
            record.model_copy(
                update={
                    "references": filter_dead_references(record.references),
                    "asset_id": asset.id,
                    "asset_name": asset.name,
                }
            )
            for record in validated
        ]
        return sort_by_recency(cleaned)

    async def fetch_exploited(self, asset: Asset, start: datetime, end: datetime) -> List[VulnerabilityRecord]:
        if self._kev is None:
            return []
        records = await self._kev.search_for_asset(asset, start, end)
        return [record.model_copy(update={"asset_id": asset.id, "asset_name": asset.name}) for record in records]

    async def reconcile(self, asset: Asset, start: datetime, end: datetime) -> List[VulnerabilityRecord]:
        """자산 병합 결과(Reconciled, most-recent-first records for one asset and range).

        Raises:
            SourceUnavailableError: if a primary search fails and KEV has no match
            PartialSourceError: if a primary search fails but KEV matched records
        """

        try:
            primary = await self.fetch_primary(asset, start, end)
        except SourceUnavailableError as exc:
            exploited = await self.fetch_exploited(asset, start, end)
            if not exploited:
                raise
            logger.warning(
                "Primary source failed for %s; keeping %d KEV records", asset.id, len(exploited)
            )
            raise PartialSourceError(exc, exploited) from exc

        exploited = await self.fetch_exploited(asset, start, end)
        merged = merge_exploited(primary, exploited)
        logger.info(
            "Reconciled %s: %d primary, %d KEV, %d merged",
            asset.id,
            len(primary),
            len(exploited),
            len(merged),
        )
        return merged
