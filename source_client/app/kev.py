"""CISA KEV 카탈로그 서비스(Service for the CISA Known Exploited Vulnerabilities catalog)."""
from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from tenacity import AsyncRetrying

from common_lib.cache import AsyncCache
from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger
from common_lib.retry_config import get_retry_strategy
from snapshot_cache.app.keys import KEV_CATALOG_KEY
from src.core.data import Asset, KEVEntry, VulnerabilityRecord
from src.core.utils.timestamps import parse_timestamp

from .parsers import kev_entry_to_record, parse_kev_catalog

logger = get_logger(__name__)


def search_terms(asset: Asset) -> List[str]:
    """KEV 매칭용 검색어(Lowercased vendor, name and keywords)."""

    terms = [asset.vendor, asset.name, *asset.keywords]
    return [term.lower() for term in terms if term]


def match_entries(entries: List[KEVEntry], asset: Asset, start: datetime, end: datetime) -> List[KEVEntry]:
    """기간 및 검색어 매칭(Entries added within the range whose vendor/product/name contains a term)."""

    terms = search_terms(asset)
    matches: List[KEVEntry] = []
    for entry in entries:
        added = parse_timestamp(entry.date_added)
        if added is None or added < start or added > end:
            continue
        haystacks = (
            entry.vendor_project.lower(),
            entry.product.lower(),
            entry.vulnerability_name.lower(),
        )
        if any(term in field for term in terms for field in haystacks):
            matches.append(entry)
    return matches


class KEVService:
    """KEV 카탈로그 조회 및 자산 매칭(Fetch the KEV catalog and match it against assets).

    The catalog is memoized in-process and mirrored to the cache store, both
    for ``kev_cache_ttl_seconds``. Fetch failures never raise: the stale copy
    is returned when there is one, otherwise an empty list.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[AsyncCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        retry_strategy: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache
        self._client = client
        self._clock = clock
        self._retry_strategy = retry_strategy or get_retry_strategy()
        self._entries: Optional[List[KEVEntry]] = None
        self._fetched_at = 0.0

    def _memo_fresh(self) -> bool:
        return self._entries is not None and (
            self._clock() - self._fetched_at < self._settings.kev_cache_ttl_seconds
        )

    async def _download(self) -> Any:
        async for attempt in AsyncRetrying(**self._retry_strategy):
            with attempt:
                if self._client is not None:
                    response = await self._client.get(
                        self._settings.kev_url, timeout=self._settings.kev_timeout_seconds
                    )
                else:
                    async with httpx.AsyncClient(timeout=self._settings.kev_timeout_seconds) as client:
                        response = await client.get(self._settings.kev_url)
                response.raise_for_status()
                return response.json()

    async def fetch_catalog(self) -> List[KEVEntry]:
        """KEV 카탈로그 반환(Return the catalog, refreshing it at most once per TTL)."""

        if self._memo_fresh():
            return self._entries or []

        if self._cache is not None:
            cached = await self._cache.get(KEV_CATALOG_KEY)
            if isinstance(cached, dict):
                entries = parse_kev_catalog(cached)
                if entries:
                    self._remember(entries)
                    return entries

        if not self._settings.allow_external_calls:
            logger.info("외부 KEV 조회 비활성화됨(External KEV lookups disabled)")
            return self._entries or []

        try:
            data = await self._download()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("CISA KEV 조회 실패(CISA KEV fetch failed): %s", type(exc).__name__)
            logger.debug("KEV fetch failure details", exc_info=exc)
            return self._entries or []

        entries = parse_kev_catalog(data)
        logger.info("Fetched %d CISA KEV entries", len(entries))
        self._remember(entries)
        if self._cache is not None:
            payload = {"vulnerabilities": [entry.model_dump(by_alias=True) for entry in entries]}
            await self._cache.set(KEV_CATALOG_KEY, payload, ttl=self._settings.kev_cache_ttl_seconds)
        return entries

    def _remember(self, entries: List[KEVEntry]) -> None:
        self._entries = entries
        self._fetched_at = self._clock()

    async def search_for_asset(self, asset: Asset, start: datetime, end: datetime) -> List[VulnerabilityRecord]:
        """자산별 KEV 매칭 레코드(KEV records for an asset within the range)."""

        entries = await self.fetch_catalog()
        if not entries:
            return []
        return [kev_entry_to_record(entry) for entry in match_entries(entries, asset, start, end)]
