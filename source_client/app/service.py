"""NVD CVE API 호출 서비스(Service for NVD CVE API 2.0 calls)."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from common_lib.config import Settings, get_settings
from common_lib.logger import get_logger
from src.core.data import VulnerabilityRecord
from src.core.errors import RateLimitedError, SourceUnavailableError
from src.core.utils.timestamps import to_nvd_timestamp

from .parsers import parse_nvd_response
from .rate_limiter import RateLimiter

logger = get_logger(__name__)

SERVICE_NAME = "NVD"
_RATE_LIMIT_STATUSES = (403, 429)


def cpe_match_string(vendor: str, product: str = "*") -> str:
    return f"cpe:2.3:*:{vendor}:{product}:*:*:*:*:*:*:*:*"


class NVDService:
    """NVD 취약점 검색 서비스(Service searching NVD for vulnerability records).

    Every request goes through the injected ``RateLimiter``. A 429/403 is
    retried exactly once after a backoff; anything else that is not 2xx
    fails the call with ``SourceUnavailableError``.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._limiter = rate_limiter or RateLimiter.from_settings(self._settings)
        self._client = client
        self._allow_external = self._settings.allow_external_calls

        if not self._settings.has_nvd_api_key:
            logger.warning(
                "NVD API 키가 설정되지 않음 - 제한된 속도로 실행됩니다 (API key not set - running with rate limits)"
            )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    def _headers(self) -> Dict[str, str]:
        if self._settings.nvd_api_key:
            return {"apiKey": self._settings.nvd_api_key}
        return {}

    async def _get(self, params: Dict[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.get(
                    self._settings.nvd_api_url,
                    params=params,
                    headers=self._headers(),
                    timeout=self._settings.nvd_timeout_seconds,
                )
            async with httpx.AsyncClient(timeout=self._settings.nvd_timeout_seconds) as client:
                return await client.get(self._settings.nvd_api_url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            self._limiter.record_error()
            logger.warning("NVD API 전송 오류(NVD transport error): %s", type(exc).__name__)
            logger.debug("NVD transport failure details", exc_info=exc)
            raise SourceUnavailableError(SERVICE_NAME, message=f"{type(exc).__name__}: {exc}") from exc

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise SourceUnavailableError(SERVICE_NAME, response.status_code, "malformed JSON body") from exc
        if not isinstance(data, dict):
            raise SourceUnavailableError(SERVICE_NAME, response.status_code, "unexpected response shape")
        return data

    async def request(self, params: Dict[str, str]) -> Dict[str, Any]:
        """속도 제한 적용 NVD 요청(Rate-limited NVD request returning the decoded body)."""

        if not self._allow_external:
            raise SourceUnavailableError(SERVICE_NAME, message="external calls disabled")

        await self._limiter.acquire()
        response = await self._get(params)

        if response.status_code in _RATE_LIMIT_STATUSES:
            self._limiter.record_error()
            logger.warning("NVD rate limited (%d), retrying with longer delay", response.status_code)
            await self._limiter.backoff()
            self._limiter.mark()
            response = await self._get(params)
            if response.status_code in _RATE_LIMIT_STATUSES:
                self._limiter.record_error()
                raise RateLimitedError(SERVICE_NAME, response.status_code, "still rate limited after retry")

        if not response.is_success:
            self._limiter.record_error()
            raise SourceUnavailableError(SERVICE_NAME, response.status_code)

        self._limiter.record_success()
        return self._decode(response)

    @staticmethod
    def _range_params(start: datetime, end: datetime, last_modified: bool) -> Dict[str, str]:
        if last_modified:
            return {"lastModStartDate": to_nvd_timestamp(start), "lastModEndDate": to_nvd_timestamp(end)}
        return {"pubStartDate": to_nvd_timestamp(start), "pubEndDate": to_nvd_timestamp(end)}

    async def _search(
        self,
        label: str,
        criteria: Dict[str, str],
        start: datetime,
        end: datetime,
        page_size: Optional[int],
        last_modified: bool,
    ) -> List[VulnerabilityRecord]:
        params = {
            **criteria,
            "resultsPerPage": str(page_size or self._settings.nvd_page_size),
            **self._range_params(start, end, last_modified),
        }
        data = await self.request(params)
        records = parse_nvd_response(data, recently_modified=last_modified)
        logger.info(
            "NVD %s search returned %s results (%d parsed)",
            label,
            data.get("totalResults", 0),
            len(records),
        )
        return records

    async def fetch_by_keyword(
        self, term: str, start: datetime, end: datetime, page_size: Optional[int] = None
    ) -> List[VulnerabilityRecord]:
        """키워드 검색(Search by keyword over the publication range)."""

        return await self._search(f"keyword '{term}'", {"keywordSearch": term}, start, end, page_size, False)

    async def fetch_by_cpe(
        self, vendor: str, product: str, start: datetime, end: datetime, page_size: Optional[int] = None
    ) -> List[VulnerabilityRecord]:
        """CPE 검색(Search by CPE match string; product '*' is vendor-wide)."""

        criteria = {"virtualMatchString": cpe_match_string(vendor, product)}
        return await self._search(f"CPE {vendor}:{product}", criteria, start, end, page_size, False)

    async def fetch_by_keyword_last_modified(
        self, term: str, start: datetime, end: datetime, page_size: Optional[int] = None
    ) -> List[VulnerabilityRecord]:
        return await self._search(f"keyword '{term}' (modified)", {"keywordSearch": term}, start, end, page_size, True)

    async def fetch_by_cpe_last_modified(
        self, vendor: str, product: str, start: datetime, end: datetime, page_size: Optional[int] = None
    ) -> List[VulnerabilityRecord]:
        criteria = {"virtualMatchString": cpe_match_string(vendor, product)}
        return await self._search(f"CPE {vendor}:{product} (modified)", criteria, start, end, page_size, True)
