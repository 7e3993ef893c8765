"""QueryAPI FastAPI 애플리케이션(QueryAPI FastAPI application)."""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from common_lib.cache import AsyncCache
from common_lib.config import get_settings
from common_lib.middleware import install_error_handling
from common_lib.logger import get_logger
from snapshot_cache.app.repository import SnapshotRepository
from snapshot_cache.app.service import SnapshotCache
from src.core.catalog import ASSETS
from src.core.windows import DEFAULT_WINDOW

from .service import QueryService

logger = get_logger(__name__)

# Setup Rate Limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="VulnWatch QueryAPI")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)
install_error_handling(app)


@app.on_event("startup")
async def startup_event() -> None:
    """시작 시 설정 검증(Fail fast on invalid configuration at startup)."""

    get_settings().validate_runtime(catalog_size=len(ASSETS))
    logger.info("QueryAPI configuration validated for %d assets", len(ASSETS))


@lru_cache(maxsize=1)
def get_cache() -> AsyncCache:
    return AsyncCache()


def get_query_service(cache: AsyncCache = Depends(get_cache)) -> QueryService:
    return QueryService(SnapshotCache(SnapshotRepository(cache)))


@app.get("/api/v1/vulnerabilities", tags=["vulnerabilities"])
@limiter.limit("60/minute")
async def get_vulnerabilities(
    request: Request,
    time_range: str = Query(default=DEFAULT_WINDOW.value, alias="timeRange"),
    service: QueryService = Depends(get_query_service),
) -> JSONResponse:
    """윈도우별 취약점 스냅샷 조회(Fetch the assembled snapshot for a lookback window).

    Query Parameters:
        timeRange: One of 24h, 7d, 30d, 90d, 119d (default 7d)

    Returns 503 with ``{"error": "Cache not ready"}`` until the window has
    been assembled at least once.
    """

    response = await service.get_vulnerabilities(time_range)
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))


@app.get("/api/v1/status", tags=["status"])
@limiter.limit("30/minute")
async def get_status(
    request: Request,
    service: QueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """캐시 상태 조회(Per-window cache status)."""

    return await service.status()


@app.get("/health", tags=["health"])
async def health_check(cache: AsyncCache = Depends(get_cache)) -> dict[str, Any]:
    """헬스체크 엔드포인트(Health check endpoint)."""

    await cache.ping()
    return {"status": "ok", "assets": len(ASSETS)}
