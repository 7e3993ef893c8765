"""RefreshScheduler FastAPI 애플리케이션(Refresh trigger FastAPI application)."""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI

from common_lib.config import get_settings
from common_lib.logger import get_logger
from common_lib.middleware import install_error_handling
from src.core.catalog import ASSETS

from .auth import verify_cron_secret
from .service import RefreshService, build_refresh_service

logger = get_logger(__name__)

app = FastAPI(title="VulnWatch RefreshScheduler")
install_error_handling(app)


@app.on_event("startup")
async def startup_event() -> None:
    """시작 시 설정 검증(Fail fast on invalid configuration at startup)."""

    get_settings().validate_runtime(catalog_size=len(ASSETS))
    logger.info("RefreshScheduler configuration validated for %d assets", len(ASSETS))


@lru_cache(maxsize=1)
def get_refresh_service() -> RefreshService:
    return build_refresh_service()


@app.api_route("/api/cron/refresh", methods=["GET", "POST"], tags=["refresh"])
async def cron_refresh(
    _: None = Depends(verify_cron_secret),
    service: RefreshService = Depends(get_refresh_service),
) -> dict[str, Any]:
    """배치 갱신 트리거(Refresh the next batch of assets and republish every window)."""

    result = await service.run_once()
    logger.info(
        "Cron refresh complete: batch %d -> %d (%d assets)",
        result.batch_index,
        result.next_batch_index,
        len(result.assets_processed),
    )
    return result.to_json()


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """헬스체크 엔드포인트(Health check endpoint)."""

    return {"status": "ok"}
