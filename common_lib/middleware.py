"""공통 HTTP 미들웨어 및 예외 처리기(Shared HTTP middleware and exception handlers)."""
from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.errors import CacheUnavailableError, DataValidationError

from .errors import AppException, ExternalServiceError, InvalidInputError
from .logger import get_logger
from .observability import request_id_ctx

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """요청 ID 추적 미들웨어(Middleware for request ID tracking and correlation)."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions with standardized error format."""
    logger.warning(
        "AppException: %s (code=%s)",
        exc.message,
        exc.error_code,
        extra={"details": exc.details},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def cache_unavailable_handler(request: Request, exc: CacheUnavailableError) -> JSONResponse:
    logger.error("Cache store unavailable: %s", exc)
    return await app_exception_handler(request, ExternalServiceError("Cache store", exc.reason or exc.operation))


async def data_validation_handler(request: Request, exc: DataValidationError) -> JSONResponse:
    return await app_exception_handler(request, InvalidInputError(exc.field, exc.reason))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors."""
    logger.error(
        "Unexpected error: %s",
        str(exc),
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "Unexpected server error",
            }
        },
    )


def install_error_handling(app: FastAPI) -> None:
    """요청 ID 및 예외 처리기 등록(Register request-id middleware and exception handlers)."""

    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(CacheUnavailableError, cache_unavailable_handler)
    app.add_exception_handler(DataValidationError, data_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
