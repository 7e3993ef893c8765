"""HTTP 응답용 에러 클래스(Error classes rendered as HTTP responses)."""
from __future__ import annotations

from typing import Any, Dict, Optional


class AppException(Exception):
    """HTTP 계층 기본 예외(Base exception carrying a status and machine-readable code)."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            status_code: HTTP status returned to the caller (400, 401, 503)
            error_code: Stable code clients can branch on (``CACHE_NOT_READY``)
            message: Human-readable message
            details: Extra context echoed in the body
        """
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": {"code": self.error_code, "message": self.message}}
        if self.details:
            body["error"]["details"] = self.details
        return body


class CacheNotReady(AppException):
    """스냅샷 미준비(Snapshot for the requested window not assembled yet - 503)."""

    def __init__(self, time_range: str) -> None:
        super().__init__(
            status_code=503,
            error_code="CACHE_NOT_READY",
            message="Data is being refreshed. Please try again in a few minutes.",
            details={"timeRange": time_range},
        )

    def to_dict(self) -> Dict[str, Any]:
        # consumers already key off this flat shape
        return {"error": "Cache not ready", "message": self.message, "timeRange": self.details["timeRange"]}


class ExternalServiceError(AppException):
    """의존 서비스 장애(A dependency such as the cache store is down - 503)."""

    def __init__(self, service_name: str, reason: str) -> None:
        super().__init__(
            status_code=503,
            error_code="EXTERNAL_SERVICE_ERROR",
            message=f"{service_name} unavailable: {reason}",
            details={"service": service_name},
        )


class InvalidInputError(AppException):
    """잘못된 요청 파라미터(Bad query parameter - 400)."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            status_code=400,
            error_code="INVALID_INPUT",
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field},
        )


class Unauthorized(AppException):
    """인증 실패(Missing or wrong bearer secret - 401)."""

    def __init__(self) -> None:
        super().__init__(status_code=401, error_code="UNAUTHORIZED", message="Unauthorized")
