"""재시도 로직 설정 및 유틸리티(Retry logic configuration and utilities)."""
from __future__ import annotations

from typing import Any

import httpx
from tenacity import (
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)


def _is_retryable_exception(exc: BaseException) -> bool:
    """재시도 가능한 예외인지 확인(Check if exception is retryable).

    Retryable exceptions:
    - httpx.ConnectError: Network connection errors
    - httpx.ReadTimeout: Request timeout
    - httpx.HTTPStatusError with status 5xx: Server errors

    Client errors (4xx) are never retried.
    """
    if isinstance(exc, httpx.ConnectError):
        return True

    if isinstance(exc, httpx.ReadTimeout):
        return True

    if isinstance(exc, httpx.HTTPStatusError):
        return 500 <= exc.response.status_code < 600

    return False


def get_retry_strategy(attempts: int = 3) -> dict[str, Any]:
    """
    AsyncRetrying용 재시도 전략 설정 반환(Return retry strategy configuration for AsyncRetrying).

    Used for the KEV catalog and EPSS lookups. NVD requests are paced by the
    rate limiter instead and are not wrapped here.

    Configuration:
    - Max attempts: 3 (original attempt + 2 retries)
    - Backoff: Exponential (1s, 2s, 4s)

    Returns:
        Dictionary of arguments for AsyncRetrying
    """
    return {
        "stop": stop_after_attempt(attempts),
        "wait": wait_exponential(multiplier=1, min=1, max=4),
        "retry": retry_if_exception(_is_retryable_exception),
        "reraise": True,
    }
