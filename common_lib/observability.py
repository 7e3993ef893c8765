"""관찰성 및 구조화 로깅(Observability and structured logging)."""
from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

# Request ID for HTTP calls, invocation ID for refresh runs
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="system")


def get_request_id() -> str:
    """요청 ID 조회(Retrieve the current request ID).

    Returns:
        Current request ID from context, or "system" if not set.
    """
    return request_id_ctx.get()


def bind_request_id(value: str | None = None) -> tuple[str, Token[str]]:
    """요청/실행 ID 바인딩(Bind a request or invocation ID to the logging context).

    Returns:
        The bound ID and the token needed to reset it.
    """
    request_id = value or uuid.uuid4().hex[:12]
    return request_id, request_id_ctx.set(request_id)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """사용자 정의 JSON 포매터(Custom JSON formatter with request ID injection)."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record:
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record.pop("asctime", None)
        log_record["request_id"] = get_request_id()

        if "level" not in log_record:
            log_record["level"] = record.levelname
        if "message" not in log_record:
            log_record["message"] = record.getMessage()
        if "name" not in log_record:
            log_record["name"] = record.name
