"""소스 클라이언트 데이터 모델(Source client data models)."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RateLimiterState(BaseModel):
    """NVD 요청 간격 상태(Persisted NVD pacing state).

    Stored between invocations so backoff carries over when every cron call
    runs in a fresh process.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_request_at: float = Field(default=0.0, description="마지막 요청 시각(epoch seconds)")
    consecutive_errors: int = Field(default=0, ge=0, description="연속 오류 횟수(Consecutive failures)")
