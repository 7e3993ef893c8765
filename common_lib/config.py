"""공통 설정 모듈(Common configuration module)."""
from __future__ import annotations

import math
import os
import re
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.errors import ConfigurationError

_ENV_PASTE_PREFIX = re.compile(r"^(?:VW_)?(?:NVD_API_KEY|CRON_SECRET)=")


class Settings(BaseSettings):
    """시스템 환경설정(System environment settings)."""

    model_config = SettingsConfigDict(
        env_prefix="VW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="vulnwatch", description="서비스 이름(Service name)")
    environment: str = Field(default="development", description="실행 환경(Runtime environment)")

    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis 접속 URL(Redis connection URL)")
    cache_ttl_seconds: int = Field(
        default=14400,
        description="자산/윈도우 캐시 TTL(Per-asset and assembled snapshot TTL in seconds)",
    )
    cache_io_timeout_seconds: float = Field(
        default=5.0,
        description="Redis 입출력 타임아웃(Redis I/O timeout in seconds)",
    )

    nvd_api_url: str = Field(
        default="https://services.nvd.nist.gov/rest/json/cves/2.0",
        description="NVD CVE API 엔드포인트(NVD CVE API endpoint)",
    )
    nvd_api_key: str = Field(default="", description="NVD API 키(NVD API key)")
    nvd_page_size: int = Field(default=2000, description="NVD resultsPerPage 값(NVD page size)")
    nvd_timeout_seconds: float = Field(default=30.0, description="NVD 요청 타임아웃(NVD request timeout)")
    nvd_delay_with_key_seconds: float = Field(
        default=0.8,
        description="API 키 사용 시 최소 요청 간격(Minimum delay between NVD requests with a key)",
    )
    nvd_delay_without_key_seconds: float = Field(
        default=6.5,
        description="API 키 미사용 시 최소 요청 간격(Minimum delay between NVD requests without a key)",
    )
    nvd_max_delay_seconds: float = Field(
        default=60.0,
        description="백오프 최대 지연(Maximum backoff delay)",
    )
    include_last_modified: bool = Field(
        default=False,
        description="lastModified 범위 검색 추가 여부(Also search NVD by lastModified range)",
    )

    kev_url: str = Field(
        default="https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json",
        description="CISA KEV 카탈로그 URL(CISA KEV catalog URL)",
    )
    kev_cache_ttl_seconds: int = Field(default=3600, description="KEV 카탈로그 캐시 TTL(KEV catalog cache TTL)")
    kev_timeout_seconds: float = Field(default=30.0, description="KEV 요청 타임아웃(KEV request timeout)")

    epss_api_url: str = Field(
        default="https://api.first.org/data/v1/epss",
        description="FIRST EPSS API URL(FIRST EPSS API URL)",
    )
    epss_batch_size: int = Field(default=100, description="EPSS 배치 크기(EPSS identifiers per request)")
    epss_timeout_seconds: float = Field(default=10.0, description="EPSS 요청 타임아웃(EPSS request timeout)")

    allow_external_calls: bool = Field(
        default=True,
        description="외부 API 호출 허용 여부(Allow outbound API calls in this environment)",
    )

    batch_size: int = Field(default=4, description="호출당 자산 수(Assets refreshed per invocation)")
    refresh_interval_seconds: int = Field(
        default=600,
        description="갱신 주기(Refresh cadence in seconds)",
    )
    cron_secret: str = Field(default="", description="크론 트리거 공유 비밀(Shared secret for the cron trigger)")

    log_level: str = Field(default="INFO", description="로그 레벨(Log level)")
    log_format: str = Field(default="text", description="로그 형식 text|json(Log format)")

    @field_validator("nvd_api_key", "cron_secret", mode="before")
    @classmethod
    def strip_secret(cls, v: Any) -> str:
        """Strip whitespace, accidental KEY=value pastes and surrounding quotes."""
        if v is None:
            return ""
        value = _ENV_PASTE_PREFIX.sub("", str(v).strip()).strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1].strip()
        return value

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return normalized

    @property
    def has_nvd_api_key(self) -> bool:
        return bool(self.nvd_api_key)

    def validate_runtime(self, catalog_size: int | None = None) -> None:
        """시작 시 필수 설정 검증(Fail fast on missing or inconsistent configuration).

        Raises:
            ConfigurationError: if a required endpoint or store setting is unusable
        """
        if not self.redis_url or urlparse(self.redis_url).scheme not in ("redis", "rediss", "unix"):
            raise ConfigurationError("redis_url", "must be a redis://, rediss:// or unix:// URL")

        for name in ("nvd_api_url", "kev_url", "epss_api_url"):
            value = getattr(self, name)
            if urlparse(value).scheme not in ("http", "https"):
                raise ConfigurationError(name, "must be an http(s) URL")

        if self.batch_size < 1:
            raise ConfigurationError("batch_size", "must be at least 1")
        if self.epss_batch_size < 1:
            raise ConfigurationError("epss_batch_size", "must be at least 1")

        if catalog_size:
            # per-asset keys must outlive one full rotation or assembly keeps falling back
            total_batches = max(1, math.ceil(catalog_size / self.batch_size))
            cycle_seconds = total_batches * self.refresh_interval_seconds
            if self.cache_ttl_seconds <= cycle_seconds:
                raise ConfigurationError(
                    "cache_ttl_seconds",
                    f"must exceed one full refresh cycle ({cycle_seconds}s)",
                )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """설정 인스턴스 반환(Return a cached settings instance)."""

    return Settings()


def load_environment() -> None:
    """기본 환경변수를 로드(Load base environment variables)."""

    os.environ.setdefault("TZ", "UTC")
