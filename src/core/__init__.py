"""Shared domain layer for the vulnerability ingestion pipeline."""

from src.core.errors import (
    CacheUnavailableError,
    ConfigurationError,
    DataValidationError,
    ExternalAPIError,
    PipelineError,
    RateLimitedError,
    SourceUnavailableError,
)

__all__ = [
    "CacheUnavailableError",
    "ConfigurationError",
    "DataValidationError",
    "ExternalAPIError",
    "PipelineError",
    "RateLimitedError",
    "SourceUnavailableError",
]
