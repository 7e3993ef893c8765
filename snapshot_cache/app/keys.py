"""캐시 키 레이아웃(Cache key layout shared by every writer and reader)."""
from __future__ import annotations

from src.core.windows import LookbackWindow

METADATA_KEY = "vuln:metadata"
BATCH_INDEX_KEY = "refresh:batchIndex"
RATE_LIMIT_KEY = "ratelimit:nvd"
KEV_CATALOG_KEY = "kev:catalog"


def _window_value(window: LookbackWindow | str) -> str:
    return window.value if isinstance(window, LookbackWindow) else str(window)


def asset_window_key(asset_id: str, window: LookbackWindow | str) -> str:
    return f"vuln:asset:{asset_id}:{_window_value(window)}"


def snapshot_key(window: LookbackWindow | str) -> str:
    return f"vuln:all:{_window_value(window)}"
