"""Lookback windows served by the pipeline."""
from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from src.core.errors import DataValidationError
from src.core.utils.timestamps import utcnow

_DURATIONS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    # NVD rejects publication ranges longer than 120 days
    "119d": timedelta(days=119),
}


class LookbackWindow(str, Enum):
    H24 = "24h"
    D7 = "7d"
    D30 = "30d"
    D90 = "90d"
    D119 = "119d"

    @property
    def duration(self) -> timedelta:
        return _DURATIONS[self.value]

    def date_range(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """Return ``(now - duration, now)`` in UTC."""
        end = now or utcnow()
        return end - self.duration, end

    def contains(self, moment: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if moment is None:
            return False
        start, end = self.date_range(now)
        return start <= moment <= end

    @classmethod
    def parse(cls, value: str) -> "LookbackWindow":
        try:
            return cls(value)
        except ValueError as exc:
            raise DataValidationError(
                "timeRange", value, f"expected one of {', '.join(w.value for w in cls)}"
            ) from exc

    @classmethod
    def ascending(cls) -> List["LookbackWindow"]:
        return sorted(cls, key=lambda window: window.duration)

    @classmethod
    def descending(cls) -> List["LookbackWindow"]:
        return sorted(cls, key=lambda window: window.duration, reverse=True)


DEFAULT_WINDOW = LookbackWindow.D7
