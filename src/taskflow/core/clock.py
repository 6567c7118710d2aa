# src/taskflow/core/clock.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall clock in the user's timezone, so "today" matches the user's calendar."""

    def __init__(self, tz_name: str = "UTC") -> None:
        name = (tz_name or "").strip() or "UTC"
        try:
            self._tz = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", name)
            self._tz = timezone.utc

    def now(self) -> datetime:
        return datetime.now(self._tz)
