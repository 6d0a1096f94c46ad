"""
Heatmap data cached per month.

Months are zero-based (0 = January) like the calendar navigation that
drives this cache; keys are "{year}-{month+1}". Entries live as long as
the cache instance and are never invalidated. A failed fetch stores the
error message and leaves nothing behind. Navigating to the month fetches
it again; a plain reload of the month that just failed does not, unless
asked to retry.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import TYPE_CHECKING, Dict, Optional

from habitvault.errors import ApiError
from habitvault.models import HeatmapPayload

if TYPE_CHECKING:
    from habitvault.services import AnalyticsService

logger = logging.getLogger(__name__)


def cache_key(year: int, month: int) -> str:
    return f"{year}-{month + 1}"


def month_range(year: int, month: int):
    """
    First and last day of a zero-based month.
    """
    last = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, 1), date(year, month + 1, last)


class MonthCache:
    def __init__(
        self,
        service: "AnalyticsService",
        year: int,
        month: int,
        *,
        period: Optional[str] = None,
        initial: Optional[HeatmapPayload] = None,
    ) -> None:
        if not 0 <= month <= 11:
            raise ValueError(f"month must be 0..11, got {month}")
        self.service = service
        self.period = period
        self.current_year = year
        self.current_month = month
        self.loading = False
        self.error: Optional[str] = None
        self.data: Optional[HeatmapPayload] = None
        self._months: Dict[str, HeatmapPayload] = {}
        self._failed: Optional[str] = None
        if initial is not None:
            self._months[cache_key(year, month)] = initial
            self.data = initial

    def __contains__(self, key) -> bool:
        year, month = key
        return cache_key(year, month) in self._months

    def get_month(self, year: int, month: int) -> Optional[HeatmapPayload]:
        key = cache_key(year, month)
        cached = self._months.get(key)
        if cached is not None:
            self.data = cached
            return cached

        start, end = month_range(year, month)
        self.loading = True
        self.error = None
        try:
            payload = self.service.get_heatmap(start, end, self.period)
        except ApiError as exc:
            logger.error("Error fetching heatmap data for %s: %s", key, exc)
            self.error = exc.message
            self._failed = key
            return None
        finally:
            self.loading = False

        self._failed = None
        self._months[key] = payload
        self.data = payload
        return payload

    def load(self, *, retry: bool = False) -> Optional[HeatmapPayload]:
        """
        Data for the current month. After a failed fetch of that month this
        returns None without a new request, unless retry=True.
        """
        if not retry and self._failed == cache_key(self.current_year, self.current_month):
            return None
        return self.get_month(self.current_year, self.current_month)

    def navigate_prev(self) -> Optional[HeatmapPayload]:
        if self.loading:
            return None
        if self.current_month == 0:
            self.current_month = 11
            self.current_year -= 1
        else:
            self.current_month -= 1
        return self.get_month(self.current_year, self.current_month)

    def navigate_next(self) -> Optional[HeatmapPayload]:
        if self.loading:
            return None
        if self.current_month == 11:
            self.current_month = 0
            self.current_year += 1
        else:
            self.current_month += 1
        return self.get_month(self.current_year, self.current_month)
