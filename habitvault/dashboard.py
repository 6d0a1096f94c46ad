"""
Aggregates shown on the dashboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from habitvault.errors import ApiError
from habitvault.models import Activity, Quote
from habitvault.services import ActivityService, AnalyticsService, QuoteService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardData:
    total_habits: int = 0
    active_streaks: int = 0
    completed_today: int = 0
    completion_rate: float = 0.0
    longest_streak: int = 0
    quote: Optional[Quote] = None
    recent_activity: List[Activity] = field(default_factory=list)
    error: Optional[str] = None


def load_dashboard(
    analytics: AnalyticsService,
    quotes: Optional[QuoteService] = None,
    today: Optional[date] = None,
    activities: Optional[ActivityService] = None,
    activity_limit: int = 5,
) -> DashboardData:
    today = today or date.today()
    quote = quotes.get_daily_quote(today) if quotes is not None else None
    # the feed never raises; an unavailable feed is just empty
    recent = activities.get_recent_activities(activity_limit) if activities is not None else []
    try:
        completed_today = analytics.get_completed_count(today)
        summary = analytics.get_summary()
    except ApiError as exc:
        logger.warning("Dashboard data unavailable: %s", exc)
        return DashboardData(
            quote=quote,
            recent_activity=recent,
            error="Failed to load dashboard data. Please try again later.",
        )

    return DashboardData(
        total_habits=summary.total_habits,
        active_streaks=sum(1 for s in summary.top_streaks if s.current_streak > 0),
        completed_today=completed_today,
        completion_rate=summary.completion_rate,
        longest_streak=summary.longest_streak,
        quote=quote,
        recent_activity=recent,
    )
