"""
Activity feed helpers: relative timestamps, the feed derived from habits
when the server has no activity endpoint, and client-side paging.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence, Tuple

from habitvault.models import Activity, Habit

logger = logging.getLogger(__name__)

STREAK_MILESTONE = 7


def _aware(ts: datetime) -> datetime:
    # the server sends UTC; naive values are read as UTC too
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _aware(datetime.fromisoformat(text))
    except ValueError:
        logger.debug("Unparsable timestamp %r", value)
        return None


def format_relative_time(ts: datetime, now: Optional[datetime] = None) -> str:
    """
    "Just now", "5m ago", "3h ago", "Yesterday", "4 days ago", then a date.

    Dates in the current year omit the year ("May 3"); older ones keep it.
    """
    ts = _aware(ts)
    now = _aware(now) if now is not None else datetime.now(timezone.utc)
    seconds = max(0, int((now - ts).total_seconds()))
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if days > 0:
        if days == 1:
            return "Yesterday"
        if days < 7:
            return f"{days} days ago"
        label = f"{ts.strftime('%b')} {ts.day}"
        return label if ts.year == now.year else f"{label}, {ts.year}"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "Just now"


def derive_activities(habits: Sequence[Habit], limit: Optional[int] = None) -> List[Activity]:
    """
    Build a feed from the habit list: one "habit_created" entry per habit and a
    "streak_milestone" entry for every current streak of a week or more.
    Habits without a readable timestamp are left out. Newest first.
    """
    activities: List[Activity] = []
    for habit in habits:
        created = parse_timestamp(habit.created_at)
        if created is not None:
            activities.append(
                Activity(
                    id=f"habit-{habit.id}-created",
                    type="habit_created",
                    title="New habit created",
                    description=f"Started tracking '{habit.name}'",
                    timestamp=created,
                    related_id=habit.id,
                    related_name=habit.name,
                )
            )
        if habit.current_streak >= STREAK_MILESTONE:
            reached = parse_timestamp(habit.updated_at) or created
            if reached is not None:
                activities.append(
                    Activity(
                        id=f"habit-{habit.id}-streak-{habit.current_streak}",
                        type="streak_milestone",
                        title="New streak milestone",
                        description=f"{habit.current_streak}-day streak achieved for '{habit.name}'",
                        timestamp=reached,
                        related_id=habit.id,
                        related_name=habit.name,
                        streak_count=habit.current_streak,
                    )
                )
    activities.sort(key=lambda a: _aware(a.timestamp), reverse=True)
    return activities if limit is None else activities[:limit]


def filter_by_date(activities: Sequence[Activity], start: Optional[date], end: Optional[date]) -> List[Activity]:
    """Keep activities whose (UTC) day falls in [start, end]. Either bound may be None."""
    kept = []
    for activity in activities:
        day = _aware(activity.timestamp).astimezone(timezone.utc).date()
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        kept.append(activity)
    return kept


def paginate(items: Sequence, page: int, per_page: int) -> Tuple[list, int]:
    """
    Slice out one 1-based page. Returns (items, page_count); out-of-range
    pages are clamped.
    """
    per_page = max(1, per_page)
    pages = max(1, math.ceil(len(items) / per_page))
    page = min(max(1, page), pages)
    start = (page - 1) * per_page
    return list(items[start:start + per_page]), pages
