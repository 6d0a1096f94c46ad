"""
Date logic: scheduled days, derived day states, calendar grids and frames.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from habitvault.models import (
    COMPLETED,
    MISSED,
    NOT_MARKED,
    NOT_SCHEDULED,
    WEEKDAY_TOKENS,
    Checkin,
    Habit,
    HeatmapPayload,
    parse_day,
)

logger = logging.getLogger(__name__)

CALENDAR_CELLS = 42  # 6 rows of 7 days


def is_scheduled(d: date, target_type: str, target_days: Optional[Iterable[str]] = None) -> bool:
    if target_type == "daily":
        return True
    if target_type == "weekdays":
        return d.weekday() < 5
    if target_type == "custom":
        if not target_days:
            return False
        return WEEKDAY_TOKENS[d.weekday()] in {t.lower() for t in target_days}
    return False


def is_habit_scheduled(habit: Habit, d: date) -> bool:
    return is_scheduled(d, habit.target_type, habit.target_days)


def resolve_day(habit: Habit, d: date, recorded: Optional[str], today: Optional[date] = None) -> str:
    """
    Derive the state of one habit on one day.

    An explicit check-in always wins. Otherwise unscheduled days are
    'not-scheduled', and a scheduled day counts as an implicit miss only if
    it is in the past and not before the habit started.
    """
    if recorded:
        return recorded
    if not is_habit_scheduled(habit, d):
        return NOT_SCHEDULED
    today = today or date.today()
    if habit.start_date is not None and habit.start_date <= d < today:
        return MISSED
    return NOT_MARKED


def resolve_status(
    habit: Habit,
    d: date,
    index: Mapping[int, Checkin],
    today: Optional[date] = None,
) -> str:
    """
    Resolve against a one-day check-in index (habit id -> check-in).
    """
    checkin = index.get(habit.id)
    recorded = checkin.status if checkin is not None and checkin.date == d else None
    return resolve_day(habit, d, recorded, today)


def next_status(current: Optional[str]) -> str:
    """
    Toggle cycle: completed -> missed, anything else -> completed.
    """
    return MISSED if current == COMPLETED else COMPLETED


def daterange(start: date, end: date) -> List[date]:
    """
    Inclusive date range.
    """
    days = []
    cur = start
    while cur <= end:
        days.append(cur)
        cur += timedelta(days=1)
    return days


def month_bounds(d: date) -> Tuple[date, date]:
    start = d.replace(day=1)
    # next month start
    if start.month == 12:
        nm = start.replace(year=start.year + 1, month=1, day=1)
    else:
        nm = start.replace(month=start.month + 1, day=1)
    end = nm - timedelta(days=1)
    return start, end


def checkin_lookup(checkins: Sequence[Checkin]) -> Dict[str, str]:
    """
    'YYYY-MM-DD' -> status
    """
    return {c.date.isoformat(): c.status for c in checkins}


def _normalize_lookup(lookup: Mapping[str, str]) -> Dict[date, str]:
    return {parse_day(k): v for k, v in lookup.items()}


@dataclass(frozen=True)
class CalendarDay:
    day: date
    in_month: bool
    is_today: bool
    is_scheduled: bool
    status: Optional[str] = None


def calendar_days(
    habit: Habit,
    lookup: Mapping[str, str],
    year: int,
    month: int,
    today: Optional[date] = None,
) -> List[CalendarDay]:
    """
    Monday-first 6x7 grid for one month (month is 1..12).

    Only cells inside the month carry a status. Bad dates in the lookup
    are logged and give an empty grid instead of an exception.
    """
    today = today or date.today()
    try:
        statuses = _normalize_lookup(lookup)
        month_start, month_end = month_bounds(date(year, month, 1))
    except (TypeError, ValueError):
        logger.exception("Could not build calendar for habit %s (%s-%s)", habit.id, year, month)
        return []

    first_cell = month_start - timedelta(days=month_start.weekday())
    days = []
    for offset in range(CALENDAR_CELLS):
        d = first_cell + timedelta(days=offset)
        in_month = month_start <= d <= month_end
        days.append(
            CalendarDay(
                day=d,
                in_month=in_month,
                is_today=d == today,
                is_scheduled=is_habit_scheduled(habit, d),
                status=resolve_day(habit, d, statuses.get(d), today) if in_month else None,
            )
        )
    return days


def _due_days(habit: Habit, start: date, end: date) -> List[date]:
    if habit.start_date is not None and habit.start_date > start:
        start = habit.start_date
    return [d for d in daterange(start, end) if is_habit_scheduled(habit, d)]


def completion_rate(habit: Habit, lookup: Mapping[str, str], start: date, end: date) -> float:
    """
    completed / scheduled for the window, ignoring days before the habit started.
    """
    due = _due_days(habit, start, end)
    if not due:
        return 0.0
    done = sum(1 for d in due if lookup.get(d.isoformat()) == COMPLETED)
    return done / len(due)


def heatmap_frame(
    habit: Habit,
    lookup: Mapping[str, str],
    month_start: date,
    month_end: date,
    today: Optional[date] = None,
) -> pd.DataFrame:
    """
    Build a dataframe for a calendar-like heatmap for one month.

    Columns:
      - day (date)
      - day_num (int or None outside the month)
      - status (derived day state or None outside the month)
      - dow (0..6)
      - week (int, week index within the month)
    """
    today = today or date.today()
    rows = []
    # Align weeks to Monday for a stable calendar layout
    first_monday = month_start - timedelta(days=month_start.weekday())
    for d in daterange(first_monday, month_end):
        in_month = month_start <= d <= month_end
        rows.append(
            {
                "day": d,
                "day_num": d.day if in_month else None,
                "status": resolve_day(habit, d, lookup.get(d.isoformat()), today) if in_month else None,
                "dow": d.weekday(),
                "week": (d - first_monday).days // 7,
            }
        )
    return pd.DataFrame(rows)


def daily_progress_frame(
    habits: Sequence[Habit],
    heatmap: HeatmapPayload,
    month_start: date,
    month_end: date,
) -> pd.DataFrame:
    """
    Build a per-day frame for the month:
      - due, done
      - cumulative totals and the daily completion rate
    """
    days = daterange(month_start, month_end)
    due_counts = {d: 0 for d in days}
    done_counts = {d: 0 for d in days}

    for h in habits:
        entry = heatmap.get(h.id)
        statuses = entry.checkins if entry else {}
        for day in _due_days(h, month_start, month_end):
            due_counts[day] += 1
            if statuses.get(day.isoformat()) == COMPLETED:
                done_counts[day] += 1

    df = pd.DataFrame(
        {
            "day": days,
            "due": [due_counts[d] for d in days],
            "done": [done_counts[d] for d in days],
        }
    )
    df["cum_due"] = df["due"].cumsum()
    df["cum_done"] = df["done"].cumsum()
    df["completion_rate"] = [(done / due) if due else 0.0 for done, due in zip(df["done"], df["due"])]
    return df
