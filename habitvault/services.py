"""
REST services: habits, check-ins, analytics, quotes and activity.

Thin wrappers over ApiClient that build paths and query strings and turn
JSON into pydantic models. Errors propagate as ApiError unless noted.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from habitvault import api
from habitvault.api import ApiClient
from habitvault.activity import derive_activities
from habitvault.checkin_index import CheckinIndex, fetch_checkin_index
from habitvault.errors import ApiError, AuthError, ValidationError
from habitvault.models import (
    ACTIVITY_TYPES,
    COMPLETED,
    HABIT_NAME_MAX,
    MISSED,
    TARGET_TYPES,
    WEEKDAY_TOKENS,
    Activity,
    AnalyticsSummary,
    Checkin,
    Habit,
    HeatmapPayload,
    Quote,
    StreakUpdate,
    heatmap_from_dict,
)

logger = logging.getLogger(__name__)

WRITABLE_STATUSES = (COMPLETED, MISSED)


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


def _validate_habit_fields(name: Optional[str], target_type: Optional[str], target_days: Optional[Sequence[str]]) -> dict:
    errors = {}
    if name is not None:
        if not name.strip():
            errors["name"] = "Name is required"
        elif len(name.strip()) > HABIT_NAME_MAX:
            errors["name"] = f"Name must be at most {HABIT_NAME_MAX} characters"
    if target_type is not None:
        if target_type not in TARGET_TYPES:
            errors["target_type"] = f"Target type must be one of {', '.join(TARGET_TYPES)}"
        elif target_type == "custom":
            if not target_days:
                errors["target_days"] = "Pick at least one day for a custom schedule"
            elif any(d not in WEEKDAY_TOKENS for d in target_days):
                errors["target_days"] = "Unknown weekday"
    return errors


class HabitService:
    def __init__(self, client: ApiClient, *, fanout_workers: int = 8, fetch_timeout: Optional[float] = None) -> None:
        self.client = client
        self.fanout_workers = fanout_workers
        self.fetch_timeout = fetch_timeout

    # habits

    def list_habits(self) -> List[Habit]:
        return [Habit.model_validate(h) for h in self.client.get(api.HABITS) or []]

    def get_habit(self, habit_id: int) -> Habit:
        return Habit.model_validate(self.client.get(api.habit_url(habit_id)))

    def create_habit(
        self,
        name: str,
        target_type: str,
        start_date: date,
        target_days: Optional[Sequence[str]] = None,
    ) -> Habit:
        errors = _validate_habit_fields(name, target_type, target_days)
        if errors:
            raise ValidationError("Please fix the highlighted fields", errors)
        payload = {
            "name": name.strip(),
            "target_type": target_type,
            "start_date": start_date.isoformat(),
        }
        if target_type == "custom":
            payload["target_days"] = list(target_days or [])
        return Habit.model_validate(self.client.post(api.HABITS, payload))

    def update_habit(
        self,
        habit_id: int,
        *,
        name: Optional[str] = None,
        target_type: Optional[str] = None,
        target_days: Optional[Sequence[str]] = None,
    ) -> Habit:
        errors = _validate_habit_fields(name, target_type, target_days)
        if errors:
            raise ValidationError("Please fix the highlighted fields", errors)
        payload: dict = {}
        if name is not None:
            payload["name"] = name.strip()
        if target_type is not None:
            payload["target_type"] = target_type
        if target_days is not None:
            payload["target_days"] = list(target_days)
        return Habit.model_validate(self.client.put(api.habit_url(habit_id), payload))

    def delete_habit(self, habit_id: int) -> None:
        self.client.delete(api.habit_url(habit_id))

    # check-ins

    def get_checkins(
        self,
        habit_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        *,
        timeout: Optional[float] = None,
        notify: bool = True,
    ) -> List[Checkin]:
        data = self.client.get(
            api.habit_checkins_url(habit_id),
            params={"start_date": _iso(start_date), "end_date": _iso(end_date)},
            timeout=timeout,
            notify=notify,
        )
        return [Checkin.model_validate(c) for c in data or []]

    def create_checkin(self, habit_id: int, day: date, status: str) -> StreakUpdate:
        """
        Create or update the check-in for (habit, day); returns the server's streaks.
        """
        if status not in WRITABLE_STATUSES:
            raise ValidationError('Status must be either "completed" or "missed"', {"status": "invalid"})
        data = self.client.post(
            api.habit_checkins_url(habit_id),
            {"date": day.isoformat(), "status": status},
        )
        return StreakUpdate.model_validate(data or {})

    def batch_update_checkins(self, day: date, updates: Iterable[Tuple[int, str]]) -> None:
        updates = [{"habit_id": habit_id, "status": status} for habit_id, status in updates]
        if not updates:
            return
        for u in updates:
            if u["status"] not in WRITABLE_STATUSES:
                raise ValidationError('Status must be either "completed" or "missed"', {"status": "invalid"})
        self.client.post(api.CHECKINS_BATCH, {"date": day.isoformat(), "updates": updates})

    def get_all_checkins_by_date(self, day: date, habits: Optional[Iterable[Habit]] = None) -> CheckinIndex:
        """
        One day's check-ins for every habit.

        Partial failures are reported once and leave a partial index. An
        expired token aborts the whole read with AuthError.
        """
        index = fetch_checkin_index(
            self,
            day,
            habits,
            max_workers=self.fanout_workers,
            timeout=self.fetch_timeout,
        )
        auth = next((e for e in index.errors.values() if isinstance(e, AuthError)), None)
        if auth is not None:
            self.client.report_error(auth)
            raise auth
        error = index.first_error()
        if isinstance(error, ApiError):
            self.client.report_error(error)
        return index


class AnalyticsService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def get_summary(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        period: Optional[str] = None,
    ) -> AnalyticsSummary:
        data = self.client.get(
            api.ANALYTICS_SUMMARY,
            params={"start_date": _iso(start_date), "end_date": _iso(end_date), "period": period},
        )
        return AnalyticsSummary.model_validate(data or {})

    def get_heatmap(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        period: Optional[str] = None,
    ) -> HeatmapPayload:
        data = self.client.get(
            api.ANALYTICS_HEATMAP,
            params={"start_date": _iso(start_date), "end_date": _iso(end_date), "period": period},
        )
        return heatmap_from_dict(data or {})

    def get_completed_count(self, day: date) -> int:
        heatmap = self.get_heatmap(day, day)
        key = day.isoformat()
        return sum(1 for entry in heatmap.values() if entry.checkins.get(key) == COMPLETED)


FALLBACK_QUOTES = [
    Quote(id=1, text="The secret of getting ahead is getting started.", author="Mark Twain", category="motivation"),
    Quote(id=2, text="It's not about perfect. It's about effort.", author="Jillian Michaels", category="motivation"),
    Quote(id=3, text="Don't watch the clock; do what it does. Keep going.", author="Sam Levenson", category="motivation"),
    Quote(id=4, text="The only way to do great work is to love what you do.", author="Steve Jobs", category="motivation"),
    Quote(
        id=5,
        text="Success is not final, failure is not fatal: It is the courage to continue that counts.",
        author="Winston Churchill",
        category="motivation",
    ),
    Quote(id=6, text="Believe you can and you're halfway there.", author="Theodore Roosevelt", category="motivation"),
    Quote(id=7, text="Your habits will determine your future.", author="Jack Canfield", category="habits"),
    Quote(
        id=8,
        text="We are what we repeatedly do. Excellence, then, is not an act, but a habit.",
        author="Aristotle",
        category="habits",
    ),
]


def fallback_daily_quote(today: Optional[date] = None) -> Quote:
    today = today or date.today()
    return FALLBACK_QUOTES[today.timetuple().tm_yday % len(FALLBACK_QUOTES)]


class QuoteService:
    """Quotes are decoration: API failures fall back to the bundled list."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def get_daily_quote(self, today: Optional[date] = None) -> Quote:
        try:
            return Quote.model_validate(self.client.get(api.QUOTES_DAILY) or {})
        except ApiError as exc:
            logger.info("Daily quote unavailable (%s); using fallback", exc)
            return fallback_daily_quote(today)

    def get_random_quote(self) -> Quote:
        try:
            return Quote.model_validate(self.client.get(api.QUOTES_RANDOM) or {})
        except ApiError as exc:
            logger.info("Random quote unavailable (%s); using fallback", exc)
            return random.choice(FALLBACK_QUOTES)

    def get_quotes_by_category(self, category: str) -> List[Quote]:
        try:
            return [Quote.model_validate(q) for q in self.client.get(api.quotes_by_category_url(category)) or []]
        except ApiError as exc:
            logger.info("Quotes for %r unavailable (%s)", category, exc)
            return []


class ActivityService:
    """
    The activity feed. Older servers have no activity endpoints, so every
    read falls back to a feed derived from the habit list.
    """

    def __init__(self, client: ApiClient, habits: Optional[HabitService] = None) -> None:
        self.client = client
        self.habits = habits or HabitService(client)

    def _fetch(self, path: str, limit: int) -> Optional[List[Activity]]:
        try:
            data = self.client.get(path, params={"limit": limit}, notify=False)
        except ApiError as exc:
            logger.info("Activity endpoint %s unavailable (%s)", path, exc)
            return None
        return [Activity.model_validate(a) for a in data or []]

    def get_recent_activities(self, limit: int = 5) -> List[Activity]:
        activities = self._fetch(api.ACTIVITIES_RECENT, limit)
        if activities is not None:
            return activities[:limit]
        try:
            return derive_activities(self.habits.list_habits(), limit)
        except ApiError as exc:
            logger.warning("Recent activity unavailable: %s", exc)
            return []

    def get_all_activities(self, limit: int = 20) -> List[Activity]:
        activities = self._fetch(api.ACTIVITIES, limit)
        if activities is not None:
            return activities
        return self.get_recent_activities(limit)

    def get_activities_by_type(self, activity_type: str, limit: int = 10) -> List[Activity]:
        if activity_type not in ACTIVITY_TYPES:
            raise ValidationError("Invalid activity type", {"type": "invalid"})
        activities = self._fetch(api.activities_by_type_url(activity_type), limit)
        if activities is not None:
            return activities
        return [a for a in self.get_all_activities(50) if a.type == activity_type][:limit]
