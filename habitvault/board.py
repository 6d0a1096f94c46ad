"""
Local state for one day's habit view.

A board keeps the habit copies shown on a page (all habits, the ones
scheduled for the day, and the completed / incomplete buckets) together
with the day's check-in index. Updates replace whole Habit copies so
every list stays consistent.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence

from habitvault.metrics import is_habit_scheduled, resolve_status
from habitvault.models import COMPLETED, MISSED, NOT_MARKED, SKIPPED, Checkin, Habit, StreakUpdate

SORT_OPTIONS = ("name", "streak", "created", "updated")
FILTER_OPTIONS = ("all", "daily", "weekdays", "custom")


def sort_habits(habits: Sequence[Habit], by: str = "name") -> List[Habit]:
    if by == "streak":
        return sorted(habits, key=lambda h: (-h.current_streak, h.name.lower()))
    if by == "created":
        return sorted(habits, key=lambda h: h.created_at or "", reverse=True)
    if by == "updated":
        return sorted(habits, key=lambda h: h.updated_at or "", reverse=True)
    return sorted(habits, key=lambda h: h.name.lower())


def filter_habits(habits: Sequence[Habit], search: str = "", target_type: str = "all") -> List[Habit]:
    needle = (search or "").strip().lower()
    return [
        h
        for h in habits
        if needle in h.name.lower() and (target_type == "all" or h.target_type == target_type)
    ]


class DayBoard:
    def __init__(
        self,
        day: date,
        habits: Sequence[Habit],
        checkins: Optional[Mapping[int, Checkin]] = None,
        *,
        today: Optional[date] = None,
    ) -> None:
        self.day = day
        self.today = today
        self.habits: List[Habit] = list(habits)
        self.scheduled: List[Habit] = sort_habits([h for h in self.habits if is_habit_scheduled(h, day)])
        self.checkins: Dict[int, Checkin] = dict(checkins or {})
        self.completed: List[Habit] = []
        self.incomplete: List[Habit] = []
        self._rebuild_buckets()

    def _rebuild_buckets(self) -> None:
        self.completed = [h for h in self.scheduled if self._recorded(h.id) == COMPLETED]
        self.incomplete = [h for h in self.scheduled if self._recorded(h.id) != COMPLETED]

    def _recorded(self, habit_id: int) -> Optional[str]:
        checkin = self.checkins.get(habit_id)
        return checkin.status if checkin else None

    def habit(self, habit_id: int) -> Optional[Habit]:
        return next((h for h in self.habits if h.id == habit_id), None)

    # reads

    def status_of(self, habit_id: int) -> str:
        """
        Resolved day state for the board's day (see metrics.resolve_status).
        """
        habit = self.habit(habit_id)
        if habit is None:
            raise KeyError(habit_id)
        return resolve_status(habit, self.day, self.checkins, self.today)

    def toggle_source(self, habit_id: int) -> str:
        """
        What the toggle starts from: the explicit status, or 'not-marked'.
        """
        recorded = self._recorded(habit_id)
        if recorded is None or recorded == SKIPPED:
            return NOT_MARKED
        return recorded

    def is_completed(self, habit_id: int) -> bool:
        return self._recorded(habit_id) == COMPLETED

    def is_missed(self, habit_id: int) -> bool:
        return self._recorded(habit_id) == MISSED

    def is_not_marked(self, habit_id: int) -> bool:
        return self.toggle_source(habit_id) == NOT_MARKED

    # writes

    def apply_status(self, habit_id: int, status: str) -> None:
        """
        Optimistic write: record the status locally and move the habit between buckets.
        """
        now = datetime.now().isoformat(timespec="seconds")
        current = self.checkins.get(habit_id)
        self.checkins[habit_id] = Checkin(
            id=current.id if current else 0,
            habit_id=habit_id,
            date=self.day,
            status=status,
            created_at=current.created_at if current else now,
            updated_at=now,
        )
        habit = next((h for h in self.scheduled if h.id == habit_id), None)
        if habit is None:
            return
        self.completed = [h for h in self.completed if h.id != habit_id]
        self.incomplete = [h for h in self.incomplete if h.id != habit_id]
        if status == COMPLETED:
            self.completed.append(habit)
        else:
            self.incomplete.append(habit)

    def restore_checkin(self, habit_id: int, checkin: Optional[Checkin]) -> None:
        if checkin is None:
            self.checkins.pop(habit_id, None)
        else:
            self.checkins[habit_id] = checkin
        self._rebuild_buckets()

    def replace_checkins(self, checkins: Mapping[int, Checkin]) -> None:
        """
        Swap in a freshly fetched index wholesale.
        """
        self.checkins = dict(checkins)
        self._rebuild_buckets()

    def merge_streaks(self, habit_id: int, streaks: StreakUpdate) -> None:
        def merged(habits: List[Habit]) -> List[Habit]:
            return [
                h.model_copy(update=streaks.model_dump())
                if h.id == habit_id
                else h
                for h in habits
            ]

        self.habits = merged(self.habits)
        self.scheduled = merged(self.scheduled)
        self.completed = merged(self.completed)
        self.incomplete = merged(self.incomplete)
