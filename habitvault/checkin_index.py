"""
One day's check-ins for every habit, fetched as a bounded fan-out.

The server has no batched read, so each habit costs one request. Requests
run on a small thread pool; a habit whose request fails or times out is
left out of the result and recorded in ``CheckinIndex.failed``.

Workers never notify. Their errors are collected in ``CheckinIndex.errors``
and reported by the caller on its own thread.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from habitvault.models import Checkin, Habit

if TYPE_CHECKING:
    from habitvault.services import HabitService

logger = logging.getLogger(__name__)


class CheckinIndex(Dict[int, Checkin]):
    """habit id -> check-in for a single day. Habits without one are absent."""

    def __init__(self, day: date, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.day = day
        self.errors: Dict[int, Exception] = {}

    @property
    def failed(self) -> set:
        return set(self.errors)

    def first_error(self) -> Optional[Exception]:
        return next(iter(self.errors.values()), None)


def fetch_checkin_index(
    service: "HabitService",
    day: date,
    habits: Optional[Iterable[Habit]] = None,
    *,
    max_workers: int = 8,
    timeout: Optional[float] = None,
) -> CheckinIndex:
    if habits is None:
        habits = service.list_habits()
    habits = list(habits)
    index = CheckinIndex(day)
    if not habits:
        return index

    def fetch(habit: Habit):
        return service.get_checkins(habit.id, day, day, timeout=timeout, notify=False)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(habits)))) as pool:
        futures = {habit.id: pool.submit(fetch, habit) for habit in habits}
        for habit_id, future in futures.items():
            try:
                checkins = future.result()
            except Exception as exc:  # one habit must not sink the whole day
                logger.warning("Check-in fetch for habit %s on %s failed: %s", habit_id, day, exc)
                index.errors[habit_id] = exc
                continue
            match = next((c for c in checkins if c.date == day), None)
            if match is not None:
                index[habit_id] = match

    if index.errors:
        logger.info("Check-in index for %s omits %d habit(s)", day, len(index.errors))
    return index
