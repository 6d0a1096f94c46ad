"""
Optimistic completion toggle.

Each (habit, day) pair runs a small state machine:

    IDLE -> PENDING -> RECONCILING -> SETTLED
                                  +-> ROLLED_BACK

PENDING holds the optimistic guess already written to the board. A
successful reply merges the server's streaks; a failure re-reads the
day's check-ins and replaces the local guess. Every toggle bumps a
per-key sequence number, and replies or refetches that started before
the latest toggle of a key never overwrite it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from habitvault.api import LogNotifier, Notifier
from habitvault.board import DayBoard
from habitvault.checkin_index import CheckinIndex
from habitvault.errors import ApiError
from habitvault.metrics import next_status
from habitvault.models import COMPLETED, Checkin, StreakUpdate
from habitvault.services import HabitService

logger = logging.getLogger(__name__)

Key = Tuple[int, date]

TOGGLE_FAILED_MESSAGE = "Failed to update habit status"


class ToggleState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RECONCILING = "reconciling"
    SETTLED = "settled"
    ROLLED_BACK = "rolled_back"


class ToggleEvent(str, Enum):
    TOGGLE = "toggle"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    MERGED = "merged"
    REVERTED = "reverted"


TRANSITIONS = {
    (ToggleState.IDLE, ToggleEvent.TOGGLE): ToggleState.PENDING,
    (ToggleState.SETTLED, ToggleEvent.TOGGLE): ToggleState.PENDING,
    (ToggleState.ROLLED_BACK, ToggleEvent.TOGGLE): ToggleState.PENDING,
    (ToggleState.PENDING, ToggleEvent.SUCCEEDED): ToggleState.RECONCILING,
    (ToggleState.PENDING, ToggleEvent.FAILED): ToggleState.RECONCILING,
    (ToggleState.RECONCILING, ToggleEvent.MERGED): ToggleState.SETTLED,
    (ToggleState.RECONCILING, ToggleEvent.REVERTED): ToggleState.ROLLED_BACK,
}


class InvalidTransition(ValueError):
    pass


@dataclass
class ToggleRecord:
    habit_id: int
    day: date
    state: ToggleState = ToggleState.IDLE
    guess: Optional[str] = None
    seq: int = 0
    error: Optional[str] = None


class ToggleController:
    def __init__(
        self,
        service: HabitService,
        board: DayBoard,
        *,
        notifier: Optional[Notifier] = None,
        on_refresh: Optional[Callable[[], object]] = None,
        listeners: Iterable[Callable[[int, StreakUpdate], None]] = (),
        cooldown: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.board = board
        self.notifier = notifier or LogNotifier()
        self.on_refresh = on_refresh
        self.listeners: List[Callable[[int, StreakUpdate], None]] = list(listeners)
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.RLock()
        self.records: Dict[Key, ToggleRecord] = {}
        self._seq: Dict[Key, int] = {}
        self._in_flight: set = set()
        self._started: Dict[Key, float] = {}

    # state machine

    def record(self, habit_id: int) -> ToggleRecord:
        key = (habit_id, self.board.day)
        with self._lock:
            if key not in self.records:
                self.records[key] = ToggleRecord(habit_id=habit_id, day=self.board.day)
            return self.records[key]

    def dispatch(self, key: Key, event: ToggleEvent, **changes) -> ToggleRecord:
        with self._lock:
            rec = self.records.get(key) or ToggleRecord(habit_id=key[0], day=key[1])
            target = TRANSITIONS.get((rec.state, event))
            if target is None:
                raise InvalidTransition(f"{event.value} is not allowed in state {rec.state.value}")
            rec.state = target
            for name, value in changes.items():
                setattr(rec, name, value)
            self.records[key] = rec
            return rec

    def is_busy(self, habit_id: int) -> bool:
        with self._lock:
            return self._blocked((habit_id, self.board.day))

    def _blocked(self, key: Key) -> bool:
        if key in self._in_flight:
            return True
        started = self._started.get(key)
        return started is not None and self._clock() - started < self.cooldown

    # toggle

    def toggle(self, habit_id: int) -> Optional[ToggleRecord]:
        """
        Flip the habit between completed and missed for the board's day.

        Returns None when the habit is still busy from a previous click.
        Server errors are re-raised after the board has been rolled back.
        """
        day = self.board.day
        key = (habit_id, day)
        with self._lock:
            if self._blocked(key):
                logger.debug("Ignoring toggle for habit %s on %s: busy", habit_id, day)
                return None
            if self.board.habit(habit_id) is None:
                raise KeyError(habit_id)
            previous = self.board.checkins.get(habit_id)
            new_status = next_status(self.board.status_of(habit_id))
            seq = self._seq.get(key, 0) + 1
            self._seq[key] = seq
            self._in_flight.add(key)
            self._started[key] = self._clock()
            self.dispatch(key, ToggleEvent.TOGGLE, guess=new_status, seq=seq, error=None)
            self.board.apply_status(habit_id, new_status)

        logger.info("Toggling habit %s on %s -> %s", habit_id, day, new_status)
        try:
            streaks = self.service.create_checkin(habit_id, day, new_status)
        except Exception as exc:
            self._roll_back(key, seq, previous, exc)
            self._refresh()
            raise
        finally:
            with self._lock:
                self._in_flight.discard(key)

        rec = self._reconcile(key, seq, streaks)
        if new_status == COMPLETED:
            self.notifier.success("Habit marked as completed")
        else:
            self.notifier.success("Habit marked as missed")
        self._refresh()
        return rec

    def _reconcile(self, key: Key, seq: int, streaks: StreakUpdate) -> ToggleRecord:
        habit_id = key[0]
        with self._lock:
            self.dispatch(key, ToggleEvent.SUCCEEDED)
            if seq == self._seq.get(key):
                self.board.merge_streaks(habit_id, streaks)
            else:
                logger.info("Dropping stale streaks for habit %s (seq %s)", habit_id, seq)
            rec = self.dispatch(key, ToggleEvent.MERGED)
        if seq == self._seq.get(key):
            for listener in self.listeners:
                listener(habit_id, streaks)
        return rec

    def _roll_back(self, key: Key, seq: int, previous: Optional[Checkin], exc: Exception) -> None:
        habit_id, day = key
        logger.warning("Toggle for habit %s on %s failed: %s", habit_id, day, exc)
        message = exc.message if isinstance(exc, ApiError) else str(exc)
        with self._lock:
            self.dispatch(key, ToggleEvent.FAILED, error=message)
            snapshot = dict(self._seq)

        if seq == snapshot.get(key):
            try:
                fresh = self.service.get_all_checkins_by_date(day, self.board.habits)
            except ApiError as refetch_exc:
                logger.warning("Could not re-read check-ins for %s: %s", day, refetch_exc)
                fresh = None
            with self._lock:
                if fresh is not None:
                    self._apply_ground_truth(fresh, snapshot, exclude={key})
                if seq == self._seq.get(key):
                    if fresh is not None and habit_id not in fresh.failed:
                        self.board.restore_checkin(habit_id, fresh.get(habit_id))
                    else:
                        self.board.restore_checkin(habit_id, previous)

        with self._lock:
            self.dispatch(key, ToggleEvent.REVERTED)
        self.notifier.error(TOGGLE_FAILED_MESSAGE)

    # ground truth

    def _apply_ground_truth(self, fresh: CheckinIndex, snapshot: Dict[Key, int], exclude=()) -> None:
        """
        Replace the board's index with ``fresh``, except for habits whose
        fetch failed or that were toggled after the fetch started.
        """
        merged = dict(fresh)
        for habit in self.board.habits:
            key = (habit.id, self.board.day)
            keep_local = (
                key in exclude
                or habit.id in fresh.failed
                or key in self._in_flight
                or self._seq.get(key) != snapshot.get(key)
            )
            if keep_local:
                local = self.board.checkins.get(habit.id)
                if local is None:
                    merged.pop(habit.id, None)
                else:
                    merged[habit.id] = local
        self.board.replace_checkins(merged)

    def reload(self) -> CheckinIndex:
        """
        Re-read the board's day from the server without clobbering newer toggles.
        """
        with self._lock:
            snapshot = dict(self._seq)
        fresh = self.service.get_all_checkins_by_date(self.board.day, self.board.habits)
        with self._lock:
            self._apply_ground_truth(fresh, snapshot)
        return fresh

    def _refresh(self) -> None:
        if self.on_refresh is None:
            return
        try:
            self.on_refresh()
        except Exception:
            logger.exception("Dashboard refresh failed")


class DayControllers:
    """
    One controller per day, shared by every view of that day.

    Pages that show the same day must write from the same board, or a
    toggle on one page is invisible to the other and its next click
    starts from a stale status. Habit create/update/delete calls
    ``invalidate`` so the next ``get`` re-reads habits and check-ins.
    """

    def __init__(
        self,
        service: HabitService,
        *,
        notifier: Optional[Notifier] = None,
        on_refresh: Optional[Callable[[], object]] = None,
        cooldown: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.notifier = notifier
        self.on_refresh = on_refresh
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.RLock()
        self._controllers: Dict[date, ToggleController] = {}

    def __contains__(self, day: date) -> bool:
        return day in self._controllers

    def get(self, day: date, *, reload: bool = False, today: Optional[date] = None) -> ToggleController:
        """
        The day's controller, loading habits and check-ins on first use.

        reload=True re-reads the day's check-ins into the existing board;
        load errors propagate as ApiError.
        """
        with self._lock:
            controller = self._controllers.get(day)
        if controller is not None:
            if reload:
                controller.reload()
            return controller

        habits = self.service.list_habits()
        index = self.service.get_all_checkins_by_date(day, habits)
        controller = ToggleController(
            self.service,
            DayBoard(day, habits, index, today=today),
            notifier=self.notifier,
            on_refresh=self.on_refresh,
            listeners=[self._share_streaks],
            cooldown=self.cooldown,
            clock=self._clock,
        )
        with self._lock:
            # another caller may have loaded the day meanwhile; keep the first
            return self._controllers.setdefault(day, controller)

    def _share_streaks(self, habit_id: int, streaks: StreakUpdate) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
        for controller in controllers:
            controller.board.merge_streaks(habit_id, streaks)

    def invalidate(self, day: Optional[date] = None) -> None:
        """Drop one day's controller, or all of them."""
        with self._lock:
            if day is None:
                self._controllers.clear()
            else:
                self._controllers.pop(day, None)
