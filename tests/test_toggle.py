from datetime import date

import pytest

from habitvault.board import DayBoard
from habitvault.checkin_index import CheckinIndex
from habitvault.errors import ServerError
from habitvault.models import Checkin, Habit, StreakUpdate
from habitvault.toggle import (
    TOGGLE_FAILED_MESSAGE,
    DayControllers,
    InvalidTransition,
    ToggleController,
    ToggleEvent,
    ToggleState,
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def board(server, habit_service, may14):
    server.add_habit(42, "Read", start_date="2025-05-01")
    server.add_habit(7, "Stretch", start_date="2025-05-01")
    return DayBoard(may14, habit_service.list_habits(), {}, today=may14)


@pytest.fixture
def controller(habit_service, board, notifier, clock):
    return ToggleController(habit_service, board, notifier=notifier, clock=clock)


def test_toggle_success_merges_streaks(controller, board, server, notifier):
    server.streaks[42] = (6, 12)

    rec = controller.toggle(42)

    assert rec.state is ToggleState.SETTLED
    assert rec.guess == "completed"
    assert board.is_completed(42)
    for habits in (board.habits, board.scheduled, board.completed):
        h = next(h for h in habits if h.id == 42)
        assert (h.current_streak, h.longest_streak) == (6, 12)
    assert all(h.id != 42 for h in board.incomplete)
    assert server.checkins[(42, "2025-05-14")]["status"] == "completed"
    assert notifier.successes == ["Habit marked as completed"]


def test_toggle_failure_rolls_back_to_server_state(habit_service, board, server, notifier, clock):
    refreshes = []
    controller = ToggleController(habit_service, board, notifier=notifier, clock=clock, on_refresh=lambda: refreshes.append(1))
    # written elsewhere; this board never saw it
    server.add_checkin(42, "2025-05-14", "missed")
    server.fail_on("POST", "/habits/42/checkins", 500)

    with pytest.raises(ServerError):
        controller.toggle(42)

    assert (
        "GET",
        "/habits/42/checkins",
        {"start_date": "2025-05-14", "end_date": "2025-05-14"},
        "Bearer test-token",
    ) in server.requests
    assert board.is_missed(42)
    assert all(h.id != 42 for h in board.completed)
    rec = controller.record(42)
    assert rec.state is ToggleState.ROLLED_BACK
    assert rec.error == "Server error"
    assert TOGGLE_FAILED_MESSAGE in notifier.errors
    assert refreshes == [1]


def test_failed_refetch_restores_previous_value(controller, board, server):
    server.fail_on("POST", "/habits/42/checkins", 500)
    server.fail_on("GET", "/habits/42/checkins", 500)

    with pytest.raises(ServerError):
        controller.toggle(42)

    assert 42 not in board.checkins
    assert board.is_not_marked(42)


@pytest.mark.parametrize(
    "today, expected",
    [(date(2025, 5, 14), "not-marked"), (date(2025, 5, 20), "missed")],
)
def test_failed_toggle_with_nothing_on_the_server(habit_service, server, notifier, clock, may14, today, expected):
    server.add_habit(42, "Read", start_date="2025-05-01")
    board = DayBoard(may14, habit_service.list_habits(), {}, today=today)
    controller = ToggleController(habit_service, board, notifier=notifier, clock=clock)
    server.fail_on("POST", "/habits/42/checkins", 500)

    with pytest.raises(ServerError):
        controller.toggle(42)

    # the re-read answered with no check-in at all
    assert server.calls[("GET", "/habits/42/checkins")] == 1
    assert 42 not in board.checkins
    assert board.status_of(42) == expected


def test_round_trip(controller, board, server, clock):
    statuses = []
    for streaks in ((1, 4), (0, 4), (1, 4)):
        server.streaks[42] = streaks
        controller.toggle(42)
        statuses.append(board.checkins[42].status)
        clock.now += 1

    assert statuses == ["completed", "missed", "completed"]
    assert board.status_of(42) == "completed"
    assert (board.habit(42).current_streak, board.habit(42).longest_streak) == (1, 4)
    assert server.habits[42]["current_streak"] == 1
    assert len([k for k in server.checkins if k[0] == 42]) == 1
    assert server.checkins[(42, "2025-05-14")]["status"] == "completed"


def test_cooldown_ignores_rapid_clicks(controller, server, clock):
    controller.toggle(42)
    clock.now += 0.1

    assert controller.is_busy(42)
    assert controller.toggle(42) is None
    assert server.calls[("POST", "/habits/42/checkins")] == 1

    clock.now += 0.5
    assert not controller.is_busy(42)
    assert controller.toggle(42).guess == "missed"
    assert server.calls[("POST", "/habits/42/checkins")] == 2


def test_other_habits_are_not_blocked(controller, server):
    controller.toggle(42)
    assert controller.toggle(7) is not None


def test_unknown_habit(controller):
    with pytest.raises(KeyError):
        controller.toggle(999)


def test_listeners_receive_streaks(habit_service, board, server, clock):
    seen = []
    server.streaks[42] = (3, 3)
    controller = ToggleController(habit_service, board, clock=clock, listeners=[lambda hid, s: seen.append((hid, s))])

    controller.toggle(42)

    assert seen == [(42, StreakUpdate(current_streak=3, longest_streak=3))]


def test_invalid_transition(controller, may14):
    with pytest.raises(InvalidTransition):
        controller.dispatch((42, may14), ToggleEvent.MERGED)


class ScriptedService:
    """Answers reads from a fixed index and can run a hook mid-fetch."""

    def __init__(self, index):
        self.index = index
        self.during_fetch = None
        self.on_write = None

    def create_checkin(self, habit_id, day, status):
        if self.on_write is not None:
            self.on_write(habit_id)
        return StreakUpdate(current_streak=1, longest_streak=1)

    def get_all_checkins_by_date(self, day, habits=None):
        if self.during_fetch is not None:
            hook, self.during_fetch = self.during_fetch, None
            hook()
        return self.index


def test_reload_keeps_toggles_made_during_the_fetch(may14, clock):
    habits = [Habit(id=7, name="Stretch"), Habit(id=8, name="Walk")]
    stale = CheckinIndex(
        may14,
        {
            7: Checkin(habit_id=7, date=may14, status="missed"),
            8: Checkin(habit_id=8, date=may14, status="completed"),
        },
    )
    service = ScriptedService(stale)
    board = DayBoard(may14, habits, {}, today=may14)
    controller = ToggleController(service, board, clock=clock)
    service.during_fetch = lambda: controller.toggle(7)

    controller.reload()

    assert board.checkins[7].status == "completed"
    assert board.checkins[8].status == "completed"
    assert controller.record(7).state is ToggleState.SETTLED


def test_reload_keeps_local_value_for_failed_fetches(may14, clock):
    habits = [Habit(id=7, name="Stretch"), Habit(id=8, name="Walk")]
    fresh = CheckinIndex(may14, {8: Checkin(habit_id=8, date=may14, status="missed")})
    fresh.errors[7] = ServerError()
    local = {7: Checkin(habit_id=7, date=may14, status="completed")}
    board = DayBoard(may14, habits, local, today=may14)

    ToggleController(ScriptedService(fresh), board, clock=clock).reload()

    assert board.checkins[7].status == "completed"
    assert board.checkins[8].status == "missed"


def test_optimistic_status_is_written_before_the_request(may14, clock):
    board = DayBoard(may14, [Habit(id=42, name="Read")], {}, today=may14)
    service = ScriptedService(CheckinIndex(may14))
    seen = []
    service.on_write = lambda habit_id: seen.append((board.status_of(habit_id), board.is_completed(habit_id)))

    ToggleController(service, board, clock=clock).toggle(42)

    assert seen == [("completed", True)]


# one controller per day

@pytest.fixture
def days(habit_service, notifier, clock):
    return DayControllers(habit_service, notifier=notifier, clock=clock)


def test_views_of_the_same_day_share_one_board(days, server, may14, clock):
    server.add_habit(42, "Read", start_date="2025-05-01")
    dashboard_view = days.get(may14, today=may14)
    checkin_view = days.get(may14, today=may14)

    dashboard_view.toggle(42)
    clock.now += 1
    rec = checkin_view.toggle(42)

    assert checkin_view is dashboard_view
    assert rec.guess == "missed"
    assert server.checkins[(42, "2025-05-14")]["status"] == "missed"
    assert server.calls[("GET", "/habits")] == 1


def test_streaks_reach_boards_of_other_days(days, server, may14):
    server.add_habit(42, "Read", start_date="2025-05-01")
    server.streaks[42] = (5, 9)
    yesterday = days.get(date(2025, 5, 13), today=may14)
    today = days.get(may14, today=may14)

    yesterday.toggle(42)

    assert (today.board.habit(42).current_streak, today.board.habit(42).longest_streak) == (5, 9)


def test_reload_rereads_the_shared_board(days, server, may14):
    server.add_habit(42, "Read", start_date="2025-05-01")
    controller = days.get(may14, today=may14)
    server.add_checkin(42, "2025-05-14", "completed")

    assert days.get(may14, reload=True) is controller
    assert controller.board.is_completed(42)


def test_invalidate_picks_up_habit_changes(days, server, habit_service, may14):
    server.add_habit(42, "Read", start_date="2025-05-01")
    first = days.get(may14, today=may14)
    habit_service.create_habit("Walk", "daily", date(2025, 5, 1))
    assert days.get(may14) is first

    days.invalidate()

    assert may14 not in days
    second = days.get(may14, today=may14)
    assert second is not first
    assert sorted(h.name for h in second.board.habits) == ["Read", "Walk"]
