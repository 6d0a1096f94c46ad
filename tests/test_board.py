from datetime import date

from habitvault.board import DayBoard, filter_habits, sort_habits
from habitvault.models import Checkin, Habit, StreakUpdate

WED = date(2025, 5, 14)


def _habits():
    return [
        Habit(id=1, name="read", current_streak=2, created_at="2025-05-01", start_date=date(2025, 5, 1)),
        Habit(id=2, name="Gym", target_type="custom", target_days=["mon"], current_streak=7, created_at="2025-05-03"),
        Habit(id=3, name="Swim", target_type="weekdays", current_streak=0, created_at="2025-05-02"),
    ]


def test_sort_habits():
    habits = _habits()
    assert [h.id for h in sort_habits(habits)] == [2, 1, 3]
    assert [h.id for h in sort_habits(habits, "streak")] == [2, 1, 3]
    assert [h.id for h in sort_habits(habits, "created")] == [2, 3, 1]


def test_filter_habits():
    habits = _habits()
    assert [h.id for h in filter_habits(habits, "S")] == [3]
    assert [h.id for h in filter_habits(habits, target_type="custom")] == [2]
    assert len(filter_habits(habits)) == 3


def test_buckets_follow_schedule_and_checkins():
    checkins = {3: Checkin(habit_id=3, date=WED, status="completed")}
    board = DayBoard(WED, _habits(), checkins, today=WED)

    assert [h.id for h in board.scheduled] == [1, 3]
    assert [h.id for h in board.completed] == [3]
    assert [h.id for h in board.incomplete] == [1]
    assert board.status_of(2) == "not-scheduled"
    assert board.is_not_marked(1)


def test_apply_status_moves_between_buckets():
    board = DayBoard(WED, _habits(), today=WED)

    board.apply_status(1, "completed")
    assert board.is_completed(1)
    assert [h.id for h in board.completed] == [1]

    board.apply_status(1, "missed")
    assert board.is_missed(1)
    assert board.completed == []
    assert 1 in [h.id for h in board.incomplete]
    assert board.checkins[1].date == WED


def test_restore_checkin():
    board = DayBoard(WED, _habits(), today=WED)
    board.apply_status(1, "completed")

    board.restore_checkin(1, None)

    assert 1 not in board.checkins
    assert board.completed == []


def test_skipped_toggles_like_not_marked():
    checkins = {1: Checkin(habit_id=1, date=WED, status="skipped")}
    board = DayBoard(WED, _habits(), checkins, today=WED)
    assert board.toggle_source(1) == "not-marked"
    assert board.status_of(1) == "skipped"


def test_merge_streaks_updates_every_list():
    board = DayBoard(WED, _habits(), today=WED)
    board.apply_status(1, "completed")

    board.merge_streaks(1, StreakUpdate(current_streak=6, longest_streak=12))

    for habits in (board.habits, board.scheduled, board.completed):
        h = next(h for h in habits if h.id == 1)
        assert (h.current_streak, h.longest_streak) == (6, 12)
    assert board.habit(2).current_streak == 7
