from datetime import date, datetime, timezone

import pydantic
import pytest

from habitvault.models import Activity, AnalyticsSummary, Checkin, Habit, heatmap_from_dict, parse_day


def test_habit_ignores_unknown_keys_and_nulls():
    habit = Habit.model_validate(
        {
            "id": 3,
            "user_id": 9,
            "name": "Gym",
            "target_type": "custom",
            "target_days": ["MON", "Fri"],
            "start_date": "2025-05-01T00:00:00.000Z",
            "current_streak": None,
            "longest_streak": 4,
        }
    )

    assert habit.start_date == date(2025, 5, 1)
    assert habit.target_days == ["mon", "fri"]
    assert (habit.current_streak, habit.longest_streak) == (0, 4)
    assert not hasattr(habit, "user_id")


def test_habit_is_frozen():
    habit = Habit(id=1, name="Read")
    with pytest.raises(pydantic.ValidationError):
        habit.name = "Write"


def test_habit_copy_with_new_streaks_leaves_original():
    habit = Habit(id=1, name="Read", current_streak=2)
    updated = habit.model_copy(update={"current_streak": 3})

    assert (habit.current_streak, updated.current_streak) == (2, 3)


def test_checkin_date_drops_time():
    checkin = Checkin.model_validate(
        {"id": 5, "habit_id": 1, "date": "2025-05-14T00:00:00.000Z", "status": "completed"}
    )
    assert checkin.date == date(2025, 5, 14)


def test_checkin_requires_habit_and_date():
    with pytest.raises(pydantic.ValidationError):
        Checkin.model_validate({"status": "completed"})


def test_heatmap_keys_become_ints():
    heatmap = heatmap_from_dict({"7": {"name": "Read", "checkins": {"2025-05-02T00:00:00Z": "missed"}}})
    assert heatmap[7].checkins == {"2025-05-02": "missed"}
    assert heatmap[7].target_type == "daily"


def test_summary_nested_top_streaks():
    summary = AnalyticsSummary.model_validate(
        {"total_habits": 2, "completion_rate": 62.5, "top_streaks": [{"id": 1, "name": "Read", "current_streak": 4}]}
    )
    assert summary.top_streaks[0].current_streak == 4
    assert summary.habit_types == {}


def test_activity_reads_camel_case_keys():
    activity = Activity.model_validate(
        {
            "id": 12,
            "type": "streak_milestone",
            "title": "New streak milestone",
            "timestamp": "2025-05-14T08:30:00.000Z",
            "relatedId": 1,
            "relatedName": "Read",
            "streakCount": 7,
        }
    )

    assert activity.id == "12"
    assert (activity.related_id, activity.related_name, activity.streak_count) == (1, "Read", 7)
    assert activity.timestamp == datetime(2025, 5, 14, 8, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    ["2025-05-14", "2025-05-14T23:59:00.000Z", date(2025, 5, 14), datetime(2025, 5, 14, 6, 0)],
)
def test_parse_day(value):
    assert parse_day(value) == date(2025, 5, 14)
