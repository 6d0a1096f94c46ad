"""
Data shapes exchanged with the HabitVault API.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

TARGET_TYPES = ("daily", "weekdays", "custom")

# Python weekday() order: 0 = Monday
WEEKDAY_TOKENS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

COMPLETED = "completed"
MISSED = "missed"
SKIPPED = "skipped"  # legacy three-state model, never written by the toggle
CHECKIN_STATUSES = (COMPLETED, MISSED, SKIPPED)

# Derived day states, never persisted
NOT_SCHEDULED = "not-scheduled"
NOT_MARKED = "not-marked"

HABIT_NAME_MAX = 50

ACTIVITY_TYPES = (
    "habit_completed",
    "streak_milestone",
    "habit_created",
    "habit_updated",
    "habit_deleted",
    "reminder",
)


def parse_day(value) -> dt.date:
    """
    Accept a date, 'YYYY-MM-DD' or an ISO datetime string and return the date part.

    Raises ValueError on anything else.
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[0]
    return dt.date.fromisoformat(text)


class ApiModel(BaseModel):
    """Read-only payload. Unknown keys are ignored and nulls fall back to defaults."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data):
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Habit(ApiModel):
    id: int
    name: str = ""
    target_type: str = "daily"
    start_date: Optional[dt.date] = None
    target_days: List[str] = Field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, value):
        return parse_day(value) if value else None

    @field_validator("target_days", mode="before")
    @classmethod
    def lower_target_days(cls, value):
        return [str(d).lower() for d in value or []]


class Checkin(ApiModel):
    habit_id: int
    date: dt.date
    status: str
    id: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_checkin_date(cls, value):
        return parse_day(value)


class StreakUpdate(ApiModel):
    current_streak: int = 0
    longest_streak: int = 0


class HeatmapEntry(ApiModel):
    """One habit's row in a heatmap payload: 'YYYY-MM-DD' -> status."""

    name: str = ""
    target_type: str = "daily"
    checkins: Dict[str, str] = Field(default_factory=dict)

    @field_validator("checkins", mode="before")
    @classmethod
    def strip_time_from_keys(cls, value):
        return {str(k).split("T", 1)[0]: v for k, v in (value or {}).items()}


# habit id -> entry
HeatmapPayload = Dict[int, HeatmapEntry]

_heatmap_adapter = TypeAdapter(HeatmapPayload)


def heatmap_from_dict(data: dict) -> HeatmapPayload:
    return _heatmap_adapter.validate_python(data or {})


class TopStreak(ApiModel):
    id: int
    name: str = ""
    current_streak: int = 0
    longest_streak: int = 0


class AnalyticsSummary(ApiModel):
    total_habits: int = 0
    completion_rate: float = 0.0
    longest_streak: int = 0
    habit_types: Dict[str, int] = Field(default_factory=dict)
    top_streaks: List[TopStreak] = Field(default_factory=list)


class Quote(ApiModel):
    id: int = 0
    text: str = ""
    author: str = ""
    category: Optional[str] = None


class Activity(ApiModel):
    """
    One entry of the activity feed. The server sends camelCase keys for
    the related-entity fields.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    title: str = ""
    description: str = ""
    timestamp: dt.datetime
    related_id: Optional[int] = Field(default=None, alias="relatedId")
    related_name: Optional[str] = Field(default=None, alias="relatedName")
    streak_count: Optional[int] = Field(default=None, alias="streakCount")

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, value):
        return str(value)
