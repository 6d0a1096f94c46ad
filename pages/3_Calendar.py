"""
Calendar page

One habit, one month at a time. Months already visited are served from
the session's month cache.
"""

from __future__ import annotations

from datetime import date

import altair as alt
import streamlit as st

from habitvault.errors import ApiError
from habitvault.metrics import calendar_days, completion_rate, heatmap_frame, month_bounds
from habitvault.models import WEEKDAY_NAMES
from habitvault.month_cache import MonthCache
from habitvault.ui_helpers import STATUS_ICONS, app_header, format_streak, get_services, require_token, themed

st.set_page_config(page_title="Calendar", page_icon="📅", layout="wide")

STATUS_COLORS = {
    "completed": "#22c55e",
    "missed": "#ef4444",
    "skipped": "#a3a3a3",
    "not-marked": "#e5e7eb",
    "not-scheduled": "#f9fafb",
}


def get_month_cache(services, today: date) -> MonthCache:
    if "month_cache" not in st.session_state:
        st.session_state["month_cache"] = MonthCache(services.analytics, today.year, today.month - 1)
    return st.session_state["month_cache"]


def render_grid(habit, lookup, year: int, month: int, today: date) -> None:
    days = calendar_days(habit, lookup, year, month, today)
    if not days:
        st.warning("Could not build the calendar for this month.")
        return

    header = st.columns(7)
    for i, nm in enumerate(WEEKDAY_NAMES):
        header[i].markdown(f"**{nm}**")
    for week_start in range(0, len(days), 7):
        cols = st.columns(7)
        for col, cell in zip(cols, days[week_start:week_start + 7]):
            if not cell.in_month:
                col.caption(str(cell.day.day))
                continue
            label = f"**{cell.day.day}**" if cell.is_today else str(cell.day.day)
            col.markdown(f"{label} {STATUS_ICONS.get(cell.status, '')}")


def render_heatmap(habit, lookup, year: int, month: int, today: date, store) -> None:
    month_start, month_end = month_bounds(date(year, month, 1))
    df = heatmap_frame(habit, lookup, month_start, month_end, today)
    df = df[df["day_num"].notna()]
    chart = (
        alt.Chart(df)
        .mark_rect()
        .encode(
            x=alt.X("dow:O", title=None, axis=alt.Axis(labelExpr="['Mon','Tue','Wed','Thu','Fri','Sat','Sun'][datum.value]")),
            y=alt.Y("week:O", title=None, axis=None),
            color=alt.Color(
                "status:N",
                scale=alt.Scale(domain=list(STATUS_COLORS), range=list(STATUS_COLORS.values())),
                legend=alt.Legend(title="Status"),
            ),
            tooltip=["day:T", "status:N"],
        )
    )
    st.altair_chart(themed(chart, store), use_container_width=True)


def main() -> None:
    app_header("Calendar", "Month view of a single habit.")

    services = get_services()
    if not require_token(services):
        return

    today = date.today()
    try:
        habits = services.habits.list_habits()
    except ApiError as exc:
        st.error(f"Failed to load habits. Please try again. ({exc.message})")
        return
    if not habits:
        st.info("Create a habit first.")
        return

    habit = st.selectbox("Habit", options=habits, format_func=lambda h: h.name)
    cache = get_month_cache(services, today)

    prev_col, title_col, next_col = st.columns([0.2, 0.6, 0.2])
    with prev_col:
        if st.button("◀ Previous", disabled=cache.loading):
            cache.navigate_prev()
    with next_col:
        if st.button("Next ▶", disabled=cache.loading):
            cache.navigate_next()

    year, month = cache.current_year, cache.current_month + 1
    with title_col:
        st.markdown(f"### {date(year, month, 1):%B %Y}")

    payload = cache.load()
    if payload is None:
        st.error(cache.error or "Failed to load heatmap data.")
        if st.button("Try again", key="retry_month"):
            cache.load(retry=True)
            st.rerun()
        return

    entry = payload.get(habit.id)
    lookup = entry.checkins if entry else {}

    month_start, month_end = month_bounds(date(year, month, 1))
    rate = completion_rate(habit, lookup, month_start, min(month_end, today))
    c1, c2, c3 = st.columns(3)
    c1.metric("Current streak", format_streak(habit.current_streak))
    c2.metric("Longest streak", format_streak(habit.longest_streak))
    c3.metric("Month completion", f"{rate:.0%}")

    render_grid(habit, lookup, year, month, today)
    st.divider()
    render_heatmap(habit, lookup, year, month, today, services.store)


if __name__ == "__main__":
    main()
