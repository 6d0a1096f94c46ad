"""
Analytics page

Summary numbers and a completion heatmap for a date range. The range
and period are remembered between visits.
"""

from __future__ import annotations

from datetime import date, timedelta

import altair as alt
import pandas as pd
import streamlit as st

from habitvault.db import ANALYTICS_PERIODS
from habitvault.errors import ApiError
from habitvault.ui_helpers import app_header, format_streak, get_services, require_token, themed

st.set_page_config(page_title="Analytics", page_icon="📈", layout="wide")


def heatmap_long_frame(heatmap) -> pd.DataFrame:
    rows = [
        {"habit": entry.name, "day": day, "status": status}
        for entry in heatmap.values()
        for day, status in entry.checkins.items()
    ]
    return pd.DataFrame(rows, columns=["habit", "day", "status"])


def main() -> None:
    app_header("Analytics", "How consistent have you been?")

    services = get_services()
    if not require_token(services):
        return
    store = services.store

    today = date.today()
    default_start, default_end = today - timedelta(days=29), today
    start, end = store.get_analytics_date_range(default_start, default_end)
    period = store.get_analytics_period("monthly")

    c1, c2 = st.columns([0.6, 0.4])
    picked = c1.date_input("Date range", value=(start, end))
    new_period = c2.selectbox("Period", options=ANALYTICS_PERIODS, index=ANALYTICS_PERIODS.index(period))

    if isinstance(picked, (tuple, list)) and len(picked) == 2:
        start, end = picked
        store.set_analytics_date_range(start, end)
    if new_period != period:
        store.set_analytics_period(new_period)
        period = new_period

    try:
        summary = services.analytics.get_summary(start, end, period)
        heatmap = services.analytics.get_heatmap(start, end, period)
    except ApiError as exc:
        st.error(f"Failed to load analytics. ({exc.message})")
        if st.button("Try again"):
            st.rerun()
        return

    m1, m2, m3 = st.columns(3)
    m1.metric("Habits", f"{summary.total_habits}")
    m2.metric("Completion rate", f"{summary.completion_rate:.0f}%")
    m3.metric("Longest streak", format_streak(summary.longest_streak))

    if summary.habit_types:
        st.subheader("Habit types")
        types_df = pd.DataFrame(
            {"type": list(summary.habit_types), "count": list(summary.habit_types.values())}
        )
        st.altair_chart(
            themed(alt.Chart(types_df).mark_arc().encode(theta="count:Q", color="type:N", tooltip=["type", "count"]), store),
            use_container_width=True,
        )

    if summary.top_streaks:
        st.subheader("Top streaks")
        st.dataframe(
            pd.DataFrame(
                [
                    {"Habit": s.name, "Current": s.current_streak, "Longest": s.longest_streak}
                    for s in summary.top_streaks
                ]
            ),
            hide_index=True,
            use_container_width=True,
        )

    st.subheader("Heatmap")
    df = heatmap_long_frame(heatmap)
    if df.empty:
        st.info("No check-ins in this range.")
        return
    df["day"] = pd.to_datetime(df["day"], errors="coerce")
    df = df.dropna(subset=["day"])
    chart = (
        alt.Chart(df)
        .mark_rect()
        .encode(
            x=alt.X("yearmonthdate(day):O", title="Date"),
            y=alt.Y("habit:N", title=None),
            color=alt.Color(
                "status:N",
                scale=alt.Scale(domain=["completed", "missed", "skipped"], range=["#22c55e", "#ef4444", "#a3a3a3"]),
            ),
            tooltip=["habit:N", "day:T", "status:N"],
        )
    )
    st.altair_chart(themed(chart, store), use_container_width=True)


if __name__ == "__main__":
    main()
