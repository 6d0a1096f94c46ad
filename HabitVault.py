"""
HabitVault - Dashboard

Run with:
    streamlit run HabitVault.py
"""

from __future__ import annotations

from datetime import date

import altair as alt
import pandas as pd
import streamlit as st

from habitvault.activity import format_relative_time
from habitvault.dashboard import DashboardData, load_dashboard
from habitvault.errors import ApiError
from habitvault.metrics import daily_progress_frame, month_bounds
from habitvault.ui_helpers import (
    ACTIVITY_ICONS,
    app_header,
    format_streak,
    get_day_controller,
    get_services,
    render_toggle,
    require_token,
    themed,
)


st.set_page_config(
    page_title="HabitVault",
    page_icon="✅",
    layout="wide",
)


def dashboard_data(services, today: date) -> DashboardData:
    # toggles anywhere in the session mark the cached numbers stale
    if st.session_state.pop("dashboard_stale", False) or "dashboard" not in st.session_state:
        st.session_state["dashboard"] = load_dashboard(
            services.analytics, services.quotes, today, activities=services.activity
        )
    return st.session_state["dashboard"]


def render_stats(data: DashboardData) -> None:
    if data.error:
        st.error(data.error)
        if st.button("Try again", key="retry_dashboard"):
            st.session_state["dashboard_stale"] = True
            st.rerun()
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total habits", f"{data.total_habits}")
    c2.metric("Completed today", f"{data.completed_today}")
    c3.metric("Active streaks", f"{data.active_streaks}")
    c4.metric("Completion rate", f"{data.completion_rate:.0f}%")
    st.caption(f"Longest streak: {format_streak(data.longest_streak)}")


def render_quote(services, data: DashboardData) -> None:
    quote = st.session_state.get("quote") or data.quote
    if quote is None:
        return
    st.info(f"“{quote.text}” - {quote.author}")

    c1, c2, _ = st.columns([0.2, 0.25, 0.55])
    if c1.button("New quote"):
        st.session_state["quote"] = services.quotes.get_random_quote()
        st.session_state.pop("more_quotes", None)
        st.rerun()
    if quote.category and c2.button(f"More on {quote.category}"):
        st.session_state["more_quotes"] = [
            q for q in services.quotes.get_quotes_by_category(quote.category) if q.text != quote.text
        ]
    more = st.session_state.get("more_quotes")
    if more is not None:
        if not more:
            st.caption("No other quotes in this category.")
        for q in more[:3]:
            st.caption(f"“{q.text}” - {q.author}")


def render_recent_activity(data: DashboardData) -> None:
    st.subheader("Recent activity")
    if not data.recent_activity:
        st.caption("No recent activity.")
        return
    for activity in data.recent_activity:
        left, right = st.columns([0.8, 0.2])
        left.write(f"{ACTIVITY_ICONS.get(activity.type, '•')} **{activity.title}**")
        left.caption(activity.description)
        right.caption(format_relative_time(activity.timestamp))
    st.page_link("pages/6_Activity.py", label="View all activity")


def render_today(services, today: date) -> None:
    st.subheader("Today")

    controller = get_day_controller(services, today)
    if controller is None:
        return
    board = controller.board

    if not board.habits:
        st.info("No habits yet. Create one in **Habits**.")
        return
    if not board.scheduled:
        st.success("Nothing scheduled for today.")
        return

    st.caption(f"{len(board.completed)} of {len(board.scheduled)} done")
    col1, col2 = st.columns([1.2, 1.0], gap="large")

    with col1:
        st.markdown("#### To do")
        if not board.incomplete:
            st.success("All done for today.")
        for h in board.incomplete:
            left, right = st.columns([0.7, 0.3])
            with left:
                st.write(f"**{h.name}**")
                st.caption(f"Streak: {format_streak(h.current_streak)}")
            with right:
                render_toggle(controller, h.id, "today")

    with col2:
        st.markdown("#### Completed")
        for h in board.completed:
            left, right = st.columns([0.7, 0.3])
            with left:
                st.write(f"**{h.name}**")
                st.caption(f"Streak: {format_streak(h.current_streak)} | Best: {format_streak(h.longest_streak)}")
            with right:
                render_toggle(controller, h.id, "today")


def render_month_progress(df: pd.DataFrame, store) -> None:
    chart_df = df.copy()
    chart_df["day"] = pd.to_datetime(chart_df["day"])

    base = alt.Chart(chart_df).encode(
        x=alt.X("day:T", title="Date")
    )

    done_line = base.mark_line().encode(
        y=alt.Y("cum_done:Q", title="Cumulative completions"),
        tooltip=["day:T", "done:Q", "cum_done:Q", "due:Q", "cum_due:Q"],
    )

    due_line = base.mark_line(strokeDash=[4, 4]).encode(
        y=alt.Y("cum_due:Q"),
        tooltip=["day:T", "due:Q", "cum_due:Q"],
    )

    st.altair_chart(themed((due_line + done_line).interactive(), store), use_container_width=True)


def render_month(services, today: date) -> None:
    st.subheader("This month")
    month_pick = st.date_input("Month", value=today, help="Pick any day in the month you want to review.")
    month_start, month_end = month_bounds(month_pick)

    controller = services.days.get(today) if today in services.days else None
    habits = controller.board.habits if controller else []
    if not habits:
        st.info("Create a habit first to see progress for the month.")
        return

    try:
        heatmap = services.analytics.get_heatmap(month_start, month_end)
    except ApiError as exc:
        st.error(f"Failed to load progress for the month. ({exc.message})")
        return

    df = daily_progress_frame(habits, heatmap, month_start, month_end)
    total_due = int(df["due"].sum())
    total_done = int(df["done"].sum())
    rate = (total_done / total_due) if total_due else 0.0

    c1, c2, c3 = st.columns(3)
    c1.metric("Completions", f"{total_done}")
    c2.metric("Due", f"{total_due}")
    c3.metric("Completion rate", f"{rate:.0%}")

    render_month_progress(df, services.store)


def main() -> None:
    app_header("HabitVault", "Check in daily, keep your streaks, and spot patterns over time.")

    services = get_services()
    if not require_token(services):
        return

    today = date.today()

    if services.store.show_motivational_quote:
        render_quote(services, dashboard_data(services, today))

    st.divider()
    render_today(services, today)

    # after the toggles so a click in this run is reflected in the numbers
    st.divider()
    render_stats(dashboard_data(services, today))

    st.divider()
    render_recent_activity(dashboard_data(services, today))

    st.divider()
    render_month(services, today)


if __name__ == "__main__":
    main()
