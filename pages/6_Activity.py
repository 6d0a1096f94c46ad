"""
Activity page

Everything that happened to your habits, newest first. Filter by type or
date range and page through the list.
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from habitvault.activity import filter_by_date, format_relative_time, paginate
from habitvault.errors import ApiError
from habitvault.models import ACTIVITY_TYPES
from habitvault.ui_helpers import ACTIVITY_ICONS, app_header, get_services, require_token

st.set_page_config(page_title="Activity", page_icon="🕒", layout="wide")

FETCH_LIMIT = 50
PAGE_SIZES = (10, 20, 50)


def type_label(activity_type: str) -> str:
    return "All" if activity_type == "all" else activity_type.replace("_", " ").capitalize()


def fetch_activities(services, activity_type: str):
    if st.session_state.get("activities_type") != activity_type or "activities" not in st.session_state:
        if activity_type == "all":
            st.session_state["activities"] = services.activity.get_all_activities(FETCH_LIMIT)
        else:
            st.session_state["activities"] = services.activity.get_activities_by_type(activity_type, FETCH_LIMIT)
        st.session_state["activities_type"] = activity_type
    return st.session_state["activities"]


def main() -> None:
    app_header("Activity", "Recent check-ins, milestones and changes.")

    services = get_services()
    if not require_token(services):
        return

    c1, c2, c3, c4 = st.columns([0.3, 0.25, 0.25, 0.2])
    activity_type = c1.selectbox("Type", options=("all",) + ACTIVITY_TYPES, format_func=type_label)
    start = c2.date_input("From", value=None)
    end = c3.date_input("To", value=None, max_value=date.today())
    per_page = c4.selectbox("Per page", options=PAGE_SIZES)

    if st.button("Refresh"):
        st.session_state.pop("activities", None)

    try:
        activities = fetch_activities(services, activity_type)
    except ApiError as exc:
        st.error(f"Failed to load activities. ({exc.message})")
        return

    activities = filter_by_date(activities, start, end)
    if not activities:
        st.info("No activity found.")
        return

    # filters changed: back to the first page
    filters = (activity_type, start, end, per_page)
    if st.session_state.get("activity_filters") != filters:
        st.session_state["activity_filters"] = filters
        st.session_state["activity_page"] = 1

    page_items, pages = paginate(activities, st.session_state.get("activity_page", 1), per_page)
    for activity in page_items:
        with st.container(border=True):
            left, right = st.columns([0.8, 0.2])
            left.write(f"{ACTIVITY_ICONS.get(activity.type, '•')} **{activity.title}**")
            left.caption(activity.description)
            right.caption(format_relative_time(activity.timestamp))

    page = min(st.session_state.get("activity_page", 1), pages)
    prev_col, info_col, next_col = st.columns([0.2, 0.6, 0.2])
    if prev_col.button("◀ Previous", disabled=page <= 1):
        st.session_state["activity_page"] = page - 1
        st.rerun()
    info_col.caption(f"Page {page} of {pages} | {len(activities)} activities")
    if next_col.button("Next ▶", disabled=page >= pages):
        st.session_state["activity_page"] = page + 1
        st.rerun()


if __name__ == "__main__":
    main()
