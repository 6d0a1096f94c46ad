"""
Habits page

Create, edit, and delete habits. Schedules are kept intentionally simple:
- daily
- weekdays
- custom days (pick the weekdays)
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from habitvault.board import FILTER_OPTIONS, SORT_OPTIONS, filter_habits, sort_habits
from habitvault.errors import ApiError, NotFoundError, ValidationError
from habitvault.models import TARGET_TYPES, WEEKDAY_NAMES, WEEKDAY_TOKENS
from habitvault.ui_helpers import (
    app_header,
    format_streak,
    get_day_controller,
    get_services,
    habits_changed,
    render_toggle,
    require_token,
    toast_success,
)

st.set_page_config(page_title="Habits", page_icon="📌", layout="wide")


def describe_schedule(habit) -> str:
    if habit.target_type == "custom":
        names = [WEEKDAY_NAMES[WEEKDAY_TOKENS.index(t)] for t in habit.target_days if t in WEEKDAY_TOKENS]
        return ", ".join(names) or "no days"
    return habit.target_type


def open_editor(services, habit) -> None:
    """Edit the server's current copy; the board may be a few toggles behind."""
    try:
        fresh = services.habits.get_habit(habit.id)
    except NotFoundError:
        # deleted elsewhere; the client already showed the error
        habits_changed(services)
        return
    except ApiError:
        fresh = habit
    st.session_state["edit_habit"] = fresh
    st.session_state["confirm_delete"] = False


def render_list(services, controller) -> None:
    board = controller.board

    c1, c2, c3 = st.columns([0.5, 0.25, 0.25])
    search = c1.text_input("Search", placeholder="Filter by name")
    filter_by = c2.selectbox("Type", options=FILTER_OPTIONS)
    sort_by = c3.selectbox("Sort by", options=SORT_OPTIONS)

    habits = sort_habits(filter_habits(board.habits, search, filter_by), sort_by)
    scheduled_ids = {s.id for s in board.scheduled}
    if not board.habits:
        st.info("No habits yet.")
        return
    if not habits:
        st.info("No habits match the filter.")
        return

    for h in habits:
        with st.container(border=True):
            cols = st.columns([0.55, 0.25, 0.2])
            with cols[0]:
                st.write(f"**{h.name}**")
                st.caption(
                    f"{describe_schedule(h)} | streak {format_streak(h.current_streak)}"
                    f" | best {format_streak(h.longest_streak)}"
                )
            with cols[1]:
                if h.id in scheduled_ids:
                    render_toggle(controller, h.id, "habits")
                else:
                    st.caption("Not scheduled today")
            with cols[2]:
                if st.button("Edit", key=f"edit_{h.id}"):
                    open_editor(services, h)
                    st.rerun()


def render_form(services) -> None:
    habit = st.session_state.get("edit_habit")

    st.subheader("Edit Habit" if habit else "New Habit")

    name = st.text_input("Name", value=habit.name if habit else "", max_chars=50, placeholder="e.g. Walk 20 minutes")
    schedule_default = habit.target_type if habit else "daily"
    target_type = st.selectbox(
        "Schedule",
        options=list(TARGET_TYPES),
        index=list(TARGET_TYPES).index(schedule_default),
        help="Defines on which days this habit is expected.",
    )
    start_date = st.date_input(
        "Start date",
        value=(habit.start_date if habit and habit.start_date else date.today()),
        disabled=habit is not None,
    )

    custom_default = habit.target_days if habit else []
    selected_days: list[str] = []
    if target_type == "custom":
        st.caption("Custom days")
        day_cols = st.columns(7)
        for i, nm in enumerate(WEEKDAY_NAMES):
            with day_cols[i]:
                token = WEEKDAY_TOKENS[i]
                if st.checkbox(nm, value=(token in custom_default), key=f"day_{token}"):
                    selected_days.append(token)

    field_errors = st.session_state.get("form_errors", {})
    for message in field_errors.values():
        st.error(message)

    save_col, del_col = st.columns([0.6, 0.4])
    with save_col:
        if st.button("Save", type="primary"):
            try:
                if habit:
                    services.habits.update_habit(
                        habit.id,
                        name=name,
                        target_type=target_type,
                        target_days=selected_days if target_type == "custom" else [],
                    )
                    toast_success("Habit updated successfully")
                else:
                    services.habits.create_habit(
                        name=name,
                        target_type=target_type,
                        start_date=start_date,
                        target_days=selected_days,
                    )
                    toast_success("Habit created successfully")
            except ValidationError as exc:
                # keep the form open with the field messages
                st.session_state["form_errors"] = exc.fields or {"form": exc.message}
                st.rerun()
            except ApiError:
                st.session_state["form_errors"] = {"form": "Failed to save habit. Please try again."}
                st.rerun()
            else:
                st.session_state["form_errors"] = {}
                st.session_state["edit_habit"] = None
                habits_changed(services)
                st.rerun()
    with del_col:
        if habit:
            if st.button("Delete", help="Deletes the habit and its check-ins."):
                st.session_state["confirm_delete"] = True
            if st.button("Cancel edit"):
                st.session_state["edit_habit"] = None
                st.session_state["form_errors"] = {}
                st.rerun()

    if habit and st.session_state.get("confirm_delete"):
        st.warning("This will remove the habit and its history.")
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Keep it"):
                st.session_state["confirm_delete"] = False
                st.rerun()
        with c2:
            if st.button("Delete permanently", type="primary"):
                try:
                    services.habits.delete_habit(habit.id)
                except ApiError:
                    st.session_state["form_errors"] = {"form": "Failed to delete habit. Please try again."}
                else:
                    toast_success("Habit deleted successfully")
                    st.session_state["edit_habit"] = None
                    habits_changed(services)
                st.session_state["confirm_delete"] = False
                st.rerun()


def main() -> None:
    app_header("Habits", "Create habits and define when they are due.")

    services = get_services()
    if not require_token(services):
        return

    controller = get_day_controller(services, date.today())
    if controller is None:
        return

    left, right = st.columns([1.1, 0.9], gap="large")
    with left:
        st.subheader("Your habits")
        render_list(services, controller)
    with right:
        render_form(services)


if __name__ == "__main__":
    main()
