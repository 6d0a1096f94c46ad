"""
Check-in page

Mark habits as completed or missed for a selected date. The default is
today, but you can backfill earlier days as well.
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from habitvault.errors import ApiError
from habitvault.models import COMPLETED
from habitvault.ui_helpers import (
    STATUS_ICONS,
    app_header,
    get_day_controller,
    get_services,
    habits_changed,
    render_toggle,
    require_token,
    toast_success,
)

st.set_page_config(page_title="Check-in", page_icon="🗓️", layout="wide")


def main() -> None:
    app_header("Check-in", "Mark habits as completed or missed for any day.")

    services = get_services()
    if not require_token(services):
        return

    chosen = st.date_input("Date", value=date.today())
    controller = get_day_controller(services, chosen)
    if controller is None:
        return
    board = controller.board

    if not board.habits:
        st.info("Create a habit first.")
        return
    if not board.scheduled:
        st.success("No habits scheduled for this date.")
        return

    st.divider()
    st.write(f"### Due on {chosen.isoformat()}")

    if board.incomplete and st.button("Mark all completed"):
        try:
            services.habits.batch_update_checkins(chosen, [(h.id, COMPLETED) for h in board.incomplete])
        except ApiError:
            pass  # already toasted by the client
        else:
            toast_success("Saved")
        habits_changed(services)
        st.rerun()

    for h in board.scheduled:
        status = board.status_of(h.id)
        with st.container(border=True):
            col1, col2 = st.columns([0.7, 0.3])
            with col1:
                st.write(f"{STATUS_ICONS.get(status, '')} **{h.name}**")
                st.caption(f"Status: {status} | streak {h.current_streak} | best {h.longest_streak}")
            with col2:
                render_toggle(controller, h.id, "checkin")


if __name__ == "__main__":
    main()
