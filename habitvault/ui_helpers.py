"""
UI helpers shared across pages (Streamlit).

Keeping this separate avoids repeating small formatting bits and the
wiring of client, services and per-session state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

import streamlit as st

from habitvault.api import ApiClient
from habitvault.config import configure_logging, settings
from habitvault.db import SessionStore
from habitvault.errors import ApiError
from habitvault.services import ActivityService, AnalyticsService, HabitService, QuoteService
from habitvault.toggle import DayControllers, ToggleController

STATUS_ICONS = {
    "completed": "✅",
    "missed": "❌",
    "skipped": "➖",
    "not-marked": "⬜",
    "not-scheduled": "·",
}

ACTIVITY_ICONS = {
    "habit_completed": "✅",
    "streak_milestone": "🏆",
    "habit_created": "📅",
    "habit_updated": "✏️",
    "habit_deleted": "🗑️",
    "reminder": "⏰",
}


def app_header(title: str, subtitle: str | None = None) -> None:
    st.title(title)
    if subtitle:
        st.caption(subtitle)


def toast_success(msg: str) -> None:
    try:
        st.toast(msg, icon="✅")
    except Exception:
        st.success(msg)


def toast_error(msg: str) -> None:
    try:
        st.toast(msg, icon="⚠️")
    except Exception:
        st.error(msg)


def themed(chart, store: SessionStore):
    """
    Dark backgrounds for altair charts when dark mode is on.
    """
    if not store.dark_mode:
        return chart
    return (
        chart.configure(background="#0e1117")
        .configure_axis(labelColor="#e5e7eb", titleColor="#e5e7eb", gridColor="#374151")
        .configure_legend(labelColor="#e5e7eb", titleColor="#e5e7eb")
        .configure_view(stroke=None)
    )


def format_streak(count: int) -> str:
    return f"{count} {'day' if count == 1 else 'days'}"


class StreamlitNotifier:
    """Toasts, unless the user switched notifications off in Settings."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def success(self, message: str) -> None:
        if self.store.notifications:
            toast_success(message)

    def error(self, message: str) -> None:
        if self.store.notifications:
            toast_error(message)


@dataclass
class Services:
    store: SessionStore
    client: ApiClient
    habits: HabitService
    analytics: AnalyticsService
    quotes: QuoteService
    activity: ActivityService
    days: DayControllers


def _on_unauthorized() -> None:
    st.session_state["auth_required"] = True


@st.cache_resource
def get_store() -> SessionStore:
    configure_logging(settings.LOG_LEVEL)
    return SessionStore(settings.DB_PATH)


def get_services() -> Services:
    """
    One client per browser session, kept in session state.
    """
    if "services" not in st.session_state:
        store = get_store()
        client = ApiClient(
            settings.API_BASE_URL,
            session=store,
            timeout=settings.API_TIMEOUT,
            notifier=StreamlitNotifier(store),
            notify_network_errors=settings.NOTIFY_NETWORK_ERRORS,
            on_unauthorized=_on_unauthorized,
        )
        habits = HabitService(
            client,
            fanout_workers=settings.CHECKIN_FANOUT_WORKERS,
            fetch_timeout=settings.CHECKIN_FETCH_TIMEOUT,
        )
        st.session_state["services"] = Services(
            store=store,
            client=client,
            habits=habits,
            analytics=AnalyticsService(client),
            quotes=QuoteService(client),
            activity=ActivityService(client, habits),
            days=DayControllers(
                habits,
                notifier=StreamlitNotifier(store),
                on_refresh=request_dashboard_refresh,
                cooldown=settings.TOGGLE_COOLDOWN,
            ),
        )
    return st.session_state["services"]


def require_token(services: Services) -> bool:
    """
    Stop rendering with a hint when there is no API token.
    """
    if st.session_state.pop("auth_required", False) or not services.store.is_authenticated():
        st.warning("Authentication required. Add your API token under **Settings**.")
        st.page_link("pages/5_Settings.py", label="Open Settings", icon="⚙️")
        return False
    return True


def request_dashboard_refresh() -> None:
    st.session_state["dashboard_stale"] = True


def get_day_controller(services: Services, day: date, *, reload: bool = False) -> Optional[ToggleController]:
    """
    The shared board + toggle controller for a day, kept across reruns.

    Every page showing the same day gets the same controller. reload=True
    re-reads the day's check-ins. Returns None after showing an error when
    the load fails.
    """
    try:
        return services.days.get(day, reload=reload)
    except ApiError as exc:
        st.error(f"Failed to load habits. Please try again. ({exc.message})")
        if st.button("Try again", key=f"retry_{day.isoformat()}"):
            st.rerun()
        return None


def habits_changed(services: Services) -> None:
    """Call after a habit is created, updated or deleted, or after a batch write."""
    services.days.invalidate()
    st.session_state.pop("activities", None)
    request_dashboard_refresh()


def render_toggle(controller: ToggleController, habit_id: int, key_prefix: str) -> None:
    board = controller.board
    status = board.status_of(habit_id)
    label = "Completed ✅" if status == "completed" else ("Missed ❌" if status == "missed" else "Mark done")
    if st.button(label, key=f"{key_prefix}_{habit_id}", disabled=controller.is_busy(habit_id)):
        try:
            controller.toggle(habit_id)
        except ApiError:
            # board already rolled back and the error toasted
            pass
        st.rerun()
