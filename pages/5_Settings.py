"""
Settings page

API token and display preferences, stored in the local preference database.
"""

from __future__ import annotations

import streamlit as st

from habitvault.config import settings
from habitvault.ui_helpers import app_header, get_services, toast_success

st.set_page_config(page_title="Settings", page_icon="⚙️", layout="wide")


def main() -> None:
    app_header("Settings", f"Connected to {settings.API_BASE_URL}")

    services = get_services()
    store = services.store

    st.subheader("Account")
    if store.is_authenticated():
        user = store.user or {}
        st.success(f"Signed in{' as ' + user['username'] if user.get('username') else ''}.")
        if st.button("Sign out"):
            store.clear_credentials()
            st.session_state.clear()
            st.rerun()
    else:
        token = st.text_input("API token", type="password", help="Bearer token issued by the HabitVault server.")
        if st.button("Save token", type="primary", disabled=not token.strip()):
            store.token = token
            # drop boards loaded without credentials
            services.days.invalidate()
            toast_success("Token saved")
            st.rerun()

    st.divider()
    st.subheader("Preferences")
    dark_mode = st.toggle("Dark mode", value=store.dark_mode, help="Dark chart backgrounds.")
    show_quote = st.toggle("Show motivational quote", value=store.show_motivational_quote)
    notifications = st.toggle("Notifications", value=store.notifications)

    if st.button("Save preferences"):
        store.dark_mode = dark_mode
        store.show_motivational_quote = show_quote
        store.notifications = notifications
        toast_success("Preferences saved")


if __name__ == "__main__":
    main()
