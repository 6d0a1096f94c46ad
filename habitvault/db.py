"""
SQLite layer for local preferences.

The server owns habits and check-ins. What the browser used to keep in
localStorage (token, user, display toggles, analytics filters) lives in a
small key/value table here so it survives restarts.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Any, Optional, Tuple

DB_PATH_DEFAULT = os.path.join("data", "habitvault.db")

ANALYTICS_PERIODS = ("daily", "weekly", "monthly", "yearly")

logger = logging.getLogger(__name__)


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


@contextmanager
def connect(db_path: str = DB_PATH_DEFAULT):
    _ensure_parent_dir(db_path)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db(db_path: str = DB_PATH_DEFAULT) -> None:
    """
    Create tables if they don't exist yet.
    """
    with connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )


# --- Settings ----------------------------------------------------------------

def get_setting(key: str, default: Optional[str] = None, db_path: str = DB_PATH_DEFAULT) -> Optional[str]:
    with connect(db_path) as conn:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return str(row["value"]) if row else default


def set_setting(key: str, value: str, db_path: str = DB_PATH_DEFAULT) -> None:
    with connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, str(value)),
        )


def delete_setting(key: str, db_path: str = DB_PATH_DEFAULT) -> None:
    with connect(db_path) as conn:
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))


# --- Typed session store -------------------------------------------------------

class SessionStore:
    """
    Typed accessors over the settings table.

    Every read and write of client-side state goes through here; pages and
    the API client receive an instance instead of touching storage directly.
    """

    TOKEN = "token"
    USER = "user"
    DARK_MODE = "darkMode"
    SHOW_QUOTE = "showMotivationalQuote"
    NOTIFICATIONS = "notifications"
    ANALYTICS_DATE_RANGE = "analyticsDateRange"
    ANALYTICS_PERIOD = "analyticsPeriod"

    def __init__(self, db_path: str = DB_PATH_DEFAULT) -> None:
        self.db_path = db_path
        init_db(db_path)

    # raw JSON helpers

    def _get_json(self, key: str, default: Any) -> Any:
        raw = get_setting(key, None, db_path=self.db_path)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.error("Ignoring malformed stored value for %r", key)
            return default

    def _set_json(self, key: str, value: Any) -> None:
        set_setting(key, json.dumps(value), db_path=self.db_path)

    # credentials

    @property
    def token(self) -> Optional[str]:
        return get_setting(self.TOKEN, None, db_path=self.db_path) or None

    @token.setter
    def token(self, value: Optional[str]) -> None:
        if value:
            set_setting(self.TOKEN, value.strip(), db_path=self.db_path)
        else:
            delete_setting(self.TOKEN, db_path=self.db_path)

    @property
    def user(self) -> Optional[dict]:
        value = self._get_json(self.USER, None)
        return value if isinstance(value, dict) else None

    @user.setter
    def user(self, value: Optional[dict]) -> None:
        if value is None:
            delete_setting(self.USER, db_path=self.db_path)
        else:
            self._set_json(self.USER, value)

    def is_authenticated(self) -> bool:
        return bool(self.token)

    def clear_credentials(self) -> None:
        delete_setting(self.TOKEN, db_path=self.db_path)
        delete_setting(self.USER, db_path=self.db_path)

    # display preferences

    def _get_flag(self, key: str, default: bool) -> bool:
        value = self._get_json(key, default)
        return value if isinstance(value, bool) else default

    @property
    def dark_mode(self) -> bool:
        return self._get_flag(self.DARK_MODE, False)

    @dark_mode.setter
    def dark_mode(self, value: bool) -> None:
        self._set_json(self.DARK_MODE, bool(value))

    @property
    def show_motivational_quote(self) -> bool:
        return self._get_flag(self.SHOW_QUOTE, True)

    @show_motivational_quote.setter
    def show_motivational_quote(self, value: bool) -> None:
        self._set_json(self.SHOW_QUOTE, bool(value))

    @property
    def notifications(self) -> bool:
        return self._get_flag(self.NOTIFICATIONS, True)

    @notifications.setter
    def notifications(self, value: bool) -> None:
        self._set_json(self.NOTIFICATIONS, bool(value))

    # analytics filters

    def get_analytics_date_range(self, default_start: date, default_end: date) -> Tuple[date, date]:
        """
        Stored range, or the defaults when missing, unparsable or reversed.
        """
        stored = self._get_json(self.ANALYTICS_DATE_RANGE, None)
        if not isinstance(stored, dict):
            return default_start, default_end
        try:
            start = date.fromisoformat(str(stored["startDate"])[:10])
            end = date.fromisoformat(str(stored["endDate"])[:10])
        except (KeyError, ValueError):
            logger.warning("Invalid analytics date range in store. Using defaults.")
            return default_start, default_end
        if start > end:
            logger.warning("Invalid analytics date range: start is after end. Using defaults.")
            return default_start, default_end
        return start, end

    def set_analytics_date_range(self, start: date, end: date) -> None:
        self._set_json(
            self.ANALYTICS_DATE_RANGE,
            {"startDate": start.isoformat(), "endDate": end.isoformat()},
        )

    def get_analytics_period(self, default: str = "monthly") -> str:
        stored = self._get_json(self.ANALYTICS_PERIOD, default)
        if stored in ANALYTICS_PERIODS:
            return stored
        logger.warning("Invalid analytics period %r in store. Using default.", stored)
        return default

    def set_analytics_period(self, period: str) -> None:
        if period not in ANALYTICS_PERIODS:
            raise ValueError(f"Unknown analytics period: {period}")
        self._set_json(self.ANALYTICS_PERIOD, period)
