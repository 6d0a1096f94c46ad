"""
HTTP client for the HabitVault REST API.

One httpx.Client per app session. Bearer tokens are injected from the
SessionStore and every error status goes through a single notification
policy, so services only deal with parsed JSON or ApiError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

import httpx

from habitvault.db import SessionStore
from habitvault.errors import (
    ApiError,
    AuthError,
    NetworkError,
    ValidationError,
    error_from_response,
)

logger = logging.getLogger(__name__)


# --- Endpoints ----------------------------------------------------------------

HABITS = "/habits"
CHECKINS_BATCH = "/checkins/batch"
ANALYTICS_SUMMARY = "/analytics/summary"
ANALYTICS_HEATMAP = "/analytics/heatmap"
QUOTES_DAILY = "/quotes/daily"
QUOTES_RANDOM = "/quotes/random"
ACTIVITIES = "/activities"
ACTIVITIES_RECENT = "/activities/recent"


def habit_url(habit_id: int) -> str:
    return f"{HABITS}/{habit_id}"


def habit_checkins_url(habit_id: int) -> str:
    return f"{HABITS}/{habit_id}/checkins"


def quotes_by_category_url(category: str) -> str:
    return f"/quotes/category/{category}"


def activities_by_type_url(activity_type: str) -> str:
    return f"{ACTIVITIES}/type/{activity_type}"


# --- Notifications --------------------------------------------------------------

class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    """Notifier used outside Streamlit: messages only reach the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


# --- Client -------------------------------------------------------------------

class ApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[SessionStore] = None,
        timeout: float = 10.0,
        notifier: Optional[Notifier] = None,
        notify_network_errors: bool = False,
        on_unauthorized: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.session = session
        self.notifier = notifier or LogNotifier()
        self.notify_network_errors = notify_network_errors
        self.on_unauthorized = on_unauthorized
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [self._inject_token]},
        )

    def _inject_token(self, request: httpx.Request) -> None:
        token = self.session.token if self.session else None
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # error policy

    def report_error(self, error: ApiError) -> None:
        """
        Apply the notification policy to an error.

        Requests made with notify=False skip this; callers that collect
        errors off the main thread report them here once they are back.
        """
        if isinstance(error, ValidationError):
            if error.fields:
                # the form shows these next to its inputs
                logger.info("Validation errors: %s", error.fields)
            else:
                self.notifier.error(error.message)
            return

        if isinstance(error, AuthError):
            if self.session is not None:
                self.session.clear_credentials()
            self.notifier.error(error.message)
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            return

        if isinstance(error, NetworkError):
            if self.notify_network_errors:
                self.notifier.error(error.message)
            return

        self.notifier.error(error.message)

    # requests

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        timeout: Optional[float] = None,
        notify: bool = True,
    ) -> Any:
        kwargs: dict = {}
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed without a response: %s", method, path, exc)
            error = NetworkError()
            if notify:
                self.report_error(error)
            raise error from exc

        if response.is_error:
            error = error_from_response(response)
            logger.warning("%s %s -> %s %s", method, path, response.status_code, error.message)
            if notify:
                self.report_error(error)
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Malformed response from {path}", status=response.status_code) from exc

    def get(
        self,
        path: str,
        *,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
        notify: bool = True,
    ) -> Any:
        return self.request("GET", path, params=params, timeout=timeout, notify=notify)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json if json is not None else {})

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json if json is not None else {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
