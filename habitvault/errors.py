"""
Closed error taxonomy for the REST API.

Callers branch on the exception class instead of probing optional fields
on a response body.
"""

from __future__ import annotations

from typing import Dict, Optional

import httpx


class ApiError(Exception):
    status: Optional[int] = None
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, status: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status is not None:
            self.status = status
        super().__init__(self.message)


class ValidationError(ApiError):
    status = 400
    default_message = "Invalid request"

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
        *,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message, status=status)
        self.fields: Dict[str, str] = dict(fields or {})


class AuthError(ApiError):
    status = 401
    default_message = "Authentication required"


class PermissionDeniedError(ApiError):
    status = 403
    default_message = "You do not have permission to access this resource"


class NotFoundError(ApiError):
    status = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status = 409
    default_message = "Resource conflict"


class ServerError(ApiError):
    status = 500
    default_message = "Server error, please try again later"


class NetworkError(ApiError):
    default_message = "Network error, please check your connection"


_BY_STATUS = {
    401: AuthError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
}


def _body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def error_from_response(response: httpx.Response) -> ApiError:
    """
    Map an error response to its ApiError subclass.
    """
    status = response.status_code
    data = _body(response)
    message = data.get("message") or data.get("error") or None

    if status == 400:
        fields = data.get("errors")
        if not isinstance(fields, dict):
            fields = {}
        return ValidationError(message, {str(k): str(v) for k, v in fields.items()}, status=status)

    cls = _BY_STATUS.get(status)
    if cls is not None:
        return cls(message, status=status)

    if status >= 500:
        return ServerError(message, status=status)

    # Unlisted 4xx
    return ApiError(message, status=status)
