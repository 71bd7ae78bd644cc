"""Typed API errors and the ``{success, data, error}`` response envelope."""

from __future__ import annotations

from typing import Any

from fastapi import status


class ApiError(Exception):
    """Base error for domain rule violations surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        code: str | None = None,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code or self.default_code
        self.headers = headers
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.code)


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_REQUEST"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class NotActive(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "CONTEST_NOT_ACTIVE"


class Conflict(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "ALREADY_SUBMITTED"


class TooManyRequests(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_code = "TOO_MANY_REQUESTS"


# HTTPException status -> error code, for errors raised by FastAPI itself
HTTP_STATUS_CODES: dict[int, str] = {
    400: "INVALID_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "TOO_MANY_REQUESTS",
}


def envelope(data: Any = None, error: str | None = None) -> dict[str, Any]:
    return {"success": error is None, "data": data, "error": error}


__all__ = [
    "ApiError",
    "Conflict",
    "Forbidden",
    "HTTP_STATUS_CODES",
    "NotActive",
    "NotFound",
    "TooManyRequests",
    "Unauthorized",
    "ValidationFailed",
    "envelope",
]
