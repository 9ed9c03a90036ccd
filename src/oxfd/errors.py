"""
Error taxonomy for the Oxford API client.

Every failure the request pipeline produces is one of four kinds:
- API_ERROR: generic failure carrying the raw status (also timeouts and
  transport errors, which use status 408 and 0)
- RATE_LIMIT: 429 after the retry budget is exhausted
- AUTH: 403, fixed message
- SERVER_UNAVAILABLE: 503
"""

from __future__ import annotations

import contextlib
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Kind label for classified errors."""

    API_ERROR = "API_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    AUTH = "AUTH"
    SERVER_UNAVAILABLE = "SERVER_UNAVAILABLE"


AUTH_ERROR_MESSAGE = "Invalid API key or unauthorized access"
SERVER_UNAVAILABLE_MESSAGE = "Server data temporarily unavailable"


class OxfordAPIError(Exception):
    """Raised when an API call fails."""

    kind: ErrorKind = ErrorKind.API_ERROR

    def __init__(self, message: str, status: int, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.detail = detail

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, message={self.message!r})"


class RateLimitError(OxfordAPIError):
    """Raised when 429 responses outlast the retry budget."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, retry_after: str | None = None) -> None:
        super().__init__(message, 429)
        self.retry_after = retry_after

    @property
    def retry_after_ms(self) -> int | None:
        """Retry-After hint in milliseconds, if the server sent a numeric one."""
        if self.retry_after is None:
            return None
        with contextlib.suppress(ValueError, OverflowError):
            return int(float(self.retry_after) * 1000)
        return None


class AuthError(OxfordAPIError):
    """Raised on 403. The server key is missing permissions or invalid."""

    kind = ErrorKind.AUTH

    def __init__(self) -> None:
        super().__init__(AUTH_ERROR_MESSAGE, 403)


class ServerUnavailableError(OxfordAPIError):
    """Raised on 503 while the game server data is not ready."""

    kind = ErrorKind.SERVER_UNAVAILABLE

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or SERVER_UNAVAILABLE_MESSAGE, 503)


def _field(data: Any, name: str) -> Any:
    if isinstance(data, dict):
        return data.get(name) or None
    return None


def classify_error_response(
    status: int,
    data: Any,
    path: str,
    reason: str = "",
) -> OxfordAPIError:
    """
    Map a non-2xx, non-429 response to a classified error.

    Args:
        status: HTTP status code.
        data: Parsed response body (dict, list, None, or {"message": raw_text}).
        path: Request path, used in the 404 message.
        reason: HTTP reason phrase, used when the body carries no message.

    Returns:
        The error to raise. The caller raises it.
    """
    body_message = _field(data, "message")
    message = body_message or reason
    detail = _field(data, "error")

    if status == 400:
        return OxfordAPIError(f"Bad request: {message}", 400, detail)
    if status == 403:
        return AuthError()
    if status == 404:
        return OxfordAPIError(f"Not found: {path}", 404, detail)
    if status == 500:
        return OxfordAPIError(f"Internal server error: {message}", 500, detail)
    if status == 503:
        return ServerUnavailableError(body_message)
    return OxfordAPIError(message, status, detail)
