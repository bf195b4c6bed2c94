# workflow_transfer/core/errors.py
"""
Error taxonomy shared by the remote service and the batch engine.

Remote outcomes are classified into an ``ErrorCategory`` so that callers
branch on values: ``not_found`` and ``conflict`` are benign, transient
categories are retried, the rest are fatal for the item.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    VALIDATION_FAILURE = "validation_failure"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_TIMEOUT = "network_timeout"
    CONNECTION_RESET = "connection_reset"
    CLIENT_ERROR = "client_error"

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE

    @property
    def is_benign(self) -> bool:
        return self in (ErrorCategory.NOT_FOUND, ErrorCategory.CONFLICT)


_RETRYABLE = frozenset({
    ErrorCategory.RATE_LIMITED,
    ErrorCategory.SERVER_ERROR,
    ErrorCategory.NETWORK_TIMEOUT,
    ErrorCategory.CONNECTION_RESET,
})


class InvalidArgumentError(ValueError):
    """Raised synchronously for malformed local input. Never retried."""


class RemoteServiceError(RuntimeError):
    """Raised when a remote read fails after classification."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.category = category
        self.status_code = status_code
        self.retry_after = retry_after


def classify_status(status_code: int) -> Optional[ErrorCategory]:
    """Map an HTTP status to a category. Returns None for 2xx/3xx."""
    if status_code < 400:
        return None
    if status_code == 404:
        return ErrorCategory.NOT_FOUND
    if status_code == 409:
        return ErrorCategory.CONFLICT
    if status_code == 401:
        return ErrorCategory.UNAUTHORIZED
    if status_code == 403:
        return ErrorCategory.FORBIDDEN
    if status_code == 429:
        return ErrorCategory.RATE_LIMITED
    if status_code >= 500:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.CLIENT_ERROR


def classify_exception(exc: Exception) -> ErrorCategory:
    """Map a transport-level exception raised by httpx to a category."""
    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.NETWORK_TIMEOUT
    if isinstance(exc, (httpx.ConnectError, httpx.ReadError, httpx.WriteError,
                        httpx.RemoteProtocolError, httpx.CloseError)):
        return ErrorCategory.CONNECTION_RESET
    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.CONNECTION_RESET
    return ErrorCategory.CLIENT_ERROR


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a ``Retry-After`` header (delta seconds or HTTP date).

    Returns:
        Seconds to wait, or None when the header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
