"""Error taxonomy for outbound API calls."""
from enum import Enum
from typing import Any, Dict, Optional

import requests


class ErrorType(Enum):
    """Closed classification of a failed API call."""
    RATE_LIMITED = 'rate-limit'
    SERVER_ERROR = 'server'
    AUTH_ERROR = 'auth'
    NOT_FOUND = 'not-found'
    CLIENT_ERROR = 'client'
    NETWORK_ERROR = 'network'
    SETUP_ERROR = 'setup'


# Error types worth another attempt once the caller has given up
TRANSIENT_ERROR_TYPES = frozenset({
    ErrorType.RATE_LIMITED,
    ErrorType.SERVER_ERROR,
    ErrorType.NETWORK_ERROR,
})


def error_status(exc: BaseException) -> Optional[int]:
    """Return the HTTP status carried by an exception, if any."""
    if isinstance(exc, ApiCallError):
        return exc.status
    response = getattr(exc, 'response', None)
    if response is not None:
        return response.status_code
    return None


def classify_error(exc: BaseException) -> ErrorType:
    """
    Classify an exception raised by an API call.

    An HTTP response decides by status code. A request that was sent but got
    no response (connection failure, timeout) is a network error. Anything
    else failed before a request could be made.

    Args:
        exc: Exception raised by the call

    Returns:
        ErrorType for the failure
    """
    if isinstance(exc, ApiCallError):
        return exc.error_type

    status = error_status(exc)
    if status is not None:
        if status == 429:
            return ErrorType.RATE_LIMITED
        if status >= 500:
            return ErrorType.SERVER_ERROR
        if status in (401, 403):
            return ErrorType.AUTH_ERROR
        if status == 404:
            return ErrorType.NOT_FOUND
        return ErrorType.CLIENT_ERROR

    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return ErrorType.NETWORK_ERROR

    return ErrorType.SETUP_ERROR


def describe_error(exc: BaseException, error_type: ErrorType) -> str:
    """Build a one-line diagnostic message for a classified failure."""
    status = error_status(exc)
    response = getattr(exc, 'response', None)
    body = ''
    if response is not None:
        body = (response.text or '')[:500]

    if error_type == ErrorType.RATE_LIMITED:
        return f"Rate limit exceeded ({status}): {body}"
    if error_type == ErrorType.SERVER_ERROR:
        return f"Server error ({status}): {body}"
    if error_type == ErrorType.AUTH_ERROR:
        return f"Authentication error ({status}): {body}"
    if error_type == ErrorType.NOT_FOUND:
        return f"Resource not found ({status}): {body}"
    if error_type == ErrorType.CLIENT_ERROR:
        return f"API client error ({status}): {body}"
    if error_type == ErrorType.NETWORK_ERROR:
        return f"No response received from server (network issue): {exc}"
    return f"Request setup error: {exc}"


class ApiCallError(Exception):
    """Final failure of an API call after the retry policy gave up."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        status: Optional[int] = None,
        attempts: int = 1,
        summary: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status = status
        self.attempts = attempts
        self.summary = summary or {}

    @property
    def should_retry(self) -> bool:
        """Whether a later re-run could plausibly succeed."""
        return self.error_type in TRANSIENT_ERROR_TYPES
