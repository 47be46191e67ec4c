"""Retry executor for outbound API calls."""
import logging
import random
import time
from typing import Any, Callable, Dict, Optional, TypeVar

import requests

from client.errors import (
    ApiCallError,
    ErrorType,
    classify_error,
    describe_error,
    error_status,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryExecutor:
    """
    Run API calls with classified, bounded retries.

    Each failure is classified into an ErrorType. Every type has its own
    retry ceiling, and no call is retried more than max_retries times
    overall. Delays grow by 1.5x with +/-15% jitter, capped at max_delay.
    """

    MAX_AUTH_RETRIES = 1
    MAX_SERVER_RETRIES = 2
    MAX_CLIENT_RETRIES = 1
    MAX_SETUP_RETRIES = 1

    # Request Timeout, Too Early, Retry With
    RETRYABLE_CLIENT_STATUSES = (408, 425, 449)

    TRANSIENT_SETUP_PATTERNS = (
        'timeout',
        'timed out',
        'etimedout',
        'econnreset',
        'econnrefused',
        'connection reset',
        'connection refused',
        'socket hang up',
    )

    BACKOFF_MULTIPLIER = 1.5
    JITTER_LOW = 0.85
    JITTER_HIGH = 1.15

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0
    ):
        """
        Initialize the retry executor.

        Args:
            max_retries: Maximum number of retries across all error types
            initial_delay: Delay before the first retry, in seconds
            max_delay: Upper bound for any delay, in seconds
        """
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        stage: str = 'unknown',
        context: Optional[Dict[str, Any]] = None
    ) -> T:
        """
        Execute an API call, retrying per the error classification.

        Args:
            operation: Zero-argument callable performing the request
            stage: Import stage, for log context
            context: Extra diagnostic fields for log records

        Returns:
            Whatever operation returns

        Raises:
            ApiCallError: When retries are exhausted or the error is not
                retryable. The original exception is chained as __cause__.
        """
        context = context or {}
        retries = 0
        delay = self.initial_delay
        errors_by_type = {error_type.value: 0 for error_type in ErrorType}

        while True:
            try:
                return operation()
            except requests.RequestException as e:
                error_type = classify_error(e)
                errors_by_type[error_type.value] += 1
                type_count = errors_by_type[error_type.value]
                message = describe_error(e, error_type)

                should_retry = self._should_retry(error_type, e, type_count, retries)
                if error_type == ErrorType.RATE_LIMITED:
                    delay = self._rate_limit_delay(e, delay)

                if not should_retry or retries >= self.max_retries:
                    attempts = retries + 1
                    summary = {
                        'attempts': attempts,
                        'errors_by_type': dict(errors_by_type),
                        'final_error_type': error_type.value,
                        'final_error_status': error_status(e),
                        'final_error_message': message,
                    }
                    logger.error(
                        f"API call failed after {attempts} attempt(s): {message}",
                        extra={'stage': stage, 'error_type': error_type.value, **context}
                    )
                    if error_type == ErrorType.AUTH_ERROR:
                        self._log_auth_hint(e)
                    raise ApiCallError(
                        message,
                        error_type=error_type,
                        status=error_status(e),
                        attempts=attempts,
                        summary=summary
                    ) from e

                logger.warning(
                    f"API error ({error_type.value}). Retrying in {delay:.2f} seconds... "
                    f"(attempt {retries + 1}/{self.max_retries})",
                    extra={'stage': stage, 'error_type': error_type.value, **context}
                )
                time.sleep(delay)

                jitter = random.uniform(self.JITTER_LOW, self.JITTER_HIGH)
                delay = min(delay * self.BACKOFF_MULTIPLIER * jitter, self.max_delay)
                retries += 1

    def _should_retry(
        self,
        error_type: ErrorType,
        error: BaseException,
        type_count: int,
        retries: int
    ) -> bool:
        """Decide whether a failure of the given type earns another attempt."""
        if error_type == ErrorType.RATE_LIMITED:
            return retries < self.max_retries
        if error_type == ErrorType.SERVER_ERROR:
            return type_count <= self.MAX_SERVER_RETRIES
        if error_type == ErrorType.AUTH_ERROR:
            return type_count <= self.MAX_AUTH_RETRIES
        if error_type == ErrorType.NOT_FOUND:
            return False
        if error_type == ErrorType.CLIENT_ERROR:
            return (
                error_status(error) in self.RETRYABLE_CLIENT_STATUSES
                and type_count <= self.MAX_CLIENT_RETRIES
            )
        if error_type == ErrorType.NETWORK_ERROR:
            return type_count <= self.max_retries

        text = str(error).lower()
        return (
            any(pattern in text for pattern in self.TRANSIENT_SETUP_PATTERNS)
            and type_count <= self.MAX_SETUP_RETRIES
        )

    def _rate_limit_delay(self, error: BaseException, current_delay: float) -> float:
        """
        Compute the wait after a 429 response.

        A numeric Retry-After header wins; otherwise the current delay is
        doubled. Both are capped at max_delay.
        """
        response = getattr(error, 'response', None)
        retry_after = response.headers.get('Retry-After') if response is not None else None
        if retry_after:
            try:
                return min(float(retry_after), self.max_delay)
            except ValueError:
                logger.debug(f"Ignoring non-numeric Retry-After header: {retry_after}")
        return min(current_delay * 2, self.max_delay)

    def _log_auth_hint(self, error: BaseException) -> None:
        request = getattr(error, 'request', None)
        headers = getattr(request, 'headers', None) or {}
        auth_header = headers.get('Authorization')
        if auth_header:
            token_format = 'Bearer token' if auth_header.startswith('Bearer ') else 'Other auth type'
            logger.error(
                f"Authentication failed: check token validity or permissions "
                f"(auth header format: {token_format}, length: {len(auth_header)})"
            )
        else:
            logger.error("Authentication failed: no Authorization header was sent")
