"""Rate limiting and retry utilities for AWS API calls."""

from __future__ import annotations

import logging
import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .. import metrics
from .errors import TransientProviderError

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])
_T = TypeVar("_T")

# Rate limit configuration
_AWS_RATE_LIMIT_PER_SECOND = float(os.getenv("AWS_RATE_LIMIT_PER_SECOND", "5.0"))
AWS_MAX_RETRIES = int(os.getenv("AWS_MAX_RETRIES", "5"))
AWS_RETRY_BASE_DELAY = float(os.getenv("AWS_RETRY_BASE_DELAY_SECONDS", "1.0"))
AWS_RETRY_MAX_DELAY = 30.0

# Track last call time; nodes apply from several worker threads
_aws_last_call_time: float = 0.0
_aws_lock = threading.Lock()

TRANSIENT_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "RequestThrottled",
    "SlowDown",
    "PriorRequestNotComplete",
    "ServiceUnavailable",
    "InternalError",
    "InternalFailure",
    "RequestTimeout",
    "RequestTimeoutException",
}


def rate_limit_aws(func: _F) -> _F:
    """Decorator to rate limit AWS API calls.

    Spaces calls at least 1 / AWS_RATE_LIMIT_PER_SECOND apart across all threads.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _aws_last_call_time
        with _aws_lock:
            min_interval = 1.0 / _AWS_RATE_LIMIT_PER_SECOND
            time_since_last_call = time.time() - _aws_last_call_time
            if time_since_last_call < min_interval:
                time.sleep(min_interval - time_since_last_call)
            _aws_last_call_time = time.time()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_transient_error(error: Exception) -> bool:
    """Check whether an exception is worth retrying.

    Args:
        error: Exception raised by a provider call

    Returns:
        True for throttling, 5xx and connection errors
    """
    if isinstance(error, (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)):
        return True
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code in TRANSIENT_ERROR_CODES:
            return True
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        return status == 429 or status >= 500
    return False


def is_throttling_error(error: Exception) -> bool:
    """Check whether an exception is a throttling response."""
    if not isinstance(error, ClientError):
        return False
    code = error.response.get("Error", {}).get("Code", "")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return "Throttl" in code or code in ("TooManyRequestsException", "RequestLimitExceeded", "SlowDown") or status == 429


def call_with_retries(
    fn: Callable[[], _T],
    operation: str,
    max_retries: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> _T:
    """Call fn, retrying transient provider errors with exponential backoff.

    Args:
        fn: Zero-argument callable performing the provider call(s)
        operation: Name used for logging and metrics
        max_retries: Retries after the first attempt (default: AWS_MAX_RETRIES)
        base_delay: First backoff delay in seconds (default: AWS_RETRY_BASE_DELAY)
        sleep: Sleep function, injectable for tests

    Returns:
        Whatever fn returns

    Raises:
        TransientProviderError: If every attempt failed with a transient error
        Exception: Any non-transient error is raised unchanged
    """
    retries = AWS_MAX_RETRIES if max_retries is None else max_retries
    delay = AWS_RETRY_BASE_DELAY if base_delay is None else base_delay

    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_transient_error(e):
                raise
            if is_throttling_error(e):
                metrics.rate_limit_hits_total.labels(api_type="aws").inc()
            if attempt >= retries:
                raise TransientProviderError(
                    f"{operation} failed after {attempt + 1} attempts: {e}",
                    attempts=attempt + 1,
                ) from e
            backoff = min(delay * (2 ** attempt), AWS_RETRY_MAX_DELAY)
            logger.warning(f"Transient error during {operation}, retrying in {backoff:.1f}s: {e}")
            sleep(backoff)
            attempt += 1
