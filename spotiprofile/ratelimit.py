"""
Rate limiting utilities for external API calls.

Provides linear backoff and retry logic for Spotify and HTTP collaborators,
honoring the Retry-After header on 429 responses.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from spotipy.exceptions import SpotifyException

from .errors import ExternalServiceError, SpotiprofileError

logger = logging.getLogger(__name__)

# Configuration
DEFAULT_MAX_RETRIES = 3  # Total attempts, including the first
DEFAULT_RETRY_DELAY = 1.0  # Seconds, multiplied by the attempt number
MAX_WAIT_TIME = 300  # Cap wait time at 5 minutes

T = TypeVar("T")


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, SpotifyException):
        return error.http_status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _retry_after(error: BaseException) -> float:
    headers = getattr(error, "headers", None)
    if headers is None:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
    if not headers:
        return 0.0
    try:
        return float(headers.get("Retry-After", 0))
    except (TypeError, ValueError):
        return 0.0


def is_retryable(error: BaseException) -> bool:
    """Rate limits, server errors and failures without an HTTP status are worth retrying."""
    status = _status_of(error)
    if status is None:
        return True
    return status == 429 or status >= 500


def calculate_wait_time(error: BaseException, attempt: int, delay: float) -> float:
    """Wait before the next attempt: Retry-After when given, else ``delay * attempt``."""
    wait_time = 0.0
    if _status_of(error) == 429:
        wait_time = _retry_after(error)
    if wait_time <= 0:
        wait_time = delay * attempt
    return min(wait_time, MAX_WAIT_TIME)


def retry_call(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = DEFAULT_MAX_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    stage: str = "enrich",
    **kwargs: Any,
) -> T:
    """
    Execute a function, retrying failed attempts with linear backoff.

    Args:
        func: The function to call
        *args: Positional arguments to pass to func
        max_retries: Total number of attempts
        delay: Base backoff in seconds (attempt n waits ``delay * n``)
        sleep: Sleep function, replaceable in tests
        stage: Pipeline stage recorded on the raised error
        **kwargs: Keyword arguments to pass to func

    Returns:
        The result of func(*args, **kwargs)

    Raises:
        ExternalServiceError: If every attempt failed, or the failure is not retryable
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_retries + 1):
        try:
            return func(*args, **kwargs)
        except SpotiprofileError:
            raise
        except Exception as e:
            last_error = e
            if not is_retryable(e):
                raise ExternalServiceError(f"Request failed: {e}", stage=stage, cause=e) from e
            if attempt == max_retries:
                break
            wait_time = calculate_wait_time(e, attempt, delay)
            logger.warning(
                "Request failed (%s). Waiting %.1fs before retry (%d/%d)",
                e, wait_time, attempt, max_retries,
            )
            sleep(wait_time)

    raise ExternalServiceError(
        f"Max retries ({max_retries}) exceeded: {last_error}",
        stage=stage,
        cause=last_error,
    ) from last_error


class RateLimiter:
    """
    A retry policy that can be used as a method wrapper.

    Usage:
        limiter = RateLimiter(max_retries=3, delay=1.0)
        result = limiter.call(sp.tracks, track_ids)
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        stage: str = "enrich",
    ):
        self.max_retries = max_retries
        self.delay = delay
        self.sleep = sleep
        self.stage = stage

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute a call under this limiter's retry policy."""
        return retry_call(
            func, *args,
            max_retries=self.max_retries,
            delay=self.delay,
            sleep=self.sleep,
            stage=self.stage,
            **kwargs
        )
