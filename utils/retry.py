"""
Retry with exponential backoff for transient remote-call failures.

Only idempotent calls may be wrapped. Creating a folder or file twice is not
harmless (the provider allows same-named siblings), so write calls must run
exactly once and the caller decides whether to re-check and try again.

Backoff doubles from ``base_delay`` up to ``max_delay``; each wait is scaled
by a random factor in [0.5, 1.5) so that concurrent callers do not retry in
lockstep.

Usage:
    from utils.retry import retry_on_transient_error

    @retry_on_transient_error(is_retryable=is_transient_network_error, max_retries=3)
    def list_page():
        return request.execute()
"""

import random
import time
from functools import wraps
from typing import Callable, Optional


# HTTP statuses worth retrying: rate limiting and gateway/server hiccups
TRANSIENT_HTTP_STATUS_CODES = {429, 500, 502, 503, 504}

TRANSIENT_NETWORK_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based), with jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay * (0.5 + random.random())


def retry_on_transient_error(
    is_retryable: Callable[[Exception], bool],
    max_retries: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """Decorator that retries a function on transient errors.

    Args:
        is_retryable: Returns True if an exception is transient.
        max_retries: Retries after the first attempt (total = max_retries + 1).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for a single delay, in seconds.
        on_retry: Called as ``on_retry(exc, attempt, delay)`` before sleeping.
        sleep: Sleep function, replaceable in tests.

    Raises:
        The first non-retryable exception, or the last transient one once
        retries are exhausted.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    if not is_retryable(exc) or attempt == max_retries:
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    if on_retry:
                        on_retry(exc, attempt + 1, delay)
                    sleep(delay)
        return wrapper
    return decorator


def is_transient_network_error(exc: Exception) -> bool:
    """True for connection resets, timeouts and low-level socket errors."""
    return isinstance(exc, TRANSIENT_NETWORK_EXCEPTIONS)
