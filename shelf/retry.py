"""Retry with linear backoff for provider calls.

Every provider request goes through :func:`retry_with_backoff` instead of
carrying its own attempt loop.
"""
import logging
import time
from typing import Callable, TypeVar

from .errors import RateLimitError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider rate-limit failures (the only retryable kind)."""
    if isinstance(exc, RateLimitError):
        return True
    message = str(exc).lower()
    return "rate limit" in message or "too many requests" in message


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    is_retryable: Callable[[BaseException], bool] = is_rate_limit_error,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Call *fn*, retrying retryable failures with a linear backoff.

    Retry ``n`` waits ``n * base_delay`` seconds.  After ``max_retries``
    retries the last error is re-raised.  Errors for which *is_retryable*
    returns False propagate on the first occurrence.

    Args:
        fn: Zero-argument callable performing the request
        is_retryable: Classifies an exception as transient
        max_retries: Number of retries after the first attempt
        base_delay: Delay unit in seconds
        sleep: Sleep function (injected in tests)
        on_retry: Called with (attempt, error) before each wait

    Returns:
        Whatever *fn* returns
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= max_retries:
                raise
            attempt += 1
            delay = attempt * base_delay
            log.warning(
                "Transient failure (%s), retry %d/%d in %.1fs",
                e, attempt, max_retries, delay,
            )
            if on_retry is not None:
                on_retry(attempt, e)
            sleep(delay)
