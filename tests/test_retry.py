import pytest

from shelf.errors import ProviderError, RateLimitError
from shelf.retry import is_rate_limit_error, retry_with_backoff


def flaky(failures, error_factory):
    calls = []

    def fn():
        calls.append(1)
        if len(calls) <= failures:
            raise error_factory()
        return "ok"

    return fn, calls


def test_recovers_after_rate_limits(no_sleep):
    delays, sleep = no_sleep
    fn, calls = flaky(2, lambda: RateLimitError("rate limit"))
    assert retry_with_backoff(fn, sleep=sleep) == "ok"
    assert len(calls) == 3
    assert delays == [1.0, 2.0]


def test_gives_up_after_three_retries(no_sleep):
    delays, sleep = no_sleep
    fn, calls = flaky(10, lambda: RateLimitError("rate limit"))
    with pytest.raises(RateLimitError):
        retry_with_backoff(fn, sleep=sleep)
    assert len(calls) == 4
    assert delays == [1.0, 2.0, 3.0]


def test_other_errors_are_not_retried(no_sleep):
    delays, sleep = no_sleep
    fn, calls = flaky(1, lambda: ProviderError("HTTP 500"))
    with pytest.raises(ProviderError):
        retry_with_backoff(fn, sleep=sleep)
    assert len(calls) == 1
    assert delays == []


def test_on_retry_sees_each_attempt(no_sleep):
    _, sleep = no_sleep
    seen = []
    fn, _ = flaky(2, lambda: RateLimitError("rate limit"))
    retry_with_backoff(fn, sleep=sleep, on_retry=lambda n, e: seen.append(n))
    assert seen == [1, 2]


def test_rate_limit_detection():
    assert is_rate_limit_error(RateLimitError("x"))
    assert is_rate_limit_error(ProviderError("AniList rate limit exceeded"))
    assert is_rate_limit_error(ProviderError("429 Too Many Requests"))
    assert not is_rate_limit_error(ProviderError("boom"))
