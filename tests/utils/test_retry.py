"""Tests for retry_on_transient_error."""

import pytest

from utils.retry import backoff_delay, is_transient_network_error, retry_on_transient_error


class Flaky:
    """Fails with the given exceptions, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def no_sleep(delay):
    pass


class TestRetry:

    def test_succeeds_after_transient(self):
        func = Flaky(ConnectionError(), ConnectionError())
        wrapped = retry_on_transient_error(is_transient_network_error, max_retries=3,
                                           sleep=no_sleep)(func)
        assert wrapped() == "ok"
        assert func.calls == 3

    def test_non_retryable_raised_immediately(self):
        func = Flaky(ValueError("bad"))
        wrapped = retry_on_transient_error(is_transient_network_error, sleep=no_sleep)(func)
        with pytest.raises(ValueError):
            wrapped()
        assert func.calls == 1

    def test_gives_up_after_max_retries(self):
        func = Flaky(*[ConnectionError()] * 5)
        wrapped = retry_on_transient_error(is_transient_network_error, max_retries=2,
                                           sleep=no_sleep)(func)
        with pytest.raises(ConnectionError):
            wrapped()
        assert func.calls == 3

    def test_on_retry_called(self):
        seen = []
        func = Flaky(ConnectionError())
        wrapped = retry_on_transient_error(
            is_transient_network_error, sleep=no_sleep,
            on_retry=lambda exc, attempt, delay: seen.append(attempt),
        )(func)
        wrapped()
        assert seen == [1]


class TestBackoff:

    def test_bounded(self):
        for attempt in range(10):
            delay = backoff_delay(attempt, 1.0, 8.0)
            assert 0 <= delay < 12.0

    def test_grows(self):
        assert backoff_delay(0, 1.0, 60.0) < 1.5
        assert backoff_delay(4, 1.0, 60.0) >= 8.0
