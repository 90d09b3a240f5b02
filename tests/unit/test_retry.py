"""Unit tests for the retry strategy."""

import pytest

from oculus_deploy.utils.retry import RetryStrategy


class Flaky:
    def __init__(self, failures, error=RuntimeError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


def test_succeeds_after_failures_with_fixed_delay():
    sleeps = []
    strategy = RetryStrategy(max_attempts=3, delay=5.0, sleep=sleeps.append)
    func = Flaky(2)

    assert strategy.execute_with_retry(func) == "ok"
    assert func.calls == 3
    assert strategy.attempts_made == 3
    assert sleeps == [5.0, 5.0]


def test_exhaustion_reraises_last_error():
    sleeps = []
    strategy = RetryStrategy(max_attempts=3, delay=1.0, sleep=sleeps.append)
    func = Flaky(10)

    with pytest.raises(RuntimeError, match="failure 3"):
        strategy.execute_with_retry(func)
    assert func.calls == 3
    assert len(sleeps) == 2


def test_non_retryable_error_raises_immediately():
    sleeps = []
    strategy = RetryStrategy(max_attempts=5, retry_on=(ValueError,), sleep=sleeps.append)
    func = Flaky(1, error=KeyError)

    with pytest.raises(KeyError):
        strategy.execute_with_retry(func)
    assert func.calls == 1
    assert sleeps == []


def test_backoff_is_capped():
    strategy = RetryStrategy(delay=10, backoff=2.0, max_delay=30)

    assert [strategy.get_delay(n) for n in (1, 2, 3, 4)] == [10, 20, 30, 30]


def test_jitter_stays_within_ten_percent():
    strategy = RetryStrategy(delay=10, jitter=True)
    for _ in range(20):
        assert 10 <= strategy.get_delay(1) <= 11


def test_passes_arguments_through():
    strategy = RetryStrategy(sleep=lambda _: None)
    assert strategy.execute_with_retry(lambda a, b=0: a + b, 1, b=2) == 3


def test_invalid_attempts():
    with pytest.raises(ValueError):
        RetryStrategy(max_attempts=0)

