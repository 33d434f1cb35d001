"""
Tests for the caller-side retry helper.
"""

import pytest
from unittest.mock import Mock

from asc_client.deadline import Deadline
from asc_client.exceptions import (
    CancelledError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from asc_client.retry import RetryOptions, backoff_wait, with_retry


class TestWithRetry:
    """Test which errors are retried and how long to wait."""

    def test_success_first_try(self):
        fn = Mock(return_value="ok")
        sleep = Mock()
        assert with_retry(fn, sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_retries_rate_limit_then_succeeds(self):
        fn = Mock(side_effect=[RateLimitError(status_code=429), "ok"])
        sleep = Mock()

        assert with_retry(fn, RetryOptions(base_delay=1.0), sleep=sleep) == "ok"
        assert fn.call_count == 2
        assert 0 <= sleep.call_args[0][0] <= 1.0

    def test_retry_after_wins(self):
        fn = Mock(side_effect=[ServerError(status_code=503, retry_after=9.0), "ok"])
        sleep = Mock()

        with_retry(fn, sleep=sleep)
        sleep.assert_called_once_with(9.0)

    def test_non_retryable_propagates_immediately(self):
        fn = Mock(side_effect=NotFoundError(code="NOT_FOUND", status_code=404))
        sleep = Mock()

        with pytest.raises(NotFoundError):
            with_retry(fn, sleep=sleep)
        assert fn.call_count == 1
        sleep.assert_not_called()

    def test_plain_server_error_not_retried(self):
        fn = Mock(side_effect=ServerError(status_code=500))
        with pytest.raises(ServerError):
            with_retry(fn, sleep=Mock())
        assert fn.call_count == 1

    def test_retry_limit_exceeded(self):
        fn = Mock(side_effect=RateLimitError(status_code=429, message="Rate limit exceeded"))

        with pytest.raises(RateLimitError, match="retry limit exceeded after 3 attempts"):
            with_retry(fn, RetryOptions(max_retries=2), sleep=Mock())
        assert fn.call_count == 3

    def test_zero_retries_disables(self):
        fn = Mock(side_effect=RateLimitError(status_code=429, message="Rate limit exceeded"))

        with pytest.raises(RateLimitError, match="^Rate limit exceeded$"):
            with_retry(fn, RetryOptions(max_retries=0), sleep=Mock())
        assert fn.call_count == 1

    def test_deadline_stops_waiting(self):
        fn = Mock(side_effect=RateLimitError(status_code=429, retry_after=30.0))
        deadline = Deadline(timeout=0.05)

        with pytest.raises(CancelledError):
            with_retry(fn, RetryOptions(max_retries=5), deadline=deadline)
        assert fn.call_count == 1


class TestBackoff:
    """Test the delays chosen between attempts."""

    def test_delays_stay_capped(self):
        fn = Mock(side_effect=[RateLimitError(status_code=429)] * 6 + ["ok"])
        sleep = Mock()

        with_retry(fn, RetryOptions(max_retries=6, base_delay=1.0, max_delay=4.0), sleep=sleep)

        delays = [c[0][0] for c in sleep.call_args_list]
        assert len(delays) == 6
        assert 0 <= delays[0] <= 1.0
        assert all(0 <= d <= 4.0 for d in delays)

    def test_backoff_wait_bounds(self):
        wait = backoff_wait(RetryOptions(base_delay=2.0, max_delay=5.0))
        state = Mock(attempt_number=1)
        assert 0 <= wait(state) <= 2.0
        state.attempt_number = 10
        assert 0 <= wait(state) <= 5.0
