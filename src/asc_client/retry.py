"""
Retry policy for callers of the client.

The dispatcher sends exactly one request per call; callers that want to ride
out rate limiting (429) or maintenance windows (503) wrap their call with
with_retry(), which drives a tenacity Retrying loop.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from .deadline import Deadline
from .exceptions import is_retryable

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0


@dataclass
class RetryOptions:
    """
    Retry behaviour.

    max_retries: extra attempts after the first; 0 disables retrying
    base_delay: backoff multiplier in seconds, doubled on each retry
    max_delay: cap on any single backoff delay in seconds
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY


class RetryAfterWait(wait_base):
    """Wait for the server's Retry-After when the error carries one, else back off."""

    def __init__(self, fallback_wait: wait_base):
        self._fallback_wait = fallback_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            retry_after = getattr(outcome.exception(), "retry_after", None)
            if retry_after:
                return float(retry_after)
        return max(0.0, float(self._fallback_wait(retry_state)))


def backoff_wait(options: RetryOptions) -> wait_base:
    """Exponential backoff with full jitter, capped at ``options.max_delay``."""
    return wait_random_exponential(multiplier=options.base_delay, max=options.max_delay)


def with_retry(
    fn: Callable[[], R],
    options: Optional[RetryOptions] = None,
    deadline: Optional[Deadline] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> R:
    """
    Call ``fn``, retrying retryable API errors.

    A server-supplied Retry-After wins over the computed backoff. Non-retryable
    errors propagate immediately.

    Raises:
        APIError: The last error, annotated when the retry limit is exceeded
        CancelledError: If the deadline expires while waiting
    """
    options = options or RetryOptions()
    deadline = deadline or Deadline()

    def exhausted(retry_state: RetryCallState) -> R:
        error = retry_state.outcome.exception()
        if options.max_retries > 0:
            error.args = (
                f"retry limit exceeded after {retry_state.attempt_number} attempts: {error}",
            )
        raise error

    retrying = Retrying(
        retry=retry_if_exception(is_retryable),
        wait=RetryAfterWait(backoff_wait(options)),
        stop=stop_after_attempt(options.max_retries + 1),
        sleep=sleep or deadline.sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=exhausted,
    )
    return retrying(fn)
