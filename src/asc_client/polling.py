"""
Polling helpers for long-running resource states (build processing and the like).
"""

import logging
from typing import Callable, Iterable, Optional, TypeVar

from .deadline import Deadline
from .exceptions import PollingError, ValidationError

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_POLL_INTERVAL = 30.0


def poll_until(
    fetch: Callable[[], R],
    state_of: Callable[[R], str],
    success_states: Iterable[str],
    failure_states: Iterable[str],
    interval: float = DEFAULT_POLL_INTERVAL,
    deadline: Optional[Deadline] = None,
    description: str = "resource",
) -> R:
    """
    Fetch a resource repeatedly until it reaches a terminal state.

    Args:
        fetch: Returns the current resource; errors propagate immediately
        state_of: Extracts the state string from a fetched resource
        success_states: States that end polling successfully
        failure_states: States that end polling with PollingError
        interval: Seconds between fetches
        deadline: Overall deadline; its expiry raises CancelledError
        description: Used in log and error messages

    Returns:
        The resource as fetched in its success state
    """
    if interval <= 0:
        raise ValidationError("Poll interval must be positive")

    success = {s.upper() for s in success_states}
    failure = {s.upper() for s in failure_states}
    deadline = deadline or Deadline()

    while True:
        deadline.check()
        resource = fetch()
        state = (state_of(resource) or "").strip().upper()
        logger.info(f"poll_until: {description} state={state or 'UNKNOWN'}")

        if state in success:
            return resource
        if state in failure:
            raise PollingError(f"{description} processing failed: {state}", state=state)

        deadline.sleep(interval)
