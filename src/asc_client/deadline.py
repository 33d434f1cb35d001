"""
Caller-supplied cancellation and deadline signal.

A Deadline is shared between the caller and any number of in-flight calls.
The dispatcher bounds each HTTP request by the time remaining, and polling
loops sleep on the deadline so that cancel() wakes them immediately.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .exceptions import CancelledError

R = TypeVar("R")


class Deadline:
    """
    An optional absolute deadline plus an explicit cancel flag.

    Args:
        timeout: Seconds from now until the deadline elapses (None for no limit)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        """Create a deadline that elapses ``seconds`` from now."""
        return cls(timeout=seconds)

    def cancel(self) -> None:
        """Cancel every call bound to this deadline."""
        with self._lock:
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run ``callback`` when cancel() is called.

        The callback runs immediately if the deadline is already cancelled.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()

        def remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        """True once the deadline elapsed or cancel() was called."""
        if self.cancelled:
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left, 0.0 once expired, or None when there is no time limit."""
        if self.cancelled:
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def reason(self) -> str:
        return "cancelled" if self.cancelled else "deadline exceeded"

    def check(self) -> None:
        """Raise CancelledError if the deadline is no longer live."""
        if self.expired:
            raise CancelledError(f"request cancelled: {self.reason()}")

    def sleep(self, seconds: float) -> None:
        """
        Sleep for ``seconds`` or until the deadline expires, whichever is first.

        Raises:
            CancelledError: If the deadline expired before or during the sleep
        """
        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(remaining)
            raise CancelledError(f"request cancelled: {self.reason()}")
        if self._cancelled.wait(seconds):
            raise CancelledError("request cancelled: cancelled")


def effective_timeout(
    default: Optional[float], deadline: Optional[Deadline]
) -> Optional[float]:
    """Bound a request timeout by the time left on the deadline."""
    if deadline is None:
        return default
    remaining = deadline.remaining()
    if remaining is None:
        return default
    if default is None:
        return remaining
    return min(default, remaining)


def call_with_deadline(
    fn: Callable[[], R],
    deadline: Deadline,
    on_abandon: Optional[Callable[[], None]] = None,
) -> R:
    """
    Run a blocking ``fn`` in a worker thread, returning as soon as it finishes
    or the deadline expires or is cancelled.

    When the deadline wins, ``on_abandon`` is called (typically to close the
    in-flight response) and the worker is left to unwind on its own.

    Raises:
        CancelledError: If the deadline expired before ``fn`` finished
    """
    deadline.check()
    done = threading.Event()
    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = fn()
        except Exception as e:
            outcome["error"] = e
        finally:
            done.set()

    remove = deadline.add_callback(done.set)
    worker = threading.Thread(target=target, name="asc-request", daemon=True)
    worker.start()
    try:
        while not done.is_set() and not deadline.expired:
            done.wait(deadline.remaining())
    finally:
        remove()

    if "error" in outcome:
        raise outcome["error"]
    if "result" in outcome:
        return outcome["result"]

    if on_abandon is not None:
        on_abandon()
    raise CancelledError(f"request cancelled: {deadline.reason()}")
