"""
Call budget and exhaustion signal.

`CallBudget` is the only shared mutable state of a run. Every request task
asks it for permission before issuing a request; the check-and-decrement
happens under a single lock, so exactly `total` calls are ever granted,
whatever the interleaving of worker threads.

`ExhaustionSignal` is the one-shot notification a task raises when the
budget refuses it. The dispatch loop polls it without blocking.

Example:
    >>> budget = CallBudget(total=2)
    >>> budget.try_acquire(), budget.try_acquire(), budget.try_acquire()
    (True, True, False)
    >>> signal = ExhaustionSignal()
    >>> signal.fire(), signal.fire()
    (True, False)
"""

import logging
import threading

logger = logging.getLogger(__name__)


class CallBudget:
    """
    Thread-safe counter of remaining permitted calls.

    `try_acquire()` is linearizable: the read, the check and the decrement
    happen under one lock, so two threads can never both take the last call.

    Attributes:
        total: The initial budget.

    Args:
        total: Number of calls that may be granted over the budget's lifetime.
    """

    def __init__(self, total: int):
        assert total is not None, "total cannot be None."
        assert total >= 0, "total must be >= 0."

        self.total = total
        self._remaining = total
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """
        Take one call from the budget.

        Returns:
            True (granted) if the caller may perform exactly one request,
            False (denied) if the budget is exhausted.
        """
        with self._lock:
            if self._remaining > 0:
                self._remaining -= 1
                return True
            return False

    @property
    def remaining(self) -> int:
        """Calls still available."""
        with self._lock:
            return self._remaining

    @property
    def granted(self) -> int:
        """Calls granted so far."""
        with self._lock:
            return self.total - self._remaining

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0

    def __repr__(self) -> str:
        return f"CallBudget(total={self.total}, remaining={self.remaining})"


class ExhaustionSignal:
    """
    One-shot, idempotent notification that the budget reached zero.

    Behaves like a channel of capacity one with non-blocking sends: the
    first `fire()` delivers the signal, every later call is a harmless no-op.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    def fire(self) -> bool:
        """
        Deliver the signal.

        Returns:
            True for the delivery that took effect, False for every later one.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
        logger.info("Total call limit reached...")
        return True

    def is_set(self) -> bool:
        """Non-blocking poll."""
        return self._event.is_set()
