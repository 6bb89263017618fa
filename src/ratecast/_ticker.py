"""
Fixed-schedule ticker used to pace dispatch waves.

Ticks are anchored to the instant of the first tick: the k-th tick is due
at `start + k * interval`, no matter how long the work between two ticks
took. When the caller falls behind, overdue ticks resolve immediately
(burst) until the schedule is caught up.
"""

import time
from collections.abc import Callable


class RateTicker:
    """
    Drift-free periodic timer.

    Example:
        >>> ticker = RateTicker(interval=1.0)
        >>> ticker.tick()  # returns immediately
        >>> ticker.tick()  # returns ~1s after the first tick

    Args:
        interval: Seconds between two scheduled ticks.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        assert interval is not None, "interval cannot be None."
        assert interval > 0, "interval must be greater than 0."

        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._next_deadline: float | None = None
        self.ticks = 0

    def tick(self) -> float:
        """
        Block until the next scheduled instant.

        Returns:
            The scheduled instant (clock time) this tick resolved for.
        """
        now = self._clock()
        if self._next_deadline is None:
            # First tick resolves immediately and fixes the schedule origin
            self._next_deadline = now

        deadline = self._next_deadline
        delay = deadline - now
        if delay > 0:
            self._sleep(delay)

        self._next_deadline = deadline + self.interval
        self.ticks += 1
        return deadline
