"""
Outcome channel between request tasks and the result aggregator.

Request tasks (many producers, one per worker thread) publish one
`RequestOutcome` each; the load generator (single consumer) drains them
once dispatch has stopped. The channel is unbounded, so producers never
block on a send.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Status code recorded for requests that never got an HTTP response.
TRANSPORT_FAILURE_STATUS = 0


class FailureReason(enum.StrEnum):
    """
    Why a granted request produced no HTTP response.

    Attributes:
        TIMEOUT: Connect or read timeout.
        CONNECTION: Connection refused, reset or DNS failure.
        PROTOCOL: Malformed response or any other transport-level error.
    """

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    PROTOCOL = "protocol"


@dataclass(frozen=True)
class RequestOutcome:
    """
    Result of one granted request.

    Attributes:
        status_code: HTTP status code, or 0 when the request failed at the
            transport level.
        duration_us: Round trip duration in microseconds, body included.
        failure: Set only for transport failures.
    """

    status_code: int
    duration_us: int
    failure: FailureReason | None = None

    @classmethod
    def transport_failure(cls, reason: FailureReason, duration_us: int) -> RequestOutcome:
        return cls(status_code=TRANSPORT_FAILURE_STATUS, duration_us=duration_us, failure=reason)

    def is_transport_failure(self) -> bool:
        return self.failure is not None


class OutcomeChannel:
    """
    Unbounded multi-producer, single-consumer conduit of `RequestOutcome`.

    Sends are accepted until the channel is closed. `drain()` closes the
    channel and always terminates: it never waits on an empty channel past
    its timeout.

    Example:
        >>> channel = OutcomeChannel()
        >>> channel.send(RequestOutcome(status_code=200, duration_us=1500))
        True
        >>> channel.drain()
        [RequestOutcome(status_code=200, duration_us=1500, failure=None)]
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[RequestOutcome] = queue.SimpleQueue()
        self._closed = False
        self._lock = threading.Lock()
        self.lost = 0

    def send(self, outcome: RequestOutcome) -> bool:
        """
        Publish an outcome.

        Returns:
            True if the outcome was enqueued, False if the channel was already
            closed (the sample is lost).
        """
        with self._lock:
            if not self._closed:
                self._queue.put(outcome)
                return True
            self.lost += 1

        logger.warning(f"Outcome channel closed, sample lost (status={outcome.status_code}, duration={outcome.duration_us}us)")
        return False

    def close(self) -> None:
        """Stop accepting outcomes. Idempotent."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def drain(
        self,
        expected: int | None = None,
        timeout: float = 0.0,
    ) -> list[RequestOutcome]:
        """
        Collect every outcome sent so far, then close the channel.

        Args:
            expected: Number of outcomes the caller is waiting for. When set
                together with a positive timeout, the drain blocks until that
                many outcomes arrived or the timeout elapsed.
            timeout: Maximum seconds to wait for `expected` outcomes.

        Returns:
            The drained outcomes, in arrival order.
        """
        assert timeout is not None, "timeout cannot be None."
        assert timeout >= 0, "timeout must be >= 0."

        outcomes = self._take_available()
        deadline = time.monotonic() + timeout

        while expected is not None and len(outcomes) < expected:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                outcomes.append(self._queue.get(timeout=remaining))
            except queue.Empty:
                break
            outcomes.extend(self._take_available())

        self.close()
        # Sends that won the race against close()
        outcomes.extend(self._take_available())

        if expected is not None and len(outcomes) < expected:
            logger.info(
                f"Drained {len(outcomes)} of {expected} expected outcomes "
                f"({expected - len(outcomes)} still in flight)"
            )
        return outcomes

    def _take_available(self) -> list[RequestOutcome]:
        taken: list[RequestOutcome] = []
        while True:
            try:
                taken.append(self._queue.get_nowait())
            except queue.Empty:
                return taken
