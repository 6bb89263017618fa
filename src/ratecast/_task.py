"""
Request task: the unit of work of a load test.

A task asks the call budget for permission, times one complete request
(response body included) and publishes the outcome. It runs on a worker
thread and is never awaited by the dispatch loop.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import requests

from ratecast._budget import CallBudget, ExhaustionSignal
from ratecast._channel import OutcomeChannel, RequestOutcome
from ratecast._http import REQUEST_BODY, HttpClient
from ratecast._utils import classify_transport_failure, elapsed_micros

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestTask:
    """
    Perform one logical request against the target.

    Every collaborator is passed in explicitly; a task holds no reference
    to global state and can be submitted to any executor.

    Attributes:
        url: Target URL (`http://<address>/`).
        http_client: Shared, thread-safe HTTP client.
        budget: Shared call budget.
        signal: Exhaustion signal fired when the budget denies this task.
        channel: Where the outcome is published.
        timeout: Per-request timeout in seconds.
    """

    url: str
    http_client: HttpClient
    budget: CallBudget
    signal: ExhaustionSignal
    channel: OutcomeChannel
    timeout: float = 30.0

    def __call__(self) -> RequestOutcome | None:
        return self.run()

    def run(self) -> RequestOutcome | None:
        """
        Run the task.

        Returns:
            The published outcome, or None when the budget denied the call.
        """
        if not self.budget.try_acquire():
            self.signal.fire()
            return None

        outcome = self._perform_request()
        self.channel.send(outcome)
        return outcome

    def _perform_request(self) -> RequestOutcome:
        """
        Issue the request and time it until the body is fully read.

        Transport failures are never retried and never raised: they become
        an outcome with status 0 and a failure reason.
        """
        start_ns = time.perf_counter_ns()
        try:
            response = self.http_client.get(self.url, data=REQUEST_BODY, timeout=self.timeout)
            _ = response.content  # whole body must be in before stopping the clock
            status_code = response.status_code
        except (requests.RequestException, OSError) as e:
            duration_us = elapsed_micros(start_ns)
            reason = classify_transport_failure(e)
            logger.warning(f"Request to {self.url} failed ({reason}): {e}")
            return RequestOutcome.transport_failure(reason, duration_us)

        return RequestOutcome(status_code=status_code, duration_us=elapsed_micros(start_ns))
