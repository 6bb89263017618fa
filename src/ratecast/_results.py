"""
Result aggregation for load test runs.

Outcomes are collected into a `ResultSet` once dispatch has stopped, then
reduced to a `LoadTestSummary`: the success rate (share of non-5xx
responses) and the median round trip duration.

Example:
    >>> summary = aggregate([500, 500, 200], [1_000, 2_000, 3_000])
    >>> round(summary.success_rate_percent, 2)
    33.33
    >>> summary.median_duration_us
    2000
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from ratecast._channel import FailureReason, RequestOutcome

logger = logging.getLogger(__name__)

# Server error range, upper bound excluded.
SERVER_ERROR_MIN = 500
SERVER_ERROR_MAX = 599


class NoResultsError(Exception):
    """
    Raised when there is nothing to aggregate.

    Happens when no request completed during the run, e.g. the target was
    unreachable for the whole test.
    """

    def __init__(self) -> None:
        super().__init__("No results are available! Connection issue for full duration of tests.")


def is_server_error(status_code: int) -> bool:
    return SERVER_ERROR_MIN <= status_code < SERVER_ERROR_MAX


@dataclass(frozen=True)
class LoadTestSummary:
    """
    Aggregate statistics of a run.

    Attributes:
        success_rate_percent: 100 * (1 - server_errors / sample_count).
        median_duration_us: Median round trip duration in microseconds.
            For an even number of samples this is the upper middle element
            (index n // 2 of the sorted durations); no interpolation.
        sample_count: Number of HTTP responses aggregated.
        server_errors: Number of 5xx responses.
        transport_errors: Granted requests that got no HTTP response.
    """

    success_rate_percent: float
    median_duration_us: int
    sample_count: int
    server_errors: int
    transport_errors: int = 0

    @property
    def median_duration_seconds(self) -> float:
        return self.median_duration_us / 1_000_000


def aggregate(statuses: Sequence[int], durations: Sequence[int]) -> LoadTestSummary:
    """
    Compute success rate and median duration.

    Arrival order is irrelevant: durations are sorted before the median is
    taken.

    Args:
        statuses: Observed HTTP status codes.
        durations: Observed durations, in microseconds.

    Returns:
        The LoadTestSummary of the samples.

    Raises:
        NoResultsError: If either sequence is empty.
    """
    if not statuses or not durations:
        raise NoResultsError()

    server_errors = sum(1 for status in statuses if is_server_error(status))
    success_rate = 100.0 * (1.0 - server_errors / len(statuses))

    sorted_durations = sorted(durations)
    median = sorted_durations[len(sorted_durations) // 2]

    return LoadTestSummary(
        success_rate_percent=success_rate,
        median_duration_us=median,
        sample_count=len(statuses),
        server_errors=server_errors,
    )


@dataclass
class ResultSet:
    """
    Everything observed during a run, assembled after dispatch stopped.

    Attributes:
        statuses: Status codes of requests that got an HTTP response.
        durations: Durations (microseconds) of the same requests.
        failures: Count of transport failures, per reason.
        granted: Calls granted by the budget during the run.
    """

    statuses: list[int] = field(default_factory=list)
    durations: list[int] = field(default_factory=list)
    failures: Counter[FailureReason] = field(default_factory=Counter)
    granted: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[RequestOutcome], granted: int = 0) -> ResultSet:
        result_set = cls(granted=granted)
        for outcome in outcomes:
            result_set.add(outcome)
        return result_set

    def add(self, outcome: RequestOutcome) -> None:
        if outcome.failure is not None:
            self.failures[outcome.failure] += 1
            return
        self.statuses.append(outcome.status_code)
        self.durations.append(outcome.duration_us)

    @property
    def transport_errors(self) -> int:
        return sum(self.failures.values())

    @property
    def collected(self) -> int:
        """Outcomes collected, transport failures included."""
        return len(self.statuses) + self.transport_errors

    @property
    def missing(self) -> int:
        """Granted calls whose outcome was not collected before aggregation."""
        return max(0, self.granted - self.collected)

    def aggregate(self) -> LoadTestSummary:
        """
        Aggregate this result set.

        Raises:
            NoResultsError: If no request got an HTTP response.
        """
        if self.transport_errors:
            breakdown = ", ".join(f"{reason}={count}" for reason, count in sorted(self.failures.items()))
            logger.warning(f"⚠️ {self.transport_errors} request(s) failed at transport level: {breakdown}")
        summary = aggregate(self.statuses, self.durations)
        return replace(summary, transport_errors=self.transport_errors)
