"""
Utility functions for the load generator.

These functions are not part of the public API and may change without notice.
"""

from __future__ import annotations

import time

import requests

from ratecast._channel import FailureReason


def classify_transport_failure(exc: Exception) -> FailureReason:
    """
    Map a transport-level exception to a FailureReason.

    This is the single source of truth for naming transport failures.

    Args:
        exc: The exception raised while performing a request.

    Returns:
        TIMEOUT for connect/read timeouts (checked first, since
        `requests.ConnectTimeout` is also a `ConnectionError`),
        CONNECTION for refused/reset connections, PROTOCOL otherwise.
    """
    timeout_exceptions_types = (
        requests.Timeout,
        TimeoutError,  # Python built-in
    )
    if isinstance(exc, timeout_exceptions_types):
        return FailureReason.TIMEOUT
    if isinstance(exc, (requests.ConnectionError, ConnectionError)):
        return FailureReason.CONNECTION
    return FailureReason.PROTOCOL


def elapsed_micros(start_ns: int) -> int:
    """Microseconds elapsed since `start_ns` (a `time.perf_counter_ns()` reading)."""
    return (time.perf_counter_ns() - start_ns) // 1_000


def format_duration_as_seconds(duration_us: int) -> float:
    """
    Convert a duration in microseconds to seconds.

    Example:
        >>> format_duration_as_seconds(1_500_000)
        1.5
    """
    return duration_us / 1_000_000
