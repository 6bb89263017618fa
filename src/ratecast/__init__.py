"""
ratecast: rate-controlled HTTP load generator.

Issues a fixed number of HTTP GET requests against one target at a
sustained rate over a shared connection pool, then reports the success
rate (share of non-5xx responses) and the median round trip duration.

Quick Start:
    >>> from ratecast import LoadGenerator, LoadParams
    >>> params = LoadParams.create(rate=100, total=1000, address="localhost:8080")
    >>> summary = LoadGenerator(params).run_and_aggregate()
    >>> print(f"success: {summary.success_rate_percent:.2f} %")
    >>> print(f"median: {summary.median_duration_seconds}s")

Main Classes:
    - LoadGenerator: Runs a complete load test.
    - DispatchLoop: Launches one wave of request tasks per tick until exhaustion.
    - RequestTask: Performs and times one request.
    - CallBudget: Thread-safe counter of remaining permitted calls.
    - ExhaustionSignal: One-shot notification that the budget is exhausted.
    - RateTicker: Drift-free ticker pacing the waves.
    - OutcomeChannel: Multi-producer queue of request outcomes.
    - ResultSet / LoadTestSummary / aggregate: Result aggregation.

Configuration:
    - LoadParams: Validated run inputs (rate, total, address).
    - EngineConfig: Tunables, overridable through RATECAST_* env vars.

HTTP Client:
    - HttpClient: Abstract base class for HTTP clients.
    - PooledHttpClient: requests-based client with a shared connection pool.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("ratecast")

from ratecast._budget import CallBudget, ExhaustionSignal
from ratecast._channel import (
    TRANSPORT_FAILURE_STATUS,
    FailureReason,
    OutcomeChannel,
    RequestOutcome,
)
from ratecast._config import (
    ConfigEnvVarError,
    ConfigValidationError,
    EngineConfig,
    InvalidPortError,
    InvalidRateError,
    LoadParams,
)
from ratecast._dispatch import DispatchLoop, DispatchState, LoadGenerator
from ratecast._http import HttpClient, PooledHttpClient
from ratecast._results import LoadTestSummary, NoResultsError, ResultSet, aggregate
from ratecast._task import RequestTask
from ratecast._ticker import RateTicker

__all__ = [
    "__version__",
    # Configuration
    "LoadParams",
    "EngineConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
    "InvalidPortError",
    "InvalidRateError",
    # HTTP Client
    "HttpClient",
    "PooledHttpClient",
    # Dispatch
    "LoadGenerator",
    "DispatchLoop",
    "DispatchState",
    "RequestTask",
    "CallBudget",
    "ExhaustionSignal",
    "RateTicker",
    # Outcomes and results
    "OutcomeChannel",
    "RequestOutcome",
    "FailureReason",
    "TRANSPORT_FAILURE_STATUS",
    "ResultSet",
    "LoadTestSummary",
    "NoResultsError",
    "aggregate",
]
