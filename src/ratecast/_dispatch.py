"""
Rate-sustaining dispatch loop and the load generator facade.

The `DispatchLoop` launches one wave of up to `rate` request tasks per tick
of a `RateTicker` and never waits for them: tasks run on a thread-pool and
report through the `OutcomeChannel`. It stops as soon as a task reports
that the call budget is exhausted.

`LoadGenerator` wires a full run together: shared HTTP pool, call budget,
exhaustion signal, outcome channel, worker pool and dispatch loop.

Example:
    >>> from ratecast import EngineConfig, LoadGenerator, LoadParams
    >>> params = LoadParams.create(rate=10, total=50, address="localhost:8080")
    >>> summary = LoadGenerator(params, EngineConfig()).run_and_aggregate()
    >>> print(f"success: {summary.success_rate_percent:.2f} %")
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import Future, ThreadPoolExecutor

from ratecast._budget import CallBudget, ExhaustionSignal
from ratecast._channel import OutcomeChannel, RequestOutcome
from ratecast._config import EngineConfig, InvalidRateError, LoadParams
from ratecast._http import HttpClient, PooledHttpClient
from ratecast._results import LoadTestSummary, ResultSet
from ratecast._task import RequestTask
from ratecast._ticker import RateTicker

logger = logging.getLogger(__name__)


class DispatchState(enum.StrEnum):
    """
    Lifecycle of a dispatch loop.

    Attributes:
        RUNNING: Launching one wave per tick.
        DRAINING: Exhaustion observed, no new waves are launched.
        STOPPED: Dispatch has ceased. In-flight tasks may still be running.
    """

    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    STOPPED = "STOPPED"


def _log_task_crash(future: Future) -> None:
    """Done-callback surfacing unexpected task errors (transport errors never get here)."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"❌ Request task crashed: {exc}", exc_info=exc)


class DispatchLoop:
    """
    Launches waves of request tasks at a fixed cadence until exhaustion.

    Concurrency is bounded per wave (`rate` tasks) but not across waves:
    a wave may still be in flight when the next one is launched.

    Args:
        rate: Tasks launched per wave.
        task: The request task to run; it is stateless and submitted
            `rate` times per wave.
        signal: Exhaustion signal, polled without blocking before each wave.
        ticker: Paces the waves.
        executor: Worker pool running the tasks.
    """

    def __init__(
        self,
        rate: int,
        task: RequestTask,
        signal: ExhaustionSignal,
        ticker: RateTicker,
        executor: ThreadPoolExecutor,
    ):
        assert rate is not None, "rate cannot be None."
        assert task is not None, "task cannot be None."
        assert signal is not None, "signal cannot be None."
        assert ticker is not None, "ticker cannot be None."
        assert executor is not None, "executor cannot be None."

        self.rate = rate
        self.task = task
        self.signal = signal
        self.ticker = ticker
        self.executor = executor
        self.state = DispatchState.RUNNING
        self.waves = 0
        self.launched = 0

    def run(self) -> int:
        """
        Dispatch waves until the exhaustion signal is observed.

        Returns immediately after the last wave is launched; it does not
        wait for in-flight tasks.

        Returns:
            The number of waves launched.

        Raises:
            InvalidRateError: If rate is zero (no wave is ever launched).
        """
        if self.rate <= 0:
            self._transition(DispatchState.DRAINING)
            self._transition(DispatchState.STOPPED)
            raise InvalidRateError(self.rate)

        while not self.signal.is_set():
            self.ticker.tick()
            self._launch_wave()

        self._transition(DispatchState.DRAINING)
        self._transition(DispatchState.STOPPED)
        return self.waves

    def _launch_wave(self) -> None:
        for _ in range(self.rate):
            future = self.executor.submit(self.task)
            future.add_done_callback(_log_task_crash)
        self.waves += 1
        self.launched += self.rate
        logger.debug(f"Wave #{self.waves} launched ({self.rate} tasks, {self.launched} in total)")

    def _transition(self, state: DispatchState) -> None:
        logger.debug(f"Dispatch state: {self.state} -> {state}")
        self.state = state


class LoadGenerator:
    """
    Runs a complete load test.

    Example:
        >>> params = LoadParams.create(rate=100, total=1000, address="localhost:3000")
        >>> result_set = LoadGenerator(params).run()
        >>> summary = result_set.aggregate()

    Args:
        params: Validated run inputs.
        config: Engine tunables. Defaults to `EngineConfig()`.
        http_client: Shared HTTP client. When None, a `PooledHttpClient` is
            created for the run and closed once every granted request
            has reported back.
        ticker: Wave ticker. When None, one is built from `config.wave_interval`.
    """

    def __init__(
        self,
        params: LoadParams,
        config: EngineConfig | None = None,
        http_client: HttpClient | None = None,
        ticker: RateTicker | None = None,
    ):
        assert params is not None, "params cannot be None."

        self.params = params
        self.config = (config or EngineConfig()).validate()
        self.http_client = http_client
        self.ticker = ticker

    def run(self) -> ResultSet:
        """
        Dispatch `total` requests at `rate` per wave and collect outcomes.

        Returns:
            The outcomes collected once dispatch stopped (plus whatever
            arrived within `config.drain_timeout`).

        Raises:
            InvalidRateError: If rate is zero.
        """
        params, config = self.params, self.config
        budget = CallBudget(total=params.total)
        signal = ExhaustionSignal()
        channel = OutcomeChannel()

        owns_client = self.http_client is None
        http_client = self.http_client or PooledHttpClient(pool_maxsize=config.pool_maxsize)
        max_workers = config.workers_for(params.rate)
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ratecast")

        task = RequestTask(
            url=params.url,
            http_client=http_client,
            budget=budget,
            signal=signal,
            channel=channel,
            timeout=config.request_timeout,
        )
        loop = DispatchLoop(
            rate=params.rate,
            task=task,
            signal=signal,
            ticker=self.ticker or RateTicker(interval=config.wave_interval),
            executor=executor,
        )

        logger.info(f"🛜 Starting load test against {params.url}")
        logger.info(f"   ├ rate={params.rate} req/wave, wave_interval={config.wave_interval}s")
        logger.info(f"   ├ total={params.total}")
        logger.info(f"   └ max_workers={max_workers}, pool_maxsize={config.pool_maxsize}")

        outcomes: list[RequestOutcome] = []
        try:
            waves = loop.run()
            outcomes = channel.drain(expected=budget.granted, timeout=config.drain_timeout)
        finally:
            # Tasks still queued have not asked the budget yet, so none of them holds a grant
            executor.shutdown(wait=False, cancel_futures=True)
            # Stragglers keep using the pool; it is only closed once nothing is in flight
            if owns_client and len(outcomes) >= budget.granted:
                http_client.close()

        result_set = ResultSet.from_outcomes(outcomes, granted=budget.granted)
        logger.info(f"🛜 Dispatch finished after {waves} wave(s).")
        logger.info(f"   ├ granted calls = {result_set.granted}")
        logger.info(f"   ├ collected outcomes = {result_set.collected}")
        logger.info(f"   └ not collected (still in flight) = {result_set.missing}")
        return result_set

    def run_and_aggregate(self) -> LoadTestSummary:
        """
        Run the test and aggregate its results.

        Raises:
            InvalidRateError: If rate is zero.
            NoResultsError: If no request got an HTTP response.
        """
        return self.run().aggregate()
