"""Tests for CallBudget and ExhaustionSignal."""

import logging
import threading

import pytest

from ratecast import CallBudget, ExhaustionSignal

# =============================================================================
# CallBudget Tests
# =============================================================================


class TestCallBudget:
    """Tests for the CallBudget class."""

    def test_grants_exactly_total_calls(self):
        budget = CallBudget(total=3)

        decisions = [budget.try_acquire() for _ in range(5)]

        assert decisions == [True, True, True, False, False]

    def test_remaining_never_goes_negative(self):
        budget = CallBudget(total=1)

        for _ in range(10):
            budget.try_acquire()

        assert budget.remaining == 0
        assert budget.granted == 1
        assert budget.exhausted

    def test_zero_budget_denies_immediately(self):
        budget = CallBudget(total=0)
        assert budget.try_acquire() is False

    def test_init_fails_with_negative_total(self):
        with pytest.raises(AssertionError, match="total must be >= 0"):
            CallBudget(total=-1)

    def test_repr_shows_remaining(self):
        budget = CallBudget(total=2)
        budget.try_acquire()
        assert repr(budget) == "CallBudget(total=2, remaining=1)"

    @pytest.mark.parametrize("run", range(3))
    def test_concurrent_acquire_grants_exactly_total(self, run):
        """No double grant and no lost grant under heavy contention."""
        total = 1000
        budget = CallBudget(total=total)
        barrier = threading.Barrier(16)
        grants = [0] * 16

        def worker(idx: int) -> None:
            barrier.wait()
            for _ in range(200):
                if budget.try_acquire():
                    grants[idx] += 1

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(grants) == total
        assert budget.remaining == 0
        assert budget.granted == total


# =============================================================================
# ExhaustionSignal Tests
# =============================================================================


class TestExhaustionSignal:
    """Tests for the ExhaustionSignal class."""

    def test_not_set_initially(self):
        assert ExhaustionSignal().is_set() is False

    def test_first_fire_takes_effect(self):
        signal = ExhaustionSignal()

        assert signal.fire() is True
        assert signal.is_set() is True

    def test_later_fires_are_no_ops(self):
        signal = ExhaustionSignal()
        signal.fire()

        assert signal.fire() is False
        assert signal.fire() is False
        assert signal.is_set() is True

    def test_logs_only_first_delivery(self, caplog):
        signal = ExhaustionSignal()

        with caplog.at_level(logging.INFO, logger="ratecast._budget"):
            signal.fire()
            signal.fire()

        assert [r.message for r in caplog.records].count("Total call limit reached...") == 1

    def test_concurrent_fires_deliver_once(self):
        """Several tasks observing Denied at once: exactly one delivery wins."""
        signal = ExhaustionSignal()
        barrier = threading.Barrier(20)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            delivered = signal.fire()
            with lock:
                results.append(delivered)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 19
