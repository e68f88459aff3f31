"""Tests for the shared per-minute directions budget."""
import threading

import pytest

from src.directions.budget import RequestBudget


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_refuses():
    budget = RequestBudget(max_calls=3, window_seconds=60, clock=FakeClock())
    assert [budget.try_acquire() for _ in range(4)] == [True, True, True, False]
    assert budget.remaining == 0


def test_window_resets():
    clock = FakeClock()
    budget = RequestBudget(max_calls=2, window_seconds=60, clock=clock)
    assert budget.try_acquire()
    assert budget.try_acquire()
    assert not budget.try_acquire()
    clock.now += 59.9
    assert not budget.try_acquire()
    clock.now += 0.1
    assert budget.try_acquire()
    assert budget.remaining == 1


def test_zero_budget_refuses_everything():
    budget = RequestBudget(max_calls=0, clock=FakeClock())
    assert not budget.try_acquire()


def test_snapshot_reports_usage():
    clock = FakeClock()
    budget = RequestBudget(max_calls=30, window_seconds=60, clock=clock)
    budget.try_acquire()
    clock.now += 15
    snap = budget.snapshot()
    assert snap["budget_limit_per_window"] == 30
    assert snap["budget_remaining"] == 29
    assert snap["budget_resets_in_seconds"] == 45.0
    assert snap["budget_rejected_total"] == 0


def test_rejections_are_counted():
    budget = RequestBudget(max_calls=1, clock=FakeClock())
    budget.try_acquire()
    budget.try_acquire()
    budget.try_acquire()
    assert budget.snapshot()["budget_rejected_total"] == 2


@pytest.mark.parametrize("kwargs", [{"max_calls": -1}, {"window_seconds": 0}])
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        RequestBudget(**kwargs)


def test_concurrent_acquire_never_exceeds_limit():
    budget = RequestBudget(max_calls=50, window_seconds=3600)
    granted = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            if budget.try_acquire():
                with lock:
                    granted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(granted) == 50
    assert budget.remaining == 0
