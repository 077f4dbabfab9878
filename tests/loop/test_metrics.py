from __future__ import annotations

import threading

import pytest

from goalloop.loop.metrics import (
    LoopMetricsAggregate,
    MetricsAggregator,
    get_metrics,
    reset_metrics_cache,
)
from goalloop.loop.models import LoopResult, LoopTrace


def make_result(success: bool, iterations: int) -> LoopResult:
    trace = LoopTrace()
    trace.freeze()
    return LoopResult(
        success=success,
        iterations=iterations,
        final_observation=None,
        trace=trace,
        reason=None if success else "max iterations reached",
    )


def test_empty_snapshot_has_zero_rates() -> None:
    snap = MetricsAggregator().snapshot()

    assert snap == LoopMetricsAggregate()
    assert snap.convergence_rate == 0
    assert snap.avg_iterations_to_goal == 0


def test_two_successes_one_failure() -> None:
    metrics = MetricsAggregator()
    metrics.record(make_result(True, 2))
    metrics.record(make_result(True, 4))
    metrics.record(make_result(False, 10))

    snap = metrics.snapshot()

    assert snap.total_pursuits == 3
    assert snap.successful_pursuits == 2
    assert snap.failed_pursuits == 1
    assert snap.total_iterations == 6
    assert snap.convergence_rate == pytest.approx(2 / 3)
    assert snap.avg_iterations_to_goal == 3.0


def test_only_failures_gives_zero_average() -> None:
    metrics = MetricsAggregator()
    metrics.record(make_result(False, 5))
    metrics.record(make_result(False, 5))

    snap = metrics.snapshot()

    assert snap.convergence_rate == 0
    assert snap.avg_iterations_to_goal == 0
    assert snap.total_iterations == 0


def test_reset_zeroes_everything() -> None:
    metrics = MetricsAggregator()
    metrics.record(make_result(True, 3))
    metrics.reset()

    snap = metrics.snapshot()
    assert snap.to_dict() == {
        "total_pursuits": 0,
        "successful_pursuits": 0,
        "total_iterations": 0,
        "convergence_rate": 0.0,
        "avg_iterations_to_goal": 0.0,
        "failed_pursuits": 0,
    }


def test_snapshot_is_a_copy() -> None:
    metrics = MetricsAggregator()
    metrics.record(make_result(True, 1))
    before = metrics.snapshot()
    metrics.record(make_result(True, 1))

    assert before.total_pursuits == 1
    assert metrics.snapshot().total_pursuits == 2


def test_concurrent_records_are_exact() -> None:
    metrics = MetricsAggregator()
    barrier = threading.Barrier(8)

    def worker(success: bool) -> None:
        barrier.wait()
        for _ in range(500):
            metrics.record(make_result(success, 2))

    threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = metrics.snapshot()
    assert snap.total_pursuits == 4000
    assert snap.successful_pursuits == 2000
    assert snap.total_iterations == 4000
    assert snap.convergence_rate == 0.5
    assert snap.avg_iterations_to_goal == 2.0


def test_get_metrics_is_process_wide_until_cache_reset() -> None:
    first = get_metrics()
    first.record(make_result(True, 1))

    assert get_metrics() is first
    assert get_metrics().snapshot().total_pursuits == 1

    reset_metrics_cache()
    assert get_metrics() is not first
    assert get_metrics().snapshot().total_pursuits == 0
