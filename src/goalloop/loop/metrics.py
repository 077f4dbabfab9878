"""Process-wide convergence statistics across completed pursuits."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any

from goalloop.loop.models import LoopResult


@dataclass(frozen=True)
class LoopMetricsAggregate:
    """Point-in-time view of the aggregator's counters and derived rates."""

    total_pursuits: int = 0
    successful_pursuits: int = 0
    total_iterations: int = 0
    convergence_rate: float = 0.0
    avg_iterations_to_goal: float = 0.0

    @property
    def failed_pursuits(self) -> int:
        return self.total_pursuits - self.successful_pursuits

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "failed_pursuits": self.failed_pursuits}


class MetricsAggregator:
    """Accumulates pursuit outcomes.

    ``total_iterations`` only counts iterations of successful pursuits, so
    ``avg_iterations_to_goal`` measures how quickly goals are reached.
    All access goes through one lock so snapshots are never torn.
    """

    _total_pursuits: int
    _successful_pursuits: int
    _total_iterations: int
    _lock: threading.Lock

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_pursuits = 0
        self._successful_pursuits = 0
        self._total_iterations = 0

    def record(self, result: LoopResult) -> None:
        with self._lock:
            self._total_pursuits += 1
            if result.success:
                self._successful_pursuits += 1
                self._total_iterations += result.iterations

    def snapshot(self) -> LoopMetricsAggregate:
        with self._lock:
            total = self._total_pursuits
            successful = self._successful_pursuits
            iterations = self._total_iterations

        return LoopMetricsAggregate(
            total_pursuits=total,
            successful_pursuits=successful,
            total_iterations=iterations,
            convergence_rate=successful / total if total else 0.0,
            avg_iterations_to_goal=iterations / successful if successful else 0.0,
        )

    def reset(self) -> None:
        with self._lock:
            self._total_pursuits = 0
            self._successful_pursuits = 0
            self._total_iterations = 0


@lru_cache(maxsize=1)
def get_metrics() -> MetricsAggregator:
    """Return the process-global metrics aggregator.

    Created lazily and kept for the lifetime of the process. Nothing records
    into it automatically; callers pass finished results to `record`.
    """

    return MetricsAggregator()


def reset_metrics_cache() -> None:
    """Drop the cached aggregator so the next `get_metrics` starts empty.

    Primarily used in tests.
    """

    get_metrics.cache_clear()
