"""Custom exception types used across the loop runtime."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from goalloop.loop.models import LoopResult, Phase


class LoopError(Exception):
    """Base class for goalloop errors."""


class InvalidGoalError(LoopError):
    """Raised when a goal is malformed (e.g. max_iterations < 1)."""


class InvalidCallbackError(LoopError):
    """Raised when a required callback is missing or not callable."""


class CriteriaEvaluationError(LoopError):
    """A goal's success criteria raised while judging an observation.

    Never raised by the runtime; it is attached to the failed LoopResult.
    """


class CallbackExecutionError(LoopError):
    """Raised when plan/act/observe/reflect fails mid-pursuit.

    The partial trace is available on ``result``; the original exception is
    chained as ``__cause__``.
    """

    phase: Phase
    result: LoopResult

    def __init__(self, phase: Phase, result: LoopResult) -> None:
        super().__init__(result.reason)
        self.phase = phase
        self.result = result


class TraceFrozenError(LoopError):
    """Raised when appending to a trace whose pursuit has already finished."""


class ScenarioError(LoopError):
    """Raised for unknown scenarios or unreadable scenario configuration."""
