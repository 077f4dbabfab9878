"""Loop runtime public API."""

from .exceptions import (
    CallbackExecutionError,
    CriteriaEvaluationError,
    InvalidCallbackError,
    InvalidGoalError,
    LoopError,
)
from .metrics import LoopMetricsAggregate, MetricsAggregator, get_metrics
from .models import Goal, IterationRecord, LoopResult, LoopTrace, Plan, Reflection
from .runtime import Agent, apursue, apursue_agent, pursue, pursue_agent

__all__ = [
    "Agent",
    "CallbackExecutionError",
    "CriteriaEvaluationError",
    "Goal",
    "InvalidCallbackError",
    "InvalidGoalError",
    "IterationRecord",
    "LoopError",
    "LoopMetricsAggregate",
    "LoopResult",
    "LoopTrace",
    "MetricsAggregator",
    "Plan",
    "Reflection",
    "apursue",
    "apursue_agent",
    "get_metrics",
    "pursue",
    "pursue_agent",
]
