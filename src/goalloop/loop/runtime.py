"""Bounded goal-pursuit loop: plan -> act -> observe -> reflect.

The runtime drives control flow only. What a plan means, how an action runs
and what an observation contains are all decided by the caller's callbacks;
any strategy state lives in those callbacks (closures or an `Agent` object),
never here, so concurrent pursuits share nothing.
"""

from __future__ import annotations

import inspect
import logging
import random
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from goalloop.loop.exceptions import (
    CallbackExecutionError,
    CriteriaEvaluationError,
    InvalidCallbackError,
    InvalidGoalError,
)
from goalloop.loop.models import (
    REASON_AGENT_EXIT,
    REASON_MAX_ITERATIONS,
    Goal,
    IterationRecord,
    LoopResult,
    LoopTrace,
    Phase,
    Plan,
)
from goalloop.loop.pursuit_log import PursuitLogger, make_pursuit_logger

logger = logging.getLogger("goalloop")

PlanFn = Callable[[Goal, Any], Any]
ActFn = Callable[[Plan], Any]
ObserveFn = Callable[[Any], Any]
ReflectFn = Callable[[Any, Goal], Any]


class Agent(Protocol):
    """The four callbacks of a pursuit bundled on one object.

    Implementations keep their own strategy state (thresholds, step sizes,
    counters) and update it from `reflect`.
    """

    def plan(self, goal: Goal, state: Any) -> Any: ...

    def act(self, plan: Plan) -> Any: ...

    def observe(self, action_result: Any) -> Any: ...

    def reflect(self, observation: Any, goal: Goal) -> Any: ...


def generate_pursuit_id() -> str:
    """Generate timestamp-based pursuit ID: {timestamp}-{random_suffix}."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=6))
    return f"{timestamp}-{random_suffix}"


def validate_goal(goal: Goal) -> None:
    """Raise InvalidGoalError unless the goal can be pursued."""
    max_iterations = getattr(goal, "max_iterations", None)
    # bool is an int subclass, but True is not a meaningful iteration cap
    if isinstance(max_iterations, bool) or not isinstance(max_iterations, int):
        raise InvalidGoalError(f"max_iterations must be an integer, got {max_iterations!r}")
    if max_iterations < 1:
        raise InvalidGoalError(f"max_iterations must be >= 1, got {max_iterations}")
    if not callable(getattr(goal, "success_criteria", None)):
        raise InvalidGoalError("success_criteria must be callable")


def validate_callbacks(**callbacks: Any) -> None:
    """Raise InvalidCallbackError for the first missing or non-callable callback."""
    for name, fn in callbacks.items():
        if fn is None:
            raise InvalidCallbackError(f"{name} is required")
        if not callable(fn):
            raise InvalidCallbackError(f"{name} must be callable, got {type(fn).__name__}")


def _as_plan(value: Any) -> Plan:
    # A bare return value from plan_fn is treated as the action token.
    if isinstance(value, Plan):
        return value
    return Plan(action_token=value)


class _Iteration:
    """Scratch state for the iteration in progress."""

    number: int
    phase: Phase
    fields: dict[str, Any]
    durations: dict[str, float]

    def __init__(self, number: int) -> None:
        self.number = number
        self.phase = "plan"
        self.fields = {}
        self.durations = {}

    def call(self, phase: Phase, fn: Callable[..., Any], *args: Any) -> Any:
        self.phase = phase
        started = time.perf_counter()
        value = fn(*args)
        self.durations[phase] = time.perf_counter() - started
        return value

    async def acall(self, phase: Phase, fn: Callable[..., Any], *args: Any) -> Any:
        self.phase = phase
        started = time.perf_counter()
        value = fn(*args)
        if inspect.isawaitable(value):
            value = await value
        self.durations[phase] = time.perf_counter() - started
        return value

    def to_record(self) -> IterationRecord:
        return IterationRecord(iteration=self.number, durations=self.durations, **self.fields)


class _Pursuit:
    """Trace and result bookkeeping shared by the sync and async drivers."""

    goal: Goal
    pursuit_id: str
    trace: LoopTrace
    last_observation: Any

    _logger: PursuitLogger
    _owns_logger: bool

    def __init__(self, goal: Goal, pursuit_logger: PursuitLogger | None) -> None:
        self.goal = goal
        self.trace = LoopTrace()
        self.last_observation = None
        if pursuit_logger is None:
            self.pursuit_id = generate_pursuit_id()
            self._logger = make_pursuit_logger(self.pursuit_id)
            self._owns_logger = True
        else:
            self.pursuit_id = pursuit_logger.pursuit_id
            self._logger = pursuit_logger
            self._owns_logger = False

        logger.debug(
            f"[{self.pursuit_id}] Pursuing {goal.description!r} "
            f"(max {goal.max_iterations} iterations)"
        )
        try:
            self._logger.log_start(goal)
        except Exception:
            self.close()
            raise

    def record(self, it: _Iteration) -> None:
        record = it.to_record()
        self.trace.append(record)
        self._logger.log_iteration(record)

    def finish(
        self,
        success: bool,
        iterations: int,
        reason: str | None = None,
        error: Exception | None = None,
    ) -> LoopResult:
        self.trace.freeze()
        result = LoopResult(
            success=success,
            iterations=iterations,
            final_observation=self.last_observation,
            trace=self.trace,
            reason=reason,
            error=error,
            pursuit_id=self.pursuit_id,
        )
        logger.debug(
            f"[{self.pursuit_id}] Finished after {iterations} iterations: "
            f"success={success} reason={reason!r}"
        )
        self._logger.log_completion(result)
        return result

    def exit(self, it: _Iteration, plan: Plan) -> LoopResult:
        reason = plan.exit_reason or REASON_AGENT_EXIT
        self.record(it)
        self._logger.log_exit(it.number, reason)
        return self.finish(False, it.number, reason=reason)

    def criteria_failed(self, it: _Iteration, exc: Exception) -> LoopResult:
        reason = f"success criteria evaluation failed: {exc}"
        error = CriteriaEvaluationError(reason)
        error.__cause__ = exc
        self.record(it)
        logger.warning(f"[{self.pursuit_id}] {reason}")
        return self.finish(False, it.number, reason=reason, error=error)

    def callback_failed(self, it: _Iteration, exc: Exception) -> CallbackExecutionError:
        reason = f"callback failure in phase {it.phase}: {exc}"
        self.record(it)
        self._logger.log_callback_failure(it.number, it.phase, exc)
        logger.error(f"[{self.pursuit_id}] {reason}")
        result = self.finish(False, it.number, reason=reason, error=exc)
        return CallbackExecutionError(it.phase, result)

    def close(self) -> None:
        if self._owns_logger:
            self._logger.close()


def pursue(
    goal: Goal,
    initial_state: Any,
    plan_fn: PlanFn,
    act_fn: ActFn,
    observe_fn: ObserveFn,
    reflect_fn: ReflectFn,
    *,
    pursuit_logger: PursuitLogger | None = None,
) -> LoopResult:
    """Run one bounded pursuit of `goal`.

    Each iteration calls ``plan_fn(goal, state)``, ``act_fn(plan)``,
    ``observe_fn(action_result)``, evaluates ``goal.success_criteria`` on the
    observation and calls ``reflect_fn(observation, goal)``. The observation
    becomes the state for the next plan.

    Returns:
        A LoopResult. Success is decided by ``goal.success_criteria`` alone.
        Exits requested by the plan, iteration exhaustion and a raising
        success criteria all come back as failed results with a ``reason``.

    Raises:
        InvalidGoalError: If ``goal.max_iterations < 1`` or the criteria is not callable.
        InvalidCallbackError: If any callback is missing.
        CallbackExecutionError: If a callback raised; ``.result`` holds the partial trace.
    """
    validate_goal(goal)
    validate_callbacks(plan_fn=plan_fn, act_fn=act_fn, observe_fn=observe_fn, reflect_fn=reflect_fn)

    pursuit = _Pursuit(goal, pursuit_logger)
    try:
        current_state = initial_state
        for number in range(1, goal.max_iterations + 1):
            it = _Iteration(number)
            try:
                plan = _as_plan(it.call("plan", plan_fn, goal, current_state))
                it.fields["plan"] = plan
                if plan.should_exit:
                    return pursuit.exit(it, plan)
                action_result = it.call("act", act_fn, plan)
                it.fields["action_result"] = action_result
                observation = it.call("observe", observe_fn, action_result)
                it.fields["observation"] = observation
                pursuit.last_observation = observation
            except Exception as exc:
                raise pursuit.callback_failed(it, exc) from exc

            try:
                achieved = bool(it.call("evaluate", goal.success_criteria, observation))
            except Exception as exc:
                return pursuit.criteria_failed(it, exc)

            # Reflection runs even on success so callers can do their bookkeeping.
            try:
                it.fields["reflection"] = it.call("reflect", reflect_fn, observation, goal)
            except Exception as exc:
                raise pursuit.callback_failed(it, exc) from exc

            pursuit.record(it)
            if achieved:
                return pursuit.finish(True, number)
            current_state = observation

        return pursuit.finish(False, goal.max_iterations, reason=REASON_MAX_ITERATIONS)
    finally:
        pursuit.close()


async def apursue(
    goal: Goal,
    initial_state: Any,
    plan_fn: PlanFn,
    act_fn: ActFn,
    observe_fn: ObserveFn,
    reflect_fn: ReflectFn,
    *,
    pursuit_logger: PursuitLogger | None = None,
) -> LoopResult:
    """Async variant of `pursue`.

    Any callback, and the goal's success criteria, may return an awaitable;
    it is awaited before the next step starts. Semantics are otherwise
    identical to `pursue`.
    """
    validate_goal(goal)
    validate_callbacks(plan_fn=plan_fn, act_fn=act_fn, observe_fn=observe_fn, reflect_fn=reflect_fn)

    pursuit = _Pursuit(goal, pursuit_logger)
    try:
        current_state = initial_state
        for number in range(1, goal.max_iterations + 1):
            it = _Iteration(number)
            try:
                plan = _as_plan(await it.acall("plan", plan_fn, goal, current_state))
                it.fields["plan"] = plan
                if plan.should_exit:
                    return pursuit.exit(it, plan)
                action_result = await it.acall("act", act_fn, plan)
                it.fields["action_result"] = action_result
                observation = await it.acall("observe", observe_fn, action_result)
                it.fields["observation"] = observation
                pursuit.last_observation = observation
            except Exception as exc:
                raise pursuit.callback_failed(it, exc) from exc

            try:
                achieved = bool(await it.acall("evaluate", goal.success_criteria, observation))
            except Exception as exc:
                return pursuit.criteria_failed(it, exc)

            try:
                it.fields["reflection"] = await it.acall("reflect", reflect_fn, observation, goal)
            except Exception as exc:
                raise pursuit.callback_failed(it, exc) from exc

            pursuit.record(it)
            if achieved:
                return pursuit.finish(True, number)
            current_state = observation

        return pursuit.finish(False, goal.max_iterations, reason=REASON_MAX_ITERATIONS)
    finally:
        pursuit.close()


def pursue_agent(
    goal: Goal,
    initial_state: Any,
    agent: Agent,
    *,
    pursuit_logger: PursuitLogger | None = None,
) -> LoopResult:
    """Run `pursue` with the four callbacks taken from `agent`."""
    return pursue(
        goal,
        initial_state,
        agent.plan,
        agent.act,
        agent.observe,
        agent.reflect,
        pursuit_logger=pursuit_logger,
    )


async def apursue_agent(
    goal: Goal,
    initial_state: Any,
    agent: Agent,
    *,
    pursuit_logger: PursuitLogger | None = None,
) -> LoopResult:
    """Run `apursue` with the four callbacks taken from `agent`."""
    return await apursue(
        goal,
        initial_state,
        agent.plan,
        agent.act,
        agent.observe,
        agent.reflect,
        pursuit_logger=pursuit_logger,
    )
