"""Data models for one goal pursuit.

Payloads (action tokens, action results, observations, learnings) are opaque:
the runtime passes them between callbacks and stores them in the trace, but
never looks inside them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, overload

from goalloop.loop.exceptions import TraceFrozenError

Phase = Literal["plan", "act", "observe", "evaluate", "reflect"]
PHASES: tuple[Phase, ...] = ("plan", "act", "observe", "evaluate", "reflect")

REASON_AGENT_EXIT = "agent requested exit"
REASON_MAX_ITERATIONS = "max iterations reached"


@dataclass(frozen=True)
class Goal:
    """What a pursuit is trying to reach, and how many cycles it may spend."""

    description: str
    success_criteria: Callable[[Any], bool]
    max_iterations: int


@dataclass(frozen=True)
class Plan:
    """One iteration's proposed action, or a request to stop early."""

    action_token: Any = None
    should_exit: bool = False
    exit_reason: str | None = None

    @classmethod
    def act(cls, action_token: Any) -> Plan:
        return cls(action_token=action_token)

    @classmethod
    def exit(cls, reason: str | None = None) -> Plan:
        return cls(should_exit=True, exit_reason=reason)


@dataclass(frozen=True)
class Reflection:
    """Caller analysis of an observation.

    ``goal_achieved`` is advisory only: success is decided by the goal's
    success criteria.
    """

    goal_achieved: bool = False
    should_adjust_strategy: bool = False
    learnings: Any = None


@dataclass(frozen=True)
class IterationRecord:
    """Inputs and outputs of a single iteration.

    ``durations`` only holds the phases that actually completed, so
    ``ran("act")`` distinguishes an action that returned None from one that
    never happened.
    """

    iteration: int
    plan: Plan | None = None
    action_result: Any = None
    observation: Any = None
    reflection: Any = None
    durations: Mapping[str, float] = field(default_factory=dict)

    def ran(self, phase: Phase) -> bool:
        return phase in self.durations

    @property
    def total_duration(self) -> float:
        return sum(self.durations.values())


class LoopTrace:
    """Ordered, append-only record of a pursuit; read-only once frozen."""

    _records: list[IterationRecord]
    _frozen: bool

    def __init__(self) -> None:
        self._records = []
        self._frozen = False

    def append(self, record: IterationRecord) -> None:
        if self._frozen:
            raise TraceFrozenError("Cannot append to a finished pursuit trace")
        # Durations are copied into a read-only view so records stay immutable.
        frozen_record = IterationRecord(
            iteration=record.iteration,
            plan=record.plan,
            action_result=record.action_result,
            observation=record.observation,
            reflection=record.reflection,
            durations=MappingProxyType(dict(record.durations)),
        )
        self._records.append(frozen_record)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def records(self) -> tuple[IterationRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[IterationRecord]:
        return iter(tuple(self._records))

    @overload
    def __getitem__(self, index: int) -> IterationRecord: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[IterationRecord, ...]: ...

    def __getitem__(self, index: int | slice) -> IterationRecord | tuple[IterationRecord, ...]:
        if isinstance(index, slice):
            return tuple(self._records[index])
        return self._records[index]

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"LoopTrace({len(self._records)} records, {state})"


@dataclass(frozen=True)
class LoopResult:
    """Outcome of one pursuit. The trace it owns is frozen."""

    success: bool
    iterations: int
    final_observation: Any
    trace: LoopTrace
    reason: str | None = None
    error: Exception | None = None
    pursuit_id: str = ""
