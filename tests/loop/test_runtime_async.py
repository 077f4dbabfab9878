from __future__ import annotations

import asyncio
from typing import Any

import pytest

from goalloop.loop.exceptions import CallbackExecutionError
from goalloop.loop.models import Goal, Plan, Reflection
from goalloop.loop.runtime import apursue, apursue_agent, pursue


class AsyncCounter:
    def __init__(self, step: int) -> None:
        self.step = step
        self.value = 0
        self.events: list[str] = []

    async def plan(self, goal: Goal, state: Any) -> Plan:
        del goal, state
        self.events.append("plan")
        await asyncio.sleep(0)
        return Plan.act("inc")

    async def act(self, plan: Plan) -> str:
        self.events.append("act")
        await asyncio.sleep(0)
        return plan.action_token

    async def observe(self, action_result: str) -> int:
        del action_result
        self.events.append("observe")
        self.value += self.step
        return self.value

    def reflect(self, observation: int, goal: Goal) -> Reflection:
        del observation, goal
        self.events.append("reflect")
        return Reflection()


def test_apursue_awaits_each_callback_in_order() -> None:
    agent = AsyncCounter(step=4)
    goal = Goal("reach 10", lambda v: v >= 10, max_iterations=5)

    result = asyncio.run(apursue_agent(goal, None, agent))

    assert result.success is True
    assert result.iterations == 3
    assert agent.events == ["plan", "act", "observe", "reflect"] * 3


def test_apursue_accepts_async_success_criteria() -> None:
    async def criteria(value: int) -> bool:
        await asyncio.sleep(0)
        return value >= 8

    agent = AsyncCounter(step=4)
    result = asyncio.run(apursue_agent(Goal("reach 8", criteria, 5), None, agent))

    assert result.success is True
    assert result.iterations == 2


def test_apursue_matches_sync_pursue_for_plain_callbacks() -> None:
    def make() -> dict[str, Any]:
        box = {"v": 0}

        def observe(_r: Any) -> int:
            box["v"] += 3
            return box["v"]

        return {
            "plan_fn": lambda _g, _s: Plan.act(None),
            "act_fn": lambda _p: None,
            "observe_fn": observe,
            "reflect_fn": lambda _o, _g: Reflection(),
        }

    goal = Goal("reach 100", lambda v: v >= 100, max_iterations=4)
    sync_result = pursue(goal, None, **make())
    async_result = asyncio.run(apursue(goal, None, **make()))

    assert (sync_result.success, sync_result.iterations, sync_result.reason) == (
        async_result.success,
        async_result.iterations,
        async_result.reason,
    )
    assert len(async_result.trace) == 4


def test_apursue_exit_and_callback_failure() -> None:
    async def exiting_plan(_goal: Goal, _state: Any) -> Plan:
        return Plan.exit("no viable action")

    result = asyncio.run(
        apursue(
            Goal("g", lambda _v: False, 3),
            None,
            exiting_plan,
            lambda _p: None,
            lambda _r: None,
            lambda _o, _g: None,
        )
    )
    assert result.reason == "no viable action"
    assert len(result.trace) == 1

    async def failing_act(_plan: Plan) -> None:
        raise ConnectionError("upstream down")

    with pytest.raises(CallbackExecutionError) as exc_info:
        asyncio.run(
            apursue(
                Goal("g", lambda _v: False, 3),
                None,
                lambda _g, _s: Plan.act("x"),
                failing_act,
                lambda _r: None,
                lambda _o, _g: None,
            )
        )
    assert exc_info.value.phase == "act"
    assert "upstream down" in (exc_info.value.result.reason or "")


def test_concurrent_async_pursuits_do_not_share_state() -> None:
    async def run_both() -> list[Any]:
        agents = [AsyncCounter(step=1), AsyncCounter(step=5)]
        goal = Goal("reach 5", lambda v: v >= 5, max_iterations=10)
        return await asyncio.gather(*(apursue_agent(goal, None, a) for a in agents))

    slow, fast = asyncio.run(run_both())

    assert slow.iterations == 5
    assert fast.iterations == 1
    assert slow.trace is not fast.trace
