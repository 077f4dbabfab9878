"""Canary deployment rollout.

The agent promotes a release through traffic stages, holds a stage for one
more observation when the error rate gets close to the limit, and exits with
a rollback reason once the limit is breached (fail closed).
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

from goalloop.conf import settings
from goalloop.loop.models import Goal, Plan, Reflection
from goalloop.scenarios.config import CanaryConfig

ACTION_PROMOTE = "promote"
ACTION_HOLD = "hold"


@dataclass(frozen=True)
class DeploymentObservation:
    traffic_percent: int
    error_rate: float


class CanarySimulator:
    """Seeded error-rate model: regression grows with the traffic share."""

    config: CanaryConfig
    traffic_percent: int

    _rng: random.Random

    def __init__(self, config: CanaryConfig, seed: int = 0) -> None:
        self.config = config
        self.traffic_percent = 0
        self._rng = random.Random(seed)

    def set_traffic(self, percent: int) -> None:
        self.traffic_percent = percent

    def sample(self) -> DeploymentObservation:
        c = self.config
        rate = c.baseline_error_rate + c.regression * self.traffic_percent / 100
        rate += self._rng.uniform(-c.noise, c.noise)
        return DeploymentObservation(
            traffic_percent=self.traffic_percent,
            error_rate=max(0.0, rate),
        )


class CanaryAgent:
    """Promotes stage by stage; holds when close to the error budget."""

    config: CanaryConfig
    simulator: CanarySimulator
    stage_index: int
    hold_next: bool
    held_at: int | None

    def __init__(self, config: CanaryConfig, simulator: CanarySimulator) -> None:
        self.config = config
        self.simulator = simulator
        self.stage_index = -1
        self.hold_next = False
        self.held_at = None

    def plan(self, goal: Goal, state: DeploymentObservation | None) -> Plan:
        del goal
        if state is not None and state.error_rate > self.config.max_error_rate:
            return Plan.exit(
                f"rollback: error rate {state.error_rate:.2%} exceeds "
                f"{self.config.max_error_rate:.2%} at {state.traffic_percent}% traffic"
            )
        if self.hold_next and state is not None:
            return Plan.act((ACTION_HOLD, state.traffic_percent))
        next_index = min(self.stage_index + 1, len(self.config.stages) - 1)
        return Plan.act((ACTION_PROMOTE, self.config.stages[next_index]))

    def act(self, plan: Plan) -> dict[str, Any]:
        verb, percent = plan.action_token
        if verb == ACTION_PROMOTE:
            self.simulator.set_traffic(percent)
            self.stage_index = self.config.stages.index(percent)
        else:
            self.held_at = percent
        return {"action": verb, "traffic_percent": self.simulator.traffic_percent}

    def observe(self, action_result: dict[str, Any]) -> DeploymentObservation:
        del action_result
        return self.simulator.sample()

    def reflect(self, observation: DeploymentObservation, goal: Goal) -> Reflection:
        del goal
        limit = self.config.max_error_rate
        near_limit = limit * self.config.hold_margin < observation.error_rate <= limit
        # A stage is held at most once; a second close call promotes anyway.
        self.hold_next = (
            near_limit
            and observation.traffic_percent < 100
            and self.held_at != observation.traffic_percent
        )
        return Reflection(
            goal_achieved=observation.traffic_percent == 100 and observation.error_rate <= limit,
            should_adjust_strategy=near_limit,
            learnings={"headroom": round(limit - observation.error_rate, 6)},
        )


def build(
    config: CanaryConfig, seed: int = 0, max_iterations: int | None = None
) -> tuple[Goal, None, CanaryAgent]:
    """Return (goal, initial_state, agent) for one canary rollout."""
    max_error_rate = config.max_error_rate

    def fully_rolled_out(observation: DeploymentObservation) -> bool:
        return observation.traffic_percent == 100 and observation.error_rate <= max_error_rate

    goal = Goal(
        description="Roll the release out to 100% of traffic",
        success_criteria=fully_rolled_out,
        max_iterations=max_iterations or config.max_iterations or settings.DEFAULT_MAX_ITERATIONS,
    )
    agent = CanaryAgent(config, CanarySimulator(config, seed))
    return goal, None, agent
