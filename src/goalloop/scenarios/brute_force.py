"""Brute-force login blocking.

An observer/controller agent watches failed logins per source IP and blocks
sources that cross a threshold. When blocking does not bring failures down it
tightens the threshold, one step per reflection, down to a floor.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from goalloop.conf import settings
from goalloop.loop.models import Goal, Plan, Reflection
from goalloop.scenarios.config import BruteForceConfig

ACTION_BLOCK = "block"
ACTION_WATCH = "watch"


@dataclass(frozen=True)
class LoginObservation:
    """Failed-login counters after one tick of traffic."""

    failures: Mapping[str, int]
    blocked: frozenset[str]
    recent_failures: int


class LoginSimulator:
    """Seeded stream of failed login attempts."""

    config: BruteForceConfig
    failures: dict[str, int]
    blocked: set[str]

    _rng: random.Random

    def __init__(self, config: BruteForceConfig, seed: int = 0) -> None:
        self.config = config
        self.failures = {}
        self.blocked = set()
        self._rng = random.Random(seed)

    def block(self, ips: tuple[str, ...]) -> list[str]:
        """Block the given sources, returning the ones not already blocked."""
        newly = [ip for ip in ips if ip not in self.blocked]
        self.blocked.update(newly)
        return newly

    def tick(self) -> int:
        """Advance one window of traffic; return failures from unblocked sources."""
        recent = 0
        for ip in self.config.attacker_ips:
            if ip in self.blocked:
                continue
            self.failures[ip] = self.failures.get(ip, 0) + self.config.attempts_per_tick
            recent += self.config.attempts_per_tick

        benign = self.config.benign_ip
        if benign not in self.blocked and self._rng.random() < self.config.benign_failure_rate:
            self.failures[benign] = self.failures.get(benign, 0) + 1
            recent += 1
        return recent

    def observe(self, recent_failures: int) -> LoginObservation:
        return LoginObservation(
            failures=MappingProxyType(dict(self.failures)),
            blocked=frozenset(self.blocked),
            recent_failures=recent_failures,
        )


class BruteForceAgent:
    """Blocks noisy sources; lowers its threshold when failures do not drop."""

    config: BruteForceConfig
    simulator: LoginSimulator
    threshold: int
    previous_failures: int | None

    def __init__(self, config: BruteForceConfig, simulator: LoginSimulator) -> None:
        self.config = config
        self.simulator = simulator
        self.threshold = config.block_threshold
        self.previous_failures = None

    def plan(self, goal: Goal, state: LoginObservation | None) -> Plan:
        del goal
        if state is None:
            return Plan.act((ACTION_WATCH, ()))
        targets = tuple(
            sorted(
                ip
                for ip, count in state.failures.items()
                if count >= self.threshold and ip not in state.blocked
            )
        )
        if targets:
            return Plan.act((ACTION_BLOCK, targets))
        return Plan.act((ACTION_WATCH, ()))

    def act(self, plan: Plan) -> dict[str, Any]:
        verb, ips = plan.action_token
        newly_blocked = self.simulator.block(ips) if verb == ACTION_BLOCK else []
        recent = self.simulator.tick()
        return {"blocked": newly_blocked, "recent_failures": recent}

    def observe(self, action_result: dict[str, Any]) -> LoginObservation:
        return self.simulator.observe(action_result["recent_failures"])

    def reflect(self, observation: LoginObservation, goal: Goal) -> Reflection:
        del goal
        quiet = observation.recent_failures <= self.config.quiet_failures
        improving = (
            self.previous_failures is None
            or observation.recent_failures < self.previous_failures
        )
        adjust = not quiet and not improving and self.threshold > self.config.min_threshold
        if adjust:
            self.threshold -= 1
        self.previous_failures = observation.recent_failures
        return Reflection(
            goal_achieved=quiet,
            should_adjust_strategy=adjust,
            learnings={"threshold": self.threshold, "blocked": sorted(observation.blocked)},
        )


def build(
    config: BruteForceConfig, seed: int = 0, max_iterations: int | None = None
) -> tuple[Goal, None, BruteForceAgent]:
    """Return (goal, initial_state, agent) for one brute-force pursuit."""
    quiet_failures = config.quiet_failures

    def attack_stopped(observation: LoginObservation) -> bool:
        return observation.recent_failures <= quiet_failures

    goal = Goal(
        description="Stop brute-force login attempts",
        success_criteria=attack_stopped,
        max_iterations=max_iterations or config.max_iterations or settings.DEFAULT_MAX_ITERATIONS,
    )
    agent = BruteForceAgent(config, LoginSimulator(config, seed))
    return goal, None, agent
