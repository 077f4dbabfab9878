"""Built-in scenarios: runnable versions of the classic observer/controller loops."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from goalloop.loop.exceptions import ScenarioError
from goalloop.loop.models import Goal
from goalloop.loop.runtime import Agent
from goalloop.scenarios import brute_force, canary
from goalloop.scenarios.config import ScenariosConfig

BuildFn = Callable[[ScenariosConfig, int, int | None], tuple[Goal, Any, Agent]]


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    build: BuildFn


SCENARIOS: dict[str, Scenario] = {
    "brute-force": Scenario(
        name="brute-force",
        description="Block IPs hammering the login endpoint until failures go quiet.",
        build=lambda cfg, seed, max_iter: brute_force.build(cfg.brute_force, seed, max_iter),
    ),
    "canary": Scenario(
        name="canary",
        description="Promote a release through traffic stages; roll back on errors.",
        build=lambda cfg, seed, max_iter: canary.build(cfg.canary, seed, max_iter),
    ),
}


def build_scenario(
    name: str,
    config: ScenariosConfig | None = None,
    seed: int = 0,
    max_iterations: int | None = None,
) -> tuple[Goal, Any, Agent]:
    """Return (goal, initial_state, agent) for the named scenario.

    Raises:
        ScenarioError: If no scenario has that name.
    """
    scenario = SCENARIOS.get(name)
    if scenario is None:
        available = ", ".join(sorted(SCENARIOS))
        raise ScenarioError(f"Unknown scenario '{name}'. Available scenarios: {available}")
    return scenario.build(config or ScenariosConfig(), seed, max_iterations)


__all__ = ["SCENARIOS", "Scenario", "ScenariosConfig", "build_scenario"]
