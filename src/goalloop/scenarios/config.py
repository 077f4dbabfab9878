"""Scenario parameters, loaded from .goalloop/scenarios.yaml.

Example:

    canary:
      stages: [10, 50, 100]
      regression: 0.03
    brute_force:
      block_threshold: 4
"""

from __future__ import annotations

import ipaddress
import logging
from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from goalloop.loop.exceptions import ScenarioError

logger = logging.getLogger("goalloop")


class BruteForceConfig(BaseModel):
    """Simulated login stream with a handful of attacking IPs."""

    attacker_ips: list[str] = Field(default_factory=lambda: ["203.0.113.7", "198.51.100.23"])
    benign_ip: str = "192.0.2.10"
    attempts_per_tick: int = Field(default=3, ge=1)
    benign_failure_rate: float = Field(default=0.3, ge=0.0, le=1.0)
    block_threshold: int = Field(default=5, ge=1)
    min_threshold: int = Field(default=2, ge=1)
    quiet_failures: int = Field(default=1, ge=0)
    max_iterations: int | None = Field(default=None, ge=1)

    @field_validator("attacker_ips")
    @classmethod
    def validate_attacker_ips(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one attacker IP is required")
        for ip in v:
            ipaddress.ip_address(ip)
        return v

    @field_validator("benign_ip")
    @classmethod
    def validate_benign_ip(cls, v: str) -> str:
        ipaddress.ip_address(v)
        return v

    @model_validator(mode="after")
    def check_thresholds(self) -> Self:
        if self.min_threshold > self.block_threshold:
            raise ValueError("min_threshold must not exceed block_threshold")
        if self.benign_ip in self.attacker_ips:
            raise ValueError("benign_ip must not be listed as an attacker")
        return self


class CanaryConfig(BaseModel):
    """Staged rollout of a new release with a simulated error rate."""

    stages: list[int] = Field(default_factory=lambda: [5, 25, 50, 100])
    baseline_error_rate: float = Field(default=0.005, ge=0.0, le=1.0)
    regression: float = Field(default=0.0, ge=0.0, le=1.0)  # extra error rate at 100% traffic
    noise: float = Field(default=0.002, ge=0.0, le=1.0)
    max_error_rate: float = Field(default=0.02, gt=0.0, le=1.0)
    hold_margin: float = Field(default=0.8, gt=0.0, le=1.0)
    max_iterations: int | None = Field(default=None, ge=1)

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("At least one stage is required")
        if any(p < 1 or p > 100 for p in v):
            raise ValueError("Stages must be traffic percentages between 1 and 100")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("Stages must be strictly increasing")
        if v[-1] != 100:
            raise ValueError("The last stage must be 100")
        return v


class ScenariosConfig(BaseModel):
    """Root configuration containing all scenario parameters."""

    brute_force: BruteForceConfig = Field(default_factory=BruteForceConfig)
    canary: CanaryConfig = Field(default_factory=CanaryConfig)

    @classmethod
    def load_from_yaml(cls, path: Path) -> ScenariosConfig:
        """Load scenario config from a YAML file; defaults when it does not exist."""
        if not path.exists():
            logger.debug(f"No scenario config at {path}; using defaults")
            return cls()
        try:
            content = path.read_text(encoding="utf-8")
            data = yaml.safe_load(content) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ScenarioError(f"Failed to read scenario config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ScenarioError(f"Scenario config {path} must be a mapping")
        bad_keys = [k for k in data if not isinstance(k, str)]
        if bad_keys:
            raise ScenarioError(f"Invalid scenario config {path}: non-string keys {bad_keys!r}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ScenarioError(f"Invalid scenario config {path}: {e}") from e
