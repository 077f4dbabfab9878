from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from goalloop.loop.exceptions import ScenarioError
from goalloop.scenarios.config import BruteForceConfig, CanaryConfig, ScenariosConfig


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = ScenariosConfig.load_from_yaml(tmp_path / "nope.yaml")

    assert config == ScenariosConfig()
    assert config.canary.stages == [5, 25, 50, 100]
    assert config.brute_force.block_threshold == 5


def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "scenarios.yaml"
    path.write_text("", encoding="utf-8")

    assert ScenariosConfig.load_from_yaml(path) == ScenariosConfig()


def test_partial_overrides_are_merged_with_defaults(tmp_path: Path) -> None:
    path = tmp_path / "scenarios.yaml"
    path.write_text(
        "canary:\n  stages: [10, 100]\n  regression: 0.03\nbrute_force:\n  block_threshold: 4\n",
        encoding="utf-8",
    )

    config = ScenariosConfig.load_from_yaml(path)

    assert config.canary.stages == [10, 100]
    assert config.canary.regression == 0.03
    assert config.canary.max_error_rate == 0.02
    assert config.brute_force.block_threshold == 4
    assert config.brute_force.attempts_per_tick == 3


@pytest.mark.parametrize(
    "content",
    [
        "canary:\n  stages: [50, 25, 100]\n",
        "canary:\n  stages: [5, 50]\n",
        "brute_force:\n  attacker_ips: ['not-an-ip']\n",
        "brute_force:\n  block_threshold: 2\n  min_threshold: 3\n",
        "- just\n- a list\n",
        "canary: [unclosed\n",
        "1: 2\n",
    ],
)
def test_invalid_content_raises_scenario_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "scenarios.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ScenarioError):
        ScenariosConfig.load_from_yaml(path)


def test_model_validation_rules() -> None:
    with pytest.raises(ValidationError):
        CanaryConfig(stages=[0, 100])
    with pytest.raises(ValidationError):
        CanaryConfig(stages=[])
    with pytest.raises(ValidationError):
        BruteForceConfig(attacker_ips=[])
    with pytest.raises(ValidationError):
        BruteForceConfig(benign_ip="203.0.113.7")

    assert BruteForceConfig(attacker_ips=["2001:db8::1"]).attacker_ips == ["2001:db8::1"]
