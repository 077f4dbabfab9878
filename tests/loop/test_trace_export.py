from __future__ import annotations

import io
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel
from rich.console import Console

from goalloop.loop.models import Goal, LoopResult, Plan, Reflection
from goalloop.loop.runtime import pursue
from goalloop.loop.trace_export import (
    dump_trace,
    format_trace_summary,
    get_trace_summary,
    save_trace,
    to_jsonable,
)


@dataclass(frozen=True)
class Gauge:
    level: int
    tags: frozenset[str]


class Status(BaseModel):
    healthy: bool


def run_pursuit(exit_on: int | None = None) -> LoopResult:
    box = {"n": 0}

    def plan(_goal: Goal, _state: Any) -> Plan:
        if exit_on is not None and box["n"] + 1 == exit_on:
            return Plan.exit("stop here")
        return Plan.act({"bump": 1})

    def observe(_r: Any) -> Gauge:
        box["n"] += 1
        return Gauge(level=box["n"], tags=frozenset({"b", "a"}))

    return pursue(
        Goal("fill gauge", lambda g: g.level >= 2, max_iterations=5),
        None,
        plan,
        lambda _p: Status(healthy=True),
        observe,
        lambda _o, _g: Reflection(should_adjust_strategy=True, learnings=object()),
    )


def test_to_jsonable_handles_payload_kinds() -> None:
    assert to_jsonable(Gauge(1, frozenset({"z", "y"}))) == {"level": 1, "tags": ["y", "z"]}
    assert to_jsonable(Status(healthy=False)) == {"healthy": False}
    assert to_jsonable({1: (1, 2)}) == {"1": [1, 2]}
    assert to_jsonable(None) is None
    assert to_jsonable(object()).startswith("<object object")


def test_dump_json_round_trips_through_json_loads() -> None:
    result = run_pursuit()
    data = json.loads(dump_trace(result))

    assert data["success"] is True
    assert data["iterations"] == 2
    assert data["final_observation"] == {"level": 2, "tags": ["a", "b"]}
    assert len(data["trace"]) == 2
    first = data["trace"][0]
    assert first["plan"]["action_token"] == {"bump": 1}
    assert first["action_result"] == {"healthy": True}
    assert first["reflection"]["should_adjust_strategy"] is True


def test_exit_record_omits_phases_that_never_ran() -> None:
    result = run_pursuit(exit_on=1)
    data = json.loads(dump_trace(result, "pretty_json"))

    record = data["trace"][0]
    assert record["plan"]["should_exit"] is True
    assert "action_result" not in record
    assert "observation" not in record
    assert "reflection" not in record
    assert data["reason"] == "stop here"


def test_markdown_and_text_formats() -> None:
    result = run_pursuit()

    markdown = dump_trace(result, "markdown")
    assert markdown.startswith("# Pursuit Trace")
    assert "## Iteration 2" in markdown
    assert "success after 2 iterations" in markdown

    text = dump_trace(result, "text")
    assert f"PURSUIT {result.pursuit_id}" in text
    assert "[Iteration 1]" in text


def test_unknown_format_raises() -> None:
    with pytest.raises(ValueError, match="Unknown format"):
        dump_trace(run_pursuit(), "yaml")


@pytest.mark.parametrize(
    ("name", "marker"),
    [("trace.json", '"pursuit_id"'), ("trace.md", "# Pursuit Trace"), ("trace.txt", "PURSUIT ")],
)
def test_save_trace_infers_format_from_suffix(tmp_path: Path, name: str, marker: str) -> None:
    path = save_trace(run_pursuit(), tmp_path / "out" / name)

    assert path.exists()
    assert marker in path.read_text("utf-8")


def test_trace_summary_counts_adjustments_and_time() -> None:
    result = run_pursuit()
    summary = get_trace_summary(result)

    assert summary["records"] == 2
    assert summary["strategy_adjustments"] == 2
    assert set(summary["phase_seconds"]) == {"plan", "act", "observe", "evaluate", "reflect"}
    assert summary["total_seconds"] >= 0

    buffer = io.StringIO()
    format_trace_summary(result, Console(file=buffer, width=100))
    assert "Pursuit summary" in buffer.getvalue()
    assert "Strategy adjustments" in buffer.getvalue()
