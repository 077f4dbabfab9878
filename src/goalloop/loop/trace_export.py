"""
Trace dumping and serialization utilities for finished pursuits.
Provides methods to extract, format, and save a LoopResult and its trace.
"""

import dataclasses
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

from goalloop.loop.models import PHASES, IterationRecord, LoopResult

OUTPUT_FORMATS = ("json", "pretty_json", "markdown", "text")


def to_jsonable(value: Any) -> Any:
    """Convert an opaque payload into something json.dumps accepts.

    Dataclasses and pydantic models become dicts, containers are converted
    recursively, and anything else unknown falls back to its repr.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        mapping = cast(Mapping[Any, Any], value)
        return {str(k): to_jsonable(v) for k, v in mapping.items()}
    if isinstance(value, (set, frozenset)):
        # Sets have no order; sort for stable output.
        return [to_jsonable(v) for v in sorted(cast(set[Any], value), key=repr)]
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in cast(list[Any], value)]
    return repr(value)


def record_to_dict(record: IterationRecord) -> dict[str, Any]:
    """Serialize one iteration; phases that never ran are omitted."""
    data: dict[str, Any] = {"iteration": record.iteration}
    if record.plan is not None:
        data["plan"] = to_jsonable(record.plan)
    if record.ran("act"):
        data["action_result"] = to_jsonable(record.action_result)
    if record.ran("observe"):
        data["observation"] = to_jsonable(record.observation)
    if record.ran("reflect"):
        data["reflection"] = to_jsonable(record.reflection)
    data["durations"] = dict(record.durations)
    return data


def result_to_dict(result: LoopResult) -> dict[str, Any]:
    return {
        "pursuit_id": result.pursuit_id,
        "success": result.success,
        "iterations": result.iterations,
        "reason": result.reason,
        "error": repr(result.error) if result.error is not None else None,
        "final_observation": to_jsonable(result.final_observation),
        "trace": [record_to_dict(r) for r in result.trace],
    }


def dump_trace(result: LoopResult, output_format: str = "json") -> str:
    """
    Dump a pursuit result and its trace in a specified format.

    Args:
        result: The finished pursuit
        output_format: Output format - "json", "pretty_json", "markdown", or "text"

    Returns:
        Formatted string representation of the pursuit
    """
    data = result_to_dict(result)

    if output_format == "json":
        return json.dumps(data, indent=2)

    elif output_format == "pretty_json":
        return json.dumps(data, indent=2, ensure_ascii=False)

    elif output_format == "markdown":
        return _format_as_markdown(data)

    elif output_format == "text":
        return _format_as_text(data)

    else:
        raise ValueError(f"Unknown format: {output_format}")


def _outcome(data: dict[str, Any]) -> str:
    if data["success"]:
        return f"success after {data['iterations']} iterations"
    return f"failure after {data['iterations']} iterations ({data['reason']})"


def _format_as_markdown(data: dict[str, Any]) -> str:
    """Format a pursuit as readable Markdown."""
    lines = ["# Pursuit Trace\n"]
    lines.append(f"- **Pursuit:** `{data['pursuit_id']}`")
    lines.append(f"- **Outcome:** {_outcome(data)}")
    if data["error"]:
        lines.append(f"- **Error:** `{data['error']}`")
    lines.append("")

    for record in data["trace"]:
        lines.append(f"## Iteration {record['iteration']}\n")
        for key in ("plan", "action_result", "observation", "reflection"):
            if key in record:
                lines.append(f"**{key}:**\n")
                lines.append(f"```json\n{json.dumps(record[key], indent=2)}\n```\n")

        timings = ", ".join(
            f"{phase} {secs * 1000:.2f} ms" for phase, secs in record["durations"].items()
        )
        lines.append(f"_Timings: {timings or 'none'}_\n")

    return "\n".join(lines)


def _format_as_text(data: dict[str, Any]) -> str:
    """Format a pursuit as simple readable text."""
    lines = ["=" * 80]
    lines.append(f"PURSUIT {data['pursuit_id']}")
    lines.append(_outcome(data))
    lines.append("=" * 80)

    for record in data["trace"]:
        lines.append(f"\n[Iteration {record['iteration']}]")
        lines.append("-" * 40)
        for key in ("plan", "action_result", "observation", "reflection"):
            if key in record:
                lines.append(f"{key}: {json.dumps(record[key])}")

    lines.append("\n" + "=" * 80)
    return "\n".join(lines)


def _format_for_path(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".md":
        return "markdown"
    if suffix == ".txt":
        return "text"
    return "json"


def save_trace(
    result: LoopResult,
    filepath: str | Path,
    output_format: str | None = None,
) -> Path:
    """
    Save a pursuit trace to a file.

    Args:
        result: The finished pursuit
        filepath: Path where to save the trace
        output_format: Output format; inferred from the file suffix when omitted

    Returns:
        The path written
    """
    filepath = Path(filepath)
    content = dump_trace(result, output_format or _format_for_path(filepath))

    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(content)

    return filepath


def get_trace_summary(result: LoopResult) -> dict[str, Any]:
    """
    Get a summary of a pursuit trace.

    Returns:
        Dictionary with outcome and per-phase timing totals
    """
    phase_totals = dict.fromkeys(PHASES, 0.0)
    for record in result.trace:
        for phase, secs in record.durations.items():
            phase_totals[phase] = phase_totals.get(phase, 0.0) + secs

    adjustments = sum(
        1 for r in result.trace if getattr(r.reflection, "should_adjust_strategy", False)
    )

    return {
        "pursuit_id": result.pursuit_id,
        "success": result.success,
        "iterations": result.iterations,
        "reason": result.reason,
        "records": len(result.trace),
        "strategy_adjustments": adjustments,
        "phase_seconds": phase_totals,
        "total_seconds": sum(phase_totals.values()),
    }


def format_trace_summary(result: LoopResult, console: Console | None = None) -> None:
    """Print a human-readable summary of a pursuit. Uses rich.Console for colorful output."""
    console = console or Console()
    summary = get_trace_summary(result)

    console.print()
    console.print("[bold cyan]Pursuit summary[/]", justify="center")
    console.print(f"[dim]{'-' * 80}[/]", justify="center")

    if summary["success"]:
        status = "[green]success[/]"
    else:
        status = f"[red]failed[/] [dim]({escape(str(summary['reason']))})[/]"
    console.print(f"[dim]Pursuit:[/] {summary['pursuit_id']}")
    console.print(f"[dim]Outcome:[/] {status}")
    console.print(f"[dim]Iterations:[/] [cyan]{summary['iterations']}[/cyan]")
    console.print(
        f"[dim]Strategy adjustments:[/] [cyan]{summary['strategy_adjustments']}[/cyan]"
    )

    console.print()
    console.print("[yellow]Time by phase:[/]")
    for phase, secs in summary["phase_seconds"].items():
        console.print(f"  [dim]{phase + ':':<10}[/] [yellow]{secs * 1000:.2f} ms[/yellow]")

    console.print(f"[dim]{'-' * 80}[/]", justify="center")
    console.print()
