"""Command-line interface for goalloop"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from goalloop.conf import settings
from goalloop.loop.exceptions import ScenarioError
from goalloop.loop.metrics import LoopMetricsAggregate, get_metrics
from goalloop.loop.models import LoopResult
from goalloop.loop.pursuit_log import PursuitLogger, ReasoningLogger
from goalloop.loop.runtime import generate_pursuit_id, pursue_agent
from goalloop.loop.trace_export import OUTPUT_FORMATS, dump_trace, save_trace
from goalloop.scenarios import SCENARIOS, ScenariosConfig, build_scenario

app = typer.Typer(add_completion=False)
console = Console()


def _results_table(results: list[tuple[int, LoopResult]]) -> Table:
    table = Table(title="Pursuits")
    table.add_column("Run", justify="right")
    table.add_column("Seed", justify="right")
    table.add_column("Outcome")
    table.add_column("Iterations", justify="right")
    table.add_column("Reason")
    for run_number, (seed, result) in enumerate(results, 1):
        outcome = "[green]success[/]" if result.success else "[red]failed[/]"
        table.add_row(
            str(run_number),
            str(seed),
            outcome,
            str(result.iterations),
            escape(result.reason or ""),
        )
    return table


def _metrics_table(snapshot: LoopMetricsAggregate) -> Table:
    table = Table(title="Convergence")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("total pursuits", str(snapshot.total_pursuits))
    table.add_row("successful", str(snapshot.successful_pursuits))
    table.add_row("failed", str(snapshot.failed_pursuits))
    table.add_row("convergence rate", f"{snapshot.convergence_rate:.1%}")
    table.add_row("avg iterations to goal", f"{snapshot.avg_iterations_to_goal:.2f}")
    return table


@app.command()
def demo(
    name: Annotated[str, typer.Argument(help="Scenario to run (see `goalloop scenarios`).")],
    runs: Annotated[
        int,
        typer.Option("--runs", "-n", min=1, help="Number of pursuits to run."),
    ] = 1,
    max_iterations: Annotated[
        int | None,
        typer.Option("--max-iterations", min=1, help="Override the iteration cap."),
    ] = None,
    seed: Annotated[
        int,
        typer.Option("--seed", help="Seed of the first run; later runs increment it."),
    ] = 0,
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config", help="Scenario YAML file (defaults to GOALLOOP_SCENARIOS_FILE)."
        ),
    ] = None,
    trace: Annotated[
        str | None,
        typer.Option(
            "--trace", help=f"Print the last trace as one of: {', '.join(OUTPUT_FORMATS)}."
        ),
    ] = None,
    save: Annotated[
        Path | None,
        typer.Option("--save-trace", help="Write the last trace to this file."),
    ] = None,
    log: Annotated[
        bool,
        typer.Option("--log", help="Write a JSONL reasoning log per pursuit to the log dir."),
    ] = False,
) -> None:
    """Run a built-in scenario and report convergence."""
    if name not in SCENARIOS:
        available = ", ".join(sorted(SCENARIOS))
        raise typer.BadParameter(f"Unknown scenario '{name}'. Available: {available}")
    if trace is not None and trace not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"Unknown trace format '{trace}'")

    try:
        config = ScenariosConfig.load_from_yaml(config_file or settings.SCENARIOS_FILE)
    except ScenarioError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=2) from None

    metrics = get_metrics()
    results: list[tuple[int, LoopResult]] = []
    for offset in range(runs):
        run_seed = seed + offset
        goal, initial_state, agent = build_scenario(name, config, run_seed, max_iterations)

        pursuit_logger: PursuitLogger | None = None
        if log:
            pursuit_logger = ReasoningLogger(generate_pursuit_id())
        try:
            result = pursue_agent(goal, initial_state, agent, pursuit_logger=pursuit_logger)
        finally:
            if pursuit_logger is not None:
                pursuit_logger.close()

        metrics.record(result)
        results.append((run_seed, result))

    console.print(_results_table(results))
    console.print(_metrics_table(metrics.snapshot()))

    last = results[-1][1]
    if trace is not None:
        print(dump_trace(last, trace))
    if save is not None:
        path = save_trace(last, save)
        console.print(f"✓ Trace saved to {path}")

    raise typer.Exit(code=0 if last.success else 1)


@app.command()
def scenarios() -> None:
    """List available scenarios."""
    print(f"{'Scenario':<15} Description")
    print("-" * 75)
    for scenario in SCENARIOS.values():
        print(f"{scenario.name:<15} {scenario.description}")


def main() -> None:
    app()
