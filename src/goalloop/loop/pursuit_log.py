"""Reasoning/logging utilities for pursuits.

A pursuit can be logged to two surfaces:
- a JSONL trace file (machine-readable)
- rich-colored stderr output (human-readable)

This module keeps the logging concerns isolated from the loop runtime.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, override

from rich.console import Console
from rich.markup import escape

from goalloop.conf import settings

if TYPE_CHECKING:
    from goalloop.loop.models import Goal, IterationRecord, LoopResult, Phase


class JSONFormatter(logging.Formatter):
    """Format log records as a single-line JSON object."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pursuit_id": getattr(record, "pursuit_id", None),
            "goal": getattr(record, "goal", None),
            "iteration": getattr(record, "iteration", None),
            "phase": getattr(record, "phase", None),
        }

        # Event fields go at top level
        event_data = getattr(record, "event", None)
        if event_data:
            log_obj.update(event_data)

        return json.dumps(log_obj, default=str)


def safe_repr(value: Any) -> str:
    """repr() that never raises; payloads are caller objects and may be broken."""
    try:
        return repr(value)
    except Exception:
        return f"<unreprable {type(value).__name__} at {id(value):#x}>"


def truncate(text: str, max_length: int | None = None) -> str:
    """Truncate text to max_length, adding an ellipsis marker if needed."""
    limit = settings.MAX_PAYLOAD_CHARS if max_length is None else max_length
    if len(text) <= limit:
        return text
    return text[:limit] + "... (truncated)"


class PursuitLogger(ABC):
    """Base class for pursuit loggers."""

    pursuit_id: str

    def __init__(self, pursuit_id: str) -> None:
        self.pursuit_id = pursuit_id

    @abstractmethod
    def log_start(self, goal: Goal) -> None:
        del goal
        raise NotImplementedError

    @abstractmethod
    def log_iteration(self, record: IterationRecord) -> None:
        del record
        raise NotImplementedError

    @abstractmethod
    def log_exit(self, iteration: int, reason: str) -> None:
        del iteration
        del reason
        raise NotImplementedError

    @abstractmethod
    def log_callback_failure(self, iteration: int, phase: Phase, exc: Exception) -> None:
        del iteration
        del phase
        del exc
        raise NotImplementedError

    @abstractmethod
    def log_completion(self, result: LoopResult) -> None:
        del result
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the logger."""


class NullPursuitLogger(PursuitLogger):
    """No-op pursuit logger."""

    @override
    def log_start(self, goal: Goal) -> None:
        del goal

    @override
    def log_iteration(self, record: IterationRecord) -> None:
        del record

    @override
    def log_exit(self, iteration: int, reason: str) -> None:
        del iteration
        del reason

    @override
    def log_callback_failure(self, iteration: int, phase: Phase, exc: Exception) -> None:
        del iteration
        del phase
        del exc

    @override
    def log_completion(self, result: LoopResult) -> None:
        del result


class ReasoningLogger(PursuitLogger):
    """Structured logging for a pursuit with JSON file + colored stderr."""

    goal_description: str | None
    log_path: Path
    console: Console | None

    _logger: logging.Logger
    _json_handler: logging.FileHandler | None

    def __init__(
        self,
        pursuit_id: str,
        log_path: Path | None = None,
        console: Console | None = None,
    ) -> None:
        super().__init__(pursuit_id)
        self.goal_description = None
        self.log_path = log_path or settings.log_file
        if console is None and settings.CONSOLE_OUTPUT:
            console = Console(stderr=True)
        self.console = console

        # Instance-specific logger to avoid accumulating handlers on a module-global logger.
        self._logger = logging.getLogger(f"goalloop.reasoning.{self.pursuit_id}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False

        # Ensure we never duplicate handlers even if the same logger name is reused.
        for h in list(self._logger.handlers):
            try:
                h.close()
            finally:
                self._logger.removeHandler(h)

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        json_handler = logging.FileHandler(self.log_path, encoding="utf-8")
        json_handler.setFormatter(JSONFormatter())
        self._logger.addHandler(json_handler)
        self._json_handler = json_handler

    @override
    def close(self) -> None:
        """Close any file handlers attached to this logger.

        Pursuits are short-lived and frequent; explicitly closing handlers
        prevents file descriptor leaks and duplicate logs.
        """
        for h in list(self._logger.handlers):
            try:
                h.close()
            finally:
                self._logger.removeHandler(h)
        self._json_handler = None

    def _log(self, level: int, msg: str, **kwargs: Any) -> None:
        """Internal log method that adds pursuit context."""
        extra = {
            "pursuit_id": self.pursuit_id,
            "goal": self.goal_description,
            **kwargs,
        }
        self._logger.log(level, msg, extra=extra)

    def _print(self, text: str) -> None:
        if self.console is not None:
            self.console.print(text)

    @override
    def log_start(self, goal: Goal) -> None:
        self.goal_description = goal.description
        self._log(
            logging.INFO,
            f"Pursuit started: {goal.description}",
            event={"event": "start", "max_iterations": goal.max_iterations},
        )
        self._print(
            f"[bold cyan]→[/] {escape(str(goal.description))} [dim](max {goal.max_iterations})[/]"
        )

    @override
    def log_iteration(self, record: IterationRecord) -> None:
        event: dict[str, Any] = {
            "event": "iteration",
            "durations": dict(record.durations),
        }
        if record.plan is not None:
            event["action_token"] = truncate(safe_repr(record.plan.action_token))
        if record.ran("observe"):
            event["observation"] = truncate(safe_repr(record.observation))
        if record.ran("reflect"):
            event["reflection"] = truncate(safe_repr(record.reflection))

        self._log(
            logging.INFO,
            f"Iteration {record.iteration} completed in {record.total_duration:.4f}s",
            iteration=record.iteration,
            event=event,
        )
        self._print(
            f"[bold]Iteration {record.iteration}:[/] "
            f"{escape(truncate(safe_repr(record.observation), 100))} "
            f"[dim]({record.total_duration * 1000:.1f} ms)[/]"
        )

    @override
    def log_exit(self, iteration: int, reason: str) -> None:
        self._log(
            logging.INFO,
            f"Agent requested exit: {reason}",
            iteration=iteration,
            phase="plan",
            event={"event": "exit"},
        )
        self._print(f"[yellow]⏹ exit at iteration {iteration}:[/] {escape(reason)}")

    @override
    def log_callback_failure(self, iteration: int, phase: Phase, exc: Exception) -> None:
        self._log(
            logging.ERROR,
            f"Callback failed in phase {phase}: {exc!r}",
            iteration=iteration,
            phase=phase,
            event={"event": "callback_failure", "error_type": type(exc).__name__},
        )
        self._print(f"[red]✗ {phase}:[/] {escape(truncate(str(exc)))}")

    @override
    def log_completion(self, result: LoopResult) -> None:
        """Log why the pursuit ended."""
        outcome = "success" if result.success else "failure"
        self._log(
            logging.INFO if result.success else logging.WARNING,
            f"Pursuit completed after {result.iterations} iterations: {outcome}"
            + (f". Reason: {result.reason}" if result.reason else ""),
            iteration=result.iterations,
            event={"event": "completion", "success": result.success, "reason": result.reason},
        )
        if result.success:
            self._print(f"[green]✓ goal reached in {result.iterations} iterations[/]")
        else:
            self._print(f"[dim]Done: {escape(str(result.reason))}[/]")


def make_pursuit_logger(pursuit_id: str) -> PursuitLogger:
    """Return the logger the runtime uses when the caller did not supply one."""
    if settings.TRACE_LOG_ENABLED:
        return ReasoningLogger(pursuit_id)
    return NullPursuitLogger(pursuit_id)
