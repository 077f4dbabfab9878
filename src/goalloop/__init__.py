"""goalloop: a bounded plan/act/observe/reflect runtime for goal-pursuing agents."""

from goalloop.loop import Goal, LoopResult, Plan, Reflection, get_metrics, pursue

__all__ = ["Goal", "LoopResult", "Plan", "Reflection", "get_metrics", "pursue"]
