"""Traversal planning, navigation, persistence and the excavation loop."""

from .engine import EngineDependencies, ExcavationEngine
from .navigator import Navigator
from .planner import iter_traversal, plan_traversal, target_at
from .progress import InMemoryProgressStore, JsonProgressStore, PersistedProgress, ProgressStore

__all__ = [
    "EngineDependencies",
    "ExcavationEngine",
    "InMemoryProgressStore",
    "JsonProgressStore",
    "Navigator",
    "PersistedProgress",
    "ProgressStore",
    "iter_traversal",
    "plan_traversal",
    "target_at",
]
