"""Boundary for the movement goal-solver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union


@dataclass(frozen=True, slots=True)
class GoalNear:
    x: float
    y: float
    z: float
    range: float = 2.0


@dataclass(frozen=True, slots=True)
class GoalXZ:
    x: float
    z: float


Goal = Union[GoalNear, GoalXZ]


@dataclass(frozen=True, slots=True)
class MovementProfile:
    """Movement permissions handed to the solver."""

    can_dig: bool
    allow_sprinting: bool = False
    allow_parkour: bool = False
    allow_free_motion: bool = False
    scaffolding_blocks: tuple[str, ...] = ()


MINING_PROFILE = MovementProfile(can_dig=True)
TRAVEL_PROFILE = MovementProfile(can_dig=False)


class GoalSolver(Protocol):
    """Path planner and follower driving the bot towards a goal."""

    @property
    def goal(self) -> Goal | None:
        """Goal currently being pursued, if any."""

    def set_movements(self, profile: MovementProfile) -> None: ...

    async def goto(self, goal: Goal) -> None:
        """Resolve when the goal is reached; raise when the solver gives up or is stopped."""

    def stop(self) -> None: ...
