"""Ports to the game client, goal-solver and capabilities."""

from .capabilities import InventoryCapability, NetworkTelemetry, SustenanceCapability, ToolCapability
from .pathing import MINING_PROFILE, TRAVEL_PROFILE, Goal, GoalNear, GoalSolver, GoalXZ, MovementProfile
from .world import AIR_BLOCKS, Block, BotPort, Container, Item

__all__ = [
    "AIR_BLOCKS",
    "Block",
    "BotPort",
    "Container",
    "Goal",
    "GoalNear",
    "GoalSolver",
    "GoalXZ",
    "InventoryCapability",
    "Item",
    "MINING_PROFILE",
    "MovementProfile",
    "NetworkTelemetry",
    "SustenanceCapability",
    "TRAVEL_PROFILE",
    "ToolCapability",
]
