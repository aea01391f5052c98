"""Capability contracts consumed by the excavation engine."""

from __future__ import annotations

from typing import Protocol

from mc_excavator.adapters.world import Block
from mc_excavator.models import NormalizedRegion


class ToolCapability(Protocol):
    def should_excavate(self, block: Block) -> bool:
        """Return whether ``block`` is worth digging."""

    async def equip_for(self, block: Block) -> str:
        """Equip a tool for ``block`` and return its display name."""


class InventoryCapability(Protocol):
    def is_full(self) -> bool: ...

    async def deposit_to_storage(self, region: NormalizedRegion | None) -> bool:
        """Unload into nearby storage; return whether space was freed."""


class SustenanceCapability(Protocol):
    async def maintain(self, threshold: float) -> None:
        """Eat if the food level is below ``threshold``."""


class NetworkTelemetry(Protocol):
    @property
    def current_ping(self) -> int:
        """Current round-trip latency in ms."""

    @property
    def tps(self) -> float:
        """Estimated server ticks per second (20 is nominal)."""
