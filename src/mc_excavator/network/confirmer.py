"""Waits for the authoritative server to acknowledge local actions."""

from __future__ import annotations

from mc_excavator.adapters.world import BotPort
from mc_excavator.models import Vec3
from mc_excavator.network.timings import AdaptiveTimings


class ConfirmationWaiter:
    def __init__(self, bot: BotPort, timings: AdaptiveTimings) -> None:
        self._bot = bot
        self._timings = timings

    async def wait_for_block_break(self, position: Vec3, max_ticks: int = 4) -> bool:
        """Poll once per tick until ``position`` reads as empty."""
        for _ in range(max_ticks):
            await self._bot.wait_for_ticks(1)
            block = self._bot.block_at(position)
            if block is None or block.is_air:
                return True
        return False

    async def wait_after_dig(self, position: Vec3) -> bool:
        return await self.wait_for_block_break(position, self._timings.post_dig_wait_ticks)

    async def wait_for_position(self, expected: Vec3, tolerance: float = 0.5) -> bool:
        """Wait until the bot settles within ``tolerance`` of ``expected``."""
        max_ticks = max(1, min(self._timings.telemetry.current_ping * 3 + 200, 3000) // 50)
        for _ in range(max_ticks):
            await self._bot.wait_for_ticks(1)
            position = self._bot.position
            if position is None:
                return False
            if position.distance_to(expected) < tolerance:
                return True
        return False
