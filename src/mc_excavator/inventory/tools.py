"""Which blocks to dig, and which tool to hold while digging them."""

from __future__ import annotations

import logging

from mc_excavator.adapters.world import AIR_BLOCKS, Block, BotPort

BED_COLORS = (
    "white", "red", "blue", "green", "yellow", "black", "brown", "cyan",
    "gray", "light_blue", "light_gray", "lime", "magenta", "orange", "pink", "purple",
)

SKIP_BLOCKS = frozenset(
    {
        *AIR_BLOCKS,
        "water", "lava", "flowing_water", "flowing_lava",
        "bedrock",
        "snow",
        "short_grass", "tall_grass", "fern", "large_fern", "dead_bush",
        "oak_leaves", "oak_log",
        "chest", "trapped_chest", "crafting_table", "smithing_table", "furnace",
        *(f"{color}_bed" for color in BED_COLORS),
    }
)


class SkipListToolSelector:
    """Tool capability backed by a fixed skip list and the client's tool plugin."""

    def __init__(self, bot: BotPort, *, skip_blocks: frozenset[str] = SKIP_BLOCKS, logger: logging.Logger | None = None):
        self._bot = bot
        self._skip_blocks = skip_blocks
        self._logger = logger or logging.getLogger("mc_excavator.inventory.tools")

    def should_excavate(self, block: Block) -> bool:
        return block.name not in self._skip_blocks

    async def equip_for(self, block: Block) -> str:
        try:
            await self._bot.equip_for_block(block)
        except Exception:  # noqa: BLE001
            self._logger.debug("equip_for_block_failed", extra={"block": block.name}, exc_info=True)

        held = self._bot.held_item()
        if held is None:
            return "Hand"
        return held.display_name or held.name
