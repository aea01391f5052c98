"""Inventory capacity checks and unloading into chests."""

from __future__ import annotations

import logging

from mc_excavator.adapters.pathing import GoalNear, GoalSolver
from mc_excavator.adapters.world import Block, BotPort, Container, Item
from mc_excavator.config import ChestLocation
from mc_excavator.events import EventBus, InventoryDeposited
from mc_excavator.inventory.food import is_food_item
from mc_excavator.models import NormalizedRegion, Vec3
from mc_excavator.timeouts import with_timeout

MAIN_INVENTORY = range(9, 45)
TOOL_SUFFIXES = ("_pickaxe", "_axe", "_shovel", "_sword", "_hoe")
CHEST_NAMES = frozenset({"chest", "trapped_chest"})
CHEST_NAVIGATION_TIMEOUT_SECONDS = 30.0


def should_keep_item(name: str) -> bool:
    return name.endswith(TOOL_SUFFIXES) or is_food_item(name)


def _is_chest(block: Block) -> bool:
    return block.name in CHEST_NAMES


class InventoryManager:
    def __init__(
        self,
        bot: BotPort,
        pathfinder: GoalSolver,
        bus: EventBus,
        *,
        chest_location: ChestLocation | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bot = bot
        self._pathfinder = pathfinder
        self._bus = bus
        self._chest_location = chest_location
        self._logger = logger or logging.getLogger("mc_excavator.inventory.storage")

    def empty_slots(self) -> int:
        slots = self._bot.inventory_slots()
        return sum(1 for index in MAIN_INVENTORY if index < len(slots) and slots[index] is None)

    def is_full(self) -> bool:
        return self.empty_slots() == 0

    async def deposit_to_storage(self, region: NormalizedRegion | None) -> bool:
        """Walk to a chest and unload everything but tools and food; True if space was freed."""
        chest = self.find_chest(region)
        if chest is None:
            self._logger.warning("no_chest_found")
            return False

        self._logger.info("walking_to_chest", extra={"position": chest.position.as_dict()})
        position = chest.position
        outcome = await with_timeout(
            self._pathfinder.goto(GoalNear(position.x, position.y, position.z, 2)),
            CHEST_NAVIGATION_TIMEOUT_SECONDS,
            on_timeout=self._pathfinder.stop,
        )
        if not outcome.ok:
            self._logger.error(
                "chest_unreachable",
                extra={"status": outcome.status.value, "error": repr(outcome.error)},
            )
            return False

        try:
            container = await self._bot.open_container(chest)
        except Exception:  # noqa: BLE001
            self._logger.exception("chest_open_failed")
            return False

        try:
            for item in self._bot.inventory_items():
                if should_keep_item(item.name):
                    continue
                if not await self._deposit(container, item):
                    break
            self._bus.publish(InventoryDeposited())
            self._logger.info("items_deposited")
        finally:
            container.close()

        return not self.is_full()

    async def _deposit(self, container: Container, item: Item) -> bool:
        try:
            await container.deposit(item, item.count)
        except Exception:  # noqa: BLE001
            self._logger.warning("chest_full", extra={"item": item.name})
            return False
        return True

    def find_chest(self, region: NormalizedRegion | None) -> Block | None:
        if region is not None:
            in_region = self._bot.find_block(
                lambda block: _is_chest(block) and region.contains(block.position),
                max_distance=128,
            )
            if in_region is not None:
                return in_region

        if self._chest_location is not None:
            loc = self._chest_location
            block = self._bot.block_at(Vec3(loc.x, loc.y, loc.z))
            if block is not None and _is_chest(block):
                return block
            self._logger.warning("configured_chest_missing", extra={"x": loc.x, "y": loc.y, "z": loc.z})

        return self._bot.find_block(_is_chest, max_distance=64)
