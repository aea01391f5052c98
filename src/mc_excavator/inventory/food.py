"""Hunger maintenance."""

from __future__ import annotations

import logging

from mc_excavator.adapters.world import BotPort
from mc_excavator.events import Eating, EventBus, Hungry

FOOD_ITEMS = frozenset(
    {
        "cooked_beef", "cooked_porkchop", "cooked_mutton", "cooked_chicken",
        "baked_potato", "bread", "golden_carrot", "apple", "carrot",
        "melon_slice", "sweet_berries", "golden_apple", "enchanted_golden_apple",
        "cooked_cod", "cooked_salmon", "mushroom_stew", "rabbit_stew",
        "beetroot_soup", "pumpkin_pie", "cookie",
    }
)


def is_food_item(name: str) -> bool:
    return name in FOOD_ITEMS


class FoodManager:
    def __init__(self, bot: BotPort, bus: EventBus, logger: logging.Logger | None = None) -> None:
        self._bot = bot
        self._bus = bus
        self._logger = logger or logging.getLogger("mc_excavator.inventory.food")

    def has_food(self) -> bool:
        return any(is_food_item(item.name) for item in self._bot.inventory_items())

    async def maintain(self, threshold: float = 18) -> None:
        """Eat one food item when the food bar is below ``threshold``."""
        if self._bot.food >= threshold:
            return

        food = next((item for item in self._bot.inventory_items() if is_food_item(item.name)), None)
        if food is None:
            self._bus.publish(Hungry())
            return

        self._logger.info("eating", extra={"food": food.name})
        self._bus.publish(Eating(food=food.name))
        try:
            await self._bot.equip(food)
            await self._bot.consume()
        except Exception:  # noqa: BLE001
            self._logger.exception("eating_failed", extra={"food": food.name})
