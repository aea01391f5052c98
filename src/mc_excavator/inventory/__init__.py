"""Default tool, storage and sustenance capabilities."""

from .food import FoodManager, is_food_item
from .storage import InventoryManager
from .tools import SkipListToolSelector

__all__ = ["FoodManager", "InventoryManager", "SkipListToolSelector", "is_food_item"]
