"""Boundary for the game client: agent body, world queries and inventory access.

Concrete clients (a bridged mineflayer bot, a headless protocol client, a
simulator) implement :class:`BotPort`; the controller never talks to the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from mc_excavator.models import Vec3

AIR_BLOCKS = frozenset({"air", "cave_air", "void_air"})


@dataclass(frozen=True, slots=True)
class Block:
    """A block as reported by the client.

    ``solid`` is true when the block has a full-cube collision box.
    """

    position: Vec3
    name: str
    solid: bool = True

    @property
    def is_air(self) -> bool:
        return self.name in AIR_BLOCKS


@dataclass(frozen=True, slots=True)
class Item:
    name: str
    count: int = 1
    display_name: str | None = None


class Container(Protocol):
    """An opened chest-like window."""

    async def deposit(self, item: Item, count: int) -> None:
        """Move ``count`` of ``item`` from the bot inventory into the container."""

    def close(self) -> None:
        """Close the window."""


class BotPort(Protocol):
    """Agent body plus the world and inventory accessors the controller consumes."""

    @property
    def position(self) -> Vec3 | None:
        """Feet position, or ``None`` while the entity is not spawned."""

    @property
    def velocity(self) -> Vec3: ...

    @property
    def yaw(self) -> float: ...

    @property
    def on_ground(self) -> bool: ...

    @property
    def health(self) -> float: ...

    @property
    def food(self) -> float: ...

    @property
    def latency(self) -> int:
        """Last round-trip time reported for this player, in ms."""

    player_speed: float

    def block_at(self, position: Vec3) -> Block | None: ...

    def can_see(self, block: Block) -> bool: ...

    def find_block(self, matching: Callable[[Block], bool], max_distance: int) -> Block | None: ...

    async def look_at(self, point: Vec3, force: bool = True) -> None: ...

    def set_control(self, control: str, state: bool) -> None: ...

    def clear_controls(self) -> None: ...

    async def dig(self, block: Block) -> None: ...

    def stop_digging(self) -> None: ...

    async def wait_for_ticks(self, ticks: int) -> None: ...

    def inventory_items(self) -> list[Item]: ...

    def inventory_slots(self) -> Sequence[Item | None]:
        """All window slots; indices 9..44 are the main inventory and hotbar."""

    def held_item(self) -> Item | None: ...

    async def equip(self, item: Item) -> None: ...

    async def equip_for_block(self, block: Block) -> None:
        """Equip the best available tool for ``block``."""

    async def consume(self) -> None: ...

    async def open_container(self, block: Block) -> Container: ...
