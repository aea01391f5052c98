"""Typed publish/subscribe bus with a closed catalog of excavation events."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, ClassVar, TypeVar, Union, get_args

from .models import NormalizedRegion, PingData, Vec3


@dataclass(frozen=True, slots=True)
class Started:
    topic: ClassVar[str] = "mining:started"
    region: NormalizedRegion


@dataclass(frozen=True, slots=True)
class Progress:
    topic: ClassVar[str] = "mining:progress"
    mined: int
    total: int


@dataclass(frozen=True, slots=True)
class Paused:
    topic: ClassVar[str] = "mining:paused"
    reason: str


@dataclass(frozen=True, slots=True)
class Resumed:
    topic: ClassVar[str] = "mining:resumed"


@dataclass(frozen=True, slots=True)
class Finished:
    topic: ClassVar[str] = "mining:finished"


@dataclass(frozen=True, slots=True)
class Errored:
    topic: ClassVar[str] = "mining:error"
    message: str


@dataclass(frozen=True, slots=True)
class BlockCleared:
    topic: ClassVar[str] = "mining:block-cleared"
    position: Vec3
    name: str


@dataclass(frozen=True, slots=True)
class InventoryFull:
    topic: ClassVar[str] = "inventory:full"


@dataclass(frozen=True, slots=True)
class InventoryDeposited:
    topic: ClassVar[str] = "inventory:deposited"


@dataclass(frozen=True, slots=True)
class Hungry:
    topic: ClassVar[str] = "inventory:hungry"


@dataclass(frozen=True, slots=True)
class Eating:
    topic: ClassVar[str] = "inventory:eating"
    food: str


@dataclass(frozen=True, slots=True)
class Stuck:
    topic: ClassVar[str] = "safety:stuck"
    level: int
    reason: str


@dataclass(frozen=True, slots=True)
class Unstuck:
    topic: ClassVar[str] = "safety:unstuck"


@dataclass(frozen=True, slots=True)
class PingUpdate:
    topic: ClassVar[str] = "ping:update"
    data: PingData


@dataclass(frozen=True, slots=True)
class PingHigh:
    topic: ClassVar[str] = "ping:high"
    ping: int


@dataclass(frozen=True, slots=True)
class PingCritical:
    topic: ClassVar[str] = "ping:critical"
    ping: int


ExcavatorEvent = Union[
    Started,
    Progress,
    Paused,
    Resumed,
    Finished,
    Errored,
    BlockCleared,
    InventoryFull,
    InventoryDeposited,
    Hungry,
    Eating,
    Stuck,
    Unstuck,
    PingUpdate,
    PingHigh,
    PingCritical,
]

EVENT_TYPES: tuple[type, ...] = get_args(ExcavatorEvent)

E = TypeVar("E")
Handler = Callable[[E], None]


class EventBus:
    """In-process bus; handlers run synchronously on the publisher's task."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._handlers: dict[type, list[Callable[[object], None]]] = defaultdict(list)
        self._wildcard: list[Callable[[object], None]] = []
        self._logger = logger or logging.getLogger("mc_excavator.events")

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Callable[[], None]:
        """Register ``handler`` for one event type and return an unsubscribe callable."""
        if event_type not in EVENT_TYPES:
            raise TypeError(f"Unknown event type: {event_type!r}")
        self._handlers[event_type].append(handler)  # type: ignore[arg-type]
        return lambda: self._remove(self._handlers[event_type], handler)

    def subscribe_all(self, handler: Callable[[ExcavatorEvent], None]) -> Callable[[], None]:
        self._wildcard.append(handler)  # type: ignore[arg-type]
        return lambda: self._remove(self._wildcard, handler)

    def publish(self, event: ExcavatorEvent) -> None:
        if type(event) not in EVENT_TYPES:
            raise TypeError(f"Unknown event: {event!r}")

        for handler in [*self._handlers.get(type(event), ()), *self._wildcard]:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                self._logger.exception("event_handler_failed", extra={"topic": event.topic})

    @staticmethod
    def _remove(handlers: list, handler: Callable) -> None:
        if handler in handlers:
            handlers.remove(handler)
