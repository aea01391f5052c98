from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class Vec3:
    x: float
    y: float
    z: float

    def offset(self, dx: float, dy: float, dz: float) -> Vec3:
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def floored(self) -> Vec3:
        return Vec3(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def distance_to(self, other: Vec3) -> float:
        return math.dist((self.x, self.y, self.z), (other.x, other.y, other.z))

    def as_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True, slots=True)
class NormalizedRegion:
    """Cuboid whose ``min`` corner is componentwise <= its ``max`` corner."""

    min: Vec3
    max: Vec3

    @property
    def size_x(self) -> int:
        return int(self.max.x - self.min.x) + 1

    @property
    def size_y(self) -> int:
        return int(self.max.y - self.min.y) + 1

    @property
    def size_z(self) -> int:
        return int(self.max.z - self.min.z) + 1

    @property
    def volume(self) -> int:
        return self.size_x * self.size_y * self.size_z

    def contains(self, point: Vec3) -> bool:
        return (
            self.min.x <= point.x <= self.max.x
            and self.min.y <= point.y <= self.max.y
            and self.min.z <= point.z <= self.max.z
        )


@dataclass(frozen=True, slots=True)
class Region:
    """User-selected cuboid given by two arbitrary corners."""

    corner1: Vec3
    corner2: Vec3

    def normalized(self) -> NormalizedRegion:
        a, b = self.corner1, self.corner2
        return NormalizedRegion(
            min=Vec3(min(a.x, b.x), min(a.y, b.y), min(a.z, b.z)),
            max=Vec3(max(a.x, b.x), max(a.y, b.y), max(a.z, b.z)),
        )


class ExcavationStatus(str, Enum):
    idle = "idle"
    mining = "mining"
    paused = "paused"
    traveling = "traveling"
    finished = "finished"
    error = "error"


class PingQuality(str, Enum):
    good = "good"
    moderate = "moderate"
    poor = "poor"
    critical = "critical"


@dataclass(frozen=True, slots=True)
class PingData:
    ping: int
    tps: float
    quality: PingQuality


@dataclass(slots=True)
class ExcavationState:
    status: ExcavationStatus = ExcavationStatus.idle
    region: NormalizedRegion | None = None
    total_blocks: int = 0
    mined_blocks: int = 0
    current_tool: str | None = None
    position: Vec3 | None = None
    error: str | None = None
    health: float = 20.0
    food: float = 20.0
    ping: int = 0
    tps: float = 20.0


@dataclass(frozen=True, slots=True)
class MiningStats:
    session_duration_seconds: float
    total_blocks_mined: int
    blocks_per_minute: int
    estimated_seconds_remaining: float | None
