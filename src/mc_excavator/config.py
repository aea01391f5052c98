"""Runtime configuration for MC Excavator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True, slots=True)
class BaseLocation:
    """Travel destination; ``y`` is optional and XZ-only navigation is used without it."""

    x: int
    y: int | None
    z: int


@dataclass(frozen=True, slots=True)
class ChestLocation:
    x: int
    y: int
    z: int


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="MC_EXCAVATOR_", env_file=".env", extra="ignore")

    app_name: str = "mc-excavator"
    log_level: str = "INFO"
    state_file: Path = Field(
        default=Path("mining_state.json"),
        description="JSON file holding resumable excavation progress.",
    )

    base_x: int | None = None
    base_y: int | None = None
    base_z: int | None = None

    chest_x: int | None = None
    chest_y: int | None = None
    chest_z: int | None = None

    low_health_threshold: float = 14.0
    heal_to_threshold: float = 18.0
    food_threshold: float = 18.0

    resume_delay_seconds: float = Field(
        default=5.0,
        description="Delay after spawn before saved progress is resumed, so the world can load.",
    )
    ping_sample_interval_seconds: float = 3.0

    @property
    def base_location(self) -> BaseLocation | None:
        if self.base_x is None or self.base_z is None:
            return None
        return BaseLocation(x=self.base_x, y=self.base_y, z=self.base_z)

    @property
    def chest_location(self) -> ChestLocation | None:
        if self.chest_x is None or self.chest_y is None or self.chest_z is None:
            return None
        return ChestLocation(x=self.chest_x, y=self.chest_y, z=self.chest_z)


settings = Settings()
