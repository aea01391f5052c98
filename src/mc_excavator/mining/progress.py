"""Persistence of resumable excavation progress."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mc_excavator.models import NormalizedRegion, Vec3


class PersistedPoint(BaseModel):
    x: int
    y: int
    z: int


class PersistedArea(BaseModel):
    min: PersistedPoint
    max: PersistedPoint


class PersistedProgress(BaseModel):
    """On-disk schema: ``{"area": {"min": {...}, "max": {...}}, "minedBlocks": n}``."""

    model_config = ConfigDict(populate_by_name=True)

    area: PersistedArea
    mined_blocks: int = Field(alias="minedBlocks", ge=0)

    @classmethod
    def from_region(cls, region: NormalizedRegion, mined_blocks: int) -> PersistedProgress:
        return cls(
            area=PersistedArea(
                min=PersistedPoint(x=int(region.min.x), y=int(region.min.y), z=int(region.min.z)),
                max=PersistedPoint(x=int(region.max.x), y=int(region.max.y), z=int(region.max.z)),
            ),
            mined_blocks=mined_blocks,
        )

    def to_region(self) -> NormalizedRegion:
        lo, hi = self.area.min, self.area.max
        return NormalizedRegion(min=Vec3(lo.x, lo.y, lo.z), max=Vec3(hi.x, hi.y, hi.z))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ProgressStore(Protocol):
    """Persistence contract for excavation checkpoints."""

    def save(self, region: NormalizedRegion, mined_blocks: int) -> None: ...

    def load(self) -> PersistedProgress | None: ...

    def clear(self) -> None: ...

    def has_state(self) -> bool: ...


class InMemoryProgressStore:
    def __init__(self) -> None:
        self._progress: PersistedProgress | None = None
        self.saves = 0

    def save(self, region: NormalizedRegion, mined_blocks: int) -> None:
        self._progress = PersistedProgress.from_region(region, mined_blocks)
        self.saves += 1

    def load(self) -> PersistedProgress | None:
        return self._progress

    def clear(self) -> None:
        self._progress = None

    def has_state(self) -> bool:
        return self._progress is not None


class JsonProgressStore:
    """JSON file store; writes go through a temp file so a crash never leaves half a checkpoint."""

    def __init__(self, file_path: str | Path, logger: logging.Logger | None = None) -> None:
        self._path = Path(file_path)
        self._logger = logger or logging.getLogger("mc_excavator.progress")

    @property
    def path(self) -> Path:
        return self._path

    def save(self, region: NormalizedRegion, mined_blocks: int) -> None:
        payload = PersistedProgress.from_region(region, mined_blocks).to_json()
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError:
            self._logger.exception("progress_save_failed", extra={"path": str(self._path)})

    def load(self) -> PersistedProgress | None:
        if not self._path.exists():
            return None
        try:
            return PersistedProgress.model_validate_json(self._path.read_bytes())
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            self._logger.error("progress_load_failed", extra={"path": str(self._path), "error": str(exc)})
            return None

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError:
            self._logger.exception("progress_clear_failed", extra={"path": str(self._path)})

    def has_state(self) -> bool:
        return self._path.exists()
