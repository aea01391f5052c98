"""Deterministic traversal order for an excavation region.

Layers are cleared top-down so the agent never undermines the ground it
stands on. Within a layer the z rows ascend and each row flips its x
direction (even rows ascending, odd rows descending), so consecutive targets
stay adjacent. The order depends on the region only, which lets a run resume
from a bare index.
"""

from __future__ import annotations

from typing import Iterator

from mc_excavator.models import NormalizedRegion, Vec3


def iter_traversal(region: NormalizedRegion, start_index: int = 0) -> Iterator[Vec3]:
    """Yield targets in traversal order, skipping the first ``start_index``."""
    for index in range(max(0, start_index), region.volume):
        yield target_at(region, index)


def plan_traversal(region: NormalizedRegion) -> list[Vec3]:
    lo, hi = region.min, region.max
    positions: list[Vec3] = []
    for y in range(int(hi.y), int(lo.y) - 1, -1):
        reverse_x = False
        for z in range(int(lo.z), int(hi.z) + 1):
            xs = range(int(hi.x), int(lo.x) - 1, -1) if reverse_x else range(int(lo.x), int(hi.x) + 1)
            positions.extend(Vec3(x, y, z) for x in xs)
            reverse_x = not reverse_x
    return positions


def target_at(region: NormalizedRegion, index: int) -> Vec3:
    """Return the target at ``index`` without materialising the sequence."""
    if not 0 <= index < region.volume:
        raise IndexError(f"Traversal index {index} out of range for volume {region.volume}")

    layer_size = region.size_x * region.size_z
    layer, within_layer = divmod(index, layer_size)
    row, column = divmod(within_layer, region.size_x)

    y = int(region.max.y) - layer
    z = int(region.min.z) + row
    if row % 2:
        x = int(region.max.x) - column
    else:
        x = int(region.min.x) + column
    return Vec3(x, y, z)
