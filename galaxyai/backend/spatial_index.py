"""Uniform-grid spatial index over the records of one snapshot.

Objects are bucketed into cubic cells of ``cell_size`` world units, so a
radius or box query only visits the cells it overlaps.  Results always
come back in snapshot order.  Objects with a non-finite position are kept
out of the grid and never match a spatial query.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

if TYPE_CHECKING:
    from .scene_model import ObjectRecord, Vec3

DEFAULT_CELL_SIZE = 1000.0

Cell = tuple[int, int, int]


class SpatialIndex:
    """Read-only grid index; build once per snapshot."""

    def __init__(self, objects: Iterable["ObjectRecord"], cell_size: float = DEFAULT_CELL_SIZE) -> None:
        if not cell_size > 0:
            raise ValueError(f"cell_size must be positive, got {cell_size!r}")
        self.cell_size = float(cell_size)
        self._grid: dict[Cell, list[tuple[int, "ObjectRecord"]]] = {}
        self._placed: list[tuple[int, "ObjectRecord"]] = []
        self._count = 0
        for order, obj in enumerate(objects):
            self._count += 1
            if not obj.position.is_finite():
                continue
            entry = (order, obj)
            self._placed.append(entry)
            self._grid.setdefault(self._cell(obj.position), []).append(entry)

    def _cell(self, pos: "Vec3") -> Cell:
        size = self.cell_size
        return (math.floor(pos.x / size), math.floor(pos.y / size), math.floor(pos.z / size))

    def _axis_range(self, lo: float, hi: float) -> range:
        return range(math.floor(lo / self.cell_size), math.floor(hi / self.cell_size) + 1)

    def _entries_in_box(self, lo: tuple[float, float, float],
                        hi: tuple[float, float, float]) -> Iterator[tuple[int, "ObjectRecord"]]:
        # wide boxes touch more cells than are occupied: scan the occupied ones
        spans = [(h - l) / self.cell_size + 1 for l, h in zip(lo, hi)]
        if not all(math.isfinite(s) for s in spans) or spans[0] * spans[1] * spans[2] > len(self._grid):
            yield from self._placed
            return
        xs, ys, zs = (self._axis_range(l, h) for l, h in zip(lo, hi))
        for x in xs:
            for y in ys:
                for z in zs:
                    yield from self._grid.get((x, y, z), ())

    # ── Queries ──────────────────────────────────────────────

    def objects_near(self, origin: "Vec3", max_distance: float) -> list["ObjectRecord"]:
        """Records within *max_distance* of *origin* (inclusive)."""
        if not origin.is_finite() or math.isnan(max_distance) or max_distance < 0:
            return []
        lo = (origin.x - max_distance, origin.y - max_distance, origin.z - max_distance)
        hi = (origin.x + max_distance, origin.y + max_distance, origin.z + max_distance)
        hits = [
            (order, obj) for order, obj in self._entries_in_box(lo, hi)
            if obj.position.distance_to(origin) <= max_distance
        ]
        hits.sort(key=lambda e: e[0])
        return [obj for _, obj in hits]

    def objects_in_bounds(self, lower: "Vec3", upper: "Vec3") -> list["ObjectRecord"]:
        """Records inside the axis-aligned box *lower*..*upper* (inclusive)."""
        if not (lower.is_finite() and upper.is_finite()):
            return []
        lo = (lower.x, lower.y, lower.z)
        hi = (upper.x, upper.y, upper.z)
        if any(l > h for l, h in zip(lo, hi)):
            return []
        hits = []
        for order, obj in self._entries_in_box(lo, hi):
            p = obj.position
            if lo[0] <= p.x <= hi[0] and lo[1] <= p.y <= hi[1] and lo[2] <= p.z <= hi[2]:
                hits.append((order, obj))
        hits.sort(key=lambda e: e[0])
        return [obj for _, obj in hits]

    def closest_object(self, origin: "Vec3", max_distance: float = math.inf) -> Optional["ObjectRecord"]:
        """Nearest record to *origin*, or ``None`` if nothing is within *max_distance*.

        Ties go to the record that comes first in the snapshot.
        """
        if not origin.is_finite():
            return None
        if math.isfinite(max_distance):
            candidates = self.objects_near(origin, max_distance)
        else:
            candidates = [obj for _, obj in self._placed]
        best = None
        best_distance = math.inf
        for obj in candidates:
            d = obj.position.distance_to(origin)
            if d < best_distance:
                best, best_distance = obj, d
        return best

    # ── Introspection ────────────────────────────────────────

    def __len__(self) -> int:
        return self._count

    def statistics(self) -> dict:
        cells = len(self._grid)
        return {
            "total_objects": self._count,
            "indexed_objects": len(self._placed),
            "grid_cells": cells,
            "cell_size": self.cell_size,
            "average_objects_per_cell": len(self._placed) / cells if cells else 0.0,
        }
