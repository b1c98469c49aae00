"""Serialization projector: detail-leveled dict views of a snapshot.

Projections are plain trees of dicts, lists and scalars, ready for
``json.dumps`` and transmission to a language-model backend.  Building a
projection for a big galaxy is expensive, so results are cached per
(level, galaxy, zone, object count, scene revision) in the ``ContextCache``.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

from .context_cache import ContextCache
from .performance import PerformanceMonitor
from .scene_model import ORIGIN, UNIT_SCALE, ObjectRecord, SceneSnapshot

logger = logging.getLogger("galaxyai.projection")

PARALLEL_THRESHOLD = 1000
PARALLEL_CHUNK_SIZE = 250
PROXIMITY_DISTANCE = 500.0
MAX_RELEVANT_TAGS = 3

ESSENTIAL_PROPERTIES = ("category", "className", "Obj_arg0", "Obj_arg1", "Obj_arg2", "Obj_arg3")

TYPE_RELEVANCE = {
    "level": 1,
    "enemy": 2,
    "collectible": 3,
    "platform": 4,
    "start": 5,
    "area": 6,
    "camera": 7,
    "gravity": 8,
}
DEFAULT_RELEVANCE = 10

_IGNORED_TAGS = {"unknown", "debug"}


class ProjectionLevel(str, Enum):
    MINIMAL = "minimal"
    STANDARD = "standard"
    FULL = "full"
    SPATIAL = "spatial"


# ── Per-object views ─────────────────────────────────────────

def project_object(obj: ObjectRecord, level: ProjectionLevel) -> dict:
    """Return the dict view of one record at *level*."""
    data = {
        "uniqueId": obj.unique_id,
        "name": obj.name,
        "type": obj.object_type,
        "position": obj.position.to_dict(),
    }
    if level == ProjectionLevel.MINIMAL:
        return data

    data["displayName"] = obj.display_name
    data["rotation"] = obj.rotation.to_dict()
    data["scale"] = obj.scale.to_dict()
    data["layer"] = obj.layer
    data["zone"] = obj.zone
    data["tags"] = list(obj.tags)

    if level == ProjectionLevel.FULL:
        data["properties"] = dict(obj.properties)
    else:
        essential = {k: obj.properties[k] for k in ESSENTIAL_PROPERTIES if k in obj.properties}
        if essential:
            data["properties"] = essential
    return data


def _relevant_tags(tags) -> list[str]:
    out = []
    for tag in tags:
        if tag.startswith("layer_") or tag in _IGNORED_TAGS or len(tag) <= 1:
            continue
        out.append(tag)
        if len(out) == MAX_RELEVANT_TAGS:
            break
    return out


def _round_half_up(value: float, digits: int) -> float:
    # halves round toward +inf, unlike round()
    factor = 10 ** digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def _ai_object(obj: ObjectRecord) -> dict:
    pos = obj.position
    data = {
        "id": obj.unique_id,
        "name": obj.name,
        "type": obj.object_type,
        "pos": [_round_half_up(pos.x, 1), _round_half_up(pos.y, 1), _round_half_up(pos.z, 1)],
    }
    if obj.scale != UNIT_SCALE:
        s = obj.scale
        data["scale"] = [_round_half_up(s.x, 2), _round_half_up(s.y, 2), _round_half_up(s.z, 2)]
    tags = _relevant_tags(obj.tags)
    if tags:
        data["tags"] = tags
    return data


def _type_index(objects) -> dict[str, list[int]]:
    index: dict[str, list[int]] = {}
    for obj in objects:
        index.setdefault(obj.object_type, []).append(obj.unique_id)
    return index


# ── Projector ────────────────────────────────────────────────

class Projector:
    """Builds (and caches) projections of snapshots.

    Args:
        cache: Optional shared context cache for finished projections.
        monitor: Optional performance monitor.
        parallel_threshold: Object count above which per-object views are
            computed on a thread pool.
        max_workers: Thread pool size for parallel projection.
    """

    def __init__(
        self,
        cache: Optional[ContextCache] = None,
        monitor: Optional[PerformanceMonitor] = None,
        parallel_threshold: int = PARALLEL_THRESHOLD,
        max_workers: int = 4,
    ) -> None:
        self.cache = cache
        self.monitor = monitor
        self.parallel_threshold = parallel_threshold
        self.max_workers = max_workers

    def project(self, snapshot: SceneSnapshot, level: ProjectionLevel = ProjectionLevel.STANDARD) -> dict:
        """Return the *level* projection of *snapshot*, from cache when possible."""
        level = ProjectionLevel(level)
        count = snapshot.object_count
        if self.cache is not None:
            cached = self.cache.get_projection(
                level, snapshot.galaxy_name, snapshot.zone_name, count, snapshot.revision)
            if cached is not None:
                return cached

        if self.monitor is not None:
            with self.monitor.time_operation(f"project.{level.value}"):
                tree = self._build(snapshot, level)
        else:
            tree = self._build(snapshot, level)

        if self.cache is not None:
            self.cache.put_projection(
                level, snapshot.galaxy_name, snapshot.zone_name, count, tree, snapshot.revision)
        return tree

    def project_filtered(
        self,
        snapshot: SceneSnapshot,
        predicate: Callable[[ObjectRecord], bool],
        level: ProjectionLevel = ProjectionLevel.STANDARD,
    ) -> dict:
        """Project only the records matching *predicate* (never cached)."""
        level = ProjectionLevel(level)
        selected = [o for o in snapshot.objects if predicate(o)]
        tree = {
            "galaxyName": snapshot.galaxy_name,
            "currentZone": snapshot.zone_name,
            "objectCount": len(selected),
            "totalObjectCount": snapshot.object_count,
            "objects": [project_object(o, level) for o in selected],
        }
        if level != ProjectionLevel.MINIMAL:
            tree["objectsByType"] = _type_index(selected)
        return tree

    def project_for_ai(self, snapshot: SceneSnapshot, max_objects: int) -> dict:
        """Compact projection for prompts: closest, most relevant objects first.

        Objects are ordered by distance from the origin, then by type
        relevance, and cut to *max_objects*.
        """
        ordered = sorted(
            snapshot.objects,
            key=lambda o: (
                o.position.distance_to(ORIGIN),
                TYPE_RELEVANCE.get(o.object_type.lower(), DEFAULT_RELEVANCE),
            ),
        )
        limit = max(0, max_objects)
        selected = ordered[:limit]
        tree = {
            "galaxy": snapshot.galaxy_name,
            "zone": snapshot.zone_name,
            "objects": [_ai_object(o) for o in selected],
            "count": len(selected),
        }
        if len(ordered) > limit:
            tree["truncated"] = True
            tree["totalCount"] = len(ordered)
        return tree

    # ── Internals ────────────────────────────────────────────

    def _build(self, snapshot: SceneSnapshot, level: ProjectionLevel) -> dict:
        objects = snapshot.objects
        if len(objects) > self.parallel_threshold and level != ProjectionLevel.MINIMAL:
            views = self._project_parallel(objects, level)
        else:
            views = [project_object(o, level) for o in objects]

        tree = {
            "galaxyName": snapshot.galaxy_name,
            "currentZone": snapshot.zone_name,
            "objectCount": len(objects),
            "objects": views,
        }
        if level != ProjectionLevel.MINIMAL:
            tree["objectsByType"] = _type_index(objects)
        if level == ProjectionLevel.SPATIAL:
            tree["spatialRelationships"] = {"proximity": self._proximity(snapshot)}
        return tree

    def _project_parallel(self, objects, level: ProjectionLevel) -> list[dict]:
        chunks = [
            objects[i:i + PARALLEL_CHUNK_SIZE]
            for i in range(0, len(objects), PARALLEL_CHUNK_SIZE)
        ]
        logger.debug("Projecting %d objects in %d chunks", len(objects), len(chunks))
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # map() yields in submission order
            results = pool.map(lambda chunk: [project_object(o, level) for o in chunk], chunks)
            return [view for chunk_views in results for view in chunk_views]

    @staticmethod
    def _proximity(snapshot: SceneSnapshot) -> dict[str, list[int]]:
        proximity: dict[str, list[int]] = {}
        for obj in snapshot.objects:
            near = [
                other.unique_id
                for other in snapshot.objects_near(obj.position, PROXIMITY_DISTANCE)
                if other is not obj
            ]
            if near:
                proximity[str(obj.unique_id)] = near
        return proximity
