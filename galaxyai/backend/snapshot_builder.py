"""Snapshot builder: turns an editor's object list into cached ``SceneSnapshot``s.

The editor exposes its state through the ``SceneSource`` accessor
protocol (galaxy name, current zone, object enumeration); the builder
classifies and tags each raw object, builds an immutable snapshot and
keeps it in the ``ContextCache`` keyed by galaxy/zone and object count.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Optional, Protocol, runtime_checkable

from .context_cache import ContextCache
from .performance import PerformanceMonitor
from .scene_model import ObjectClass, ObjectRecord, SceneSnapshot, VecLike, make_object

logger = logging.getLogger("galaxyai.snapshot")

_CLASS_ALIASES = {
    "level": ObjectClass.LEVEL,
    "area": ObjectClass.AREA,
    "camera": ObjectClass.CAMERA,
    "cameracube": ObjectClass.CAMERA,
    "child": ObjectClass.CHILD,
    "cutscene": ObjectClass.CUTSCENE,
    "demo": ObjectClass.CUTSCENE,
    "debug": ObjectClass.DEBUG,
    "debugmove": ObjectClass.DEBUG,
    "gravity": ObjectClass.GRAVITY,
    "planetgravity": ObjectClass.GRAVITY,
    "mappart": ObjectClass.MAPPART,
    "mapparts": ObjectClass.MAPPART,
    "position": ObjectClass.POSITION,
    "generalpos": ObjectClass.POSITION,
    "sound": ObjectClass.SOUND,
    "stage": ObjectClass.STAGE,
    "start": ObjectClass.START,
    "playerstart": ObjectClass.START,
}

# name fragment → tags added
_NAME_TAG_RULES = [
    (("goomba", "kuribo"), ("enemy", "goomba")),
    (("koopa",), ("enemy", "koopa")),
    (("coin",), ("collectible", "coin")),
    (("platform",), ("platform",)),
    (("pipe",), ("pipe",)),
]


def classify(class_name: str) -> ObjectClass:
    """Map an editor class name such as ``"AreaObj"`` to an ``ObjectClass``."""
    key = (class_name or "").strip().lower()
    if key.endswith("obj") and len(key) > 3:
        key = key[:-3]
    return _CLASS_ALIASES.get(key, ObjectClass.UNKNOWN)


def generate_tags(object_type: str, name: str, layer: str, category: str = "") -> list[str]:
    """Derive semantic tags from an object's type, category, layer and name."""
    tags = [object_type]
    if category:
        tags.append(category.lower())
    if layer:
        tags.append(f"layer_{layer}")
    lower = (name or "").lower()
    for fragments, extra in _NAME_TAG_RULES:
        if any(f in lower for f in fragments):
            tags.extend(extra)
    return tags


@dataclass
class RawObject:
    """An object as the editor knows it, before classification and tagging."""
    unique_id: int
    name: str
    class_name: str = ""
    display_name: str = ""
    category: str = ""
    position: VecLike = (0.0, 0.0, 0.0)
    rotation: VecLike = (0.0, 0.0, 0.0)
    scale: VecLike = (1.0, 1.0, 1.0)
    layer: str = ""
    zone: str = ""
    properties: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class SceneSource(Protocol):
    """Read-only accessor the editor exposes to the builder."""

    @property
    def galaxy_name(self) -> str: ...

    @property
    def zone_name(self) -> Optional[str]: ...

    def iter_objects(self) -> Iterable[RawObject]: ...

    def object_count(self, zone: Optional[str] = None) -> int: ...


def to_record(raw: RawObject) -> ObjectRecord:
    object_type = classify(raw.class_name)
    properties = dict(raw.properties)
    if raw.category:
        properties.setdefault("category", raw.category)
    if raw.class_name:
        properties.setdefault("className", raw.class_name)
    return make_object(
        raw.unique_id,
        raw.name,
        display_name=raw.display_name,
        object_type=object_type,
        position=raw.position,
        rotation=raw.rotation,
        scale=raw.scale,
        layer=raw.layer,
        zone=raw.zone,
        properties=properties,
        tags=generate_tags(object_type.value, raw.name, raw.layer, raw.category),
    )


class SnapshotBuilder:
    """Builds snapshots through the context cache.

    Args:
        cache: Shared context cache.
        monitor: Optional performance monitor.
    """

    def __init__(self, cache: ContextCache, monitor: Optional[PerformanceMonitor] = None) -> None:
        self.cache = cache
        self._monitor = monitor
        self._builds = 0
        self._lock = threading.Lock()

    def build(self, source: SceneSource) -> SceneSnapshot:
        """Return a snapshot of the whole galaxy, cached when still valid."""
        return self._build(source, None)

    def build_zone(self, source: SceneSource, zone: str) -> SceneSnapshot:
        """Return a snapshot holding only the objects of *zone*."""
        return self._build(source, zone)

    def invalidate(self, galaxy_name: str) -> int:
        return self.cache.invalidate_scope(galaxy_name)

    def invalidate_zone(self, galaxy_name: str, zone: str) -> int:
        return self.cache.invalidate_sub_scope(galaxy_name, zone)

    def clear(self) -> None:
        self.cache.clear()

    def statistics(self) -> dict:
        stats = self.cache.statistics()
        with self._lock:
            stats["snapshots_built"] = self._builds
        return stats

    def _build(self, source: SceneSource, zone: Optional[str]) -> SceneSnapshot:
        galaxy = source.galaxy_name
        expected = source.object_count(zone)
        revision = getattr(source, "revision", None)

        cached = self.cache.get(galaxy, zone, expected, revision)
        if cached is not None:
            return cached

        raws = source.iter_objects()
        if zone is not None:
            raws = (r for r in raws if r.zone == zone)

        if self._monitor is not None:
            with self._monitor.time_operation("snapshot.build"):
                snapshot = SceneSnapshot(galaxy, zone, [to_record(r) for r in raws], revision)
        else:
            snapshot = SceneSnapshot(galaxy, zone, [to_record(r) for r in raws], revision)

        self.cache.put(galaxy, zone, snapshot, revision)
        with self._lock:
            self._builds += 1
        logger.info("Built snapshot %s/%s with %d objects", galaxy, zone or "full", len(snapshot))
        return snapshot


class InMemoryScene:
    """Mutable object store implementing ``SceneSource``.

    Every mutation bumps ``revision``, so cached snapshots are also
    invalidated by in-place edits that keep the object count unchanged.
    """

    def __init__(self, galaxy_name: str, zone_name: Optional[str] = None,
                 objects: Iterable[RawObject] = ()) -> None:
        self._galaxy_name = galaxy_name
        self._zone_name = zone_name
        self._lock = threading.Lock()
        self._objects: dict[int, RawObject] = {}
        self._revision = 0
        self._ids = itertools.count(1)
        for obj in objects:
            self._objects[obj.unique_id] = obj

    @property
    def galaxy_name(self) -> str:
        return self._galaxy_name

    @property
    def zone_name(self) -> Optional[str]:
        return self._zone_name

    @property
    def revision(self) -> int:
        return self._revision

    def iter_objects(self) -> Iterator[RawObject]:
        with self._lock:
            return iter(list(self._objects.values()))

    def object_count(self, zone: Optional[str] = None) -> int:
        with self._lock:
            if zone is None:
                return len(self._objects)
            return sum(1 for o in self._objects.values() if o.zone == zone)

    def get(self, unique_id: int) -> Optional[RawObject]:
        with self._lock:
            return self._objects.get(unique_id)

    def next_id(self) -> int:
        with self._lock:
            candidate = next(self._ids)
            while candidate in self._objects:
                candidate = next(self._ids)
            return candidate

    def add(self, obj: RawObject) -> None:
        with self._lock:
            self._objects[obj.unique_id] = obj
            self._revision += 1

    def update(self, unique_id: int, **changes: Any) -> RawObject:
        with self._lock:
            obj = replace(self._objects[unique_id], **changes)
            self._objects[unique_id] = obj
            self._revision += 1
            return obj

    def remove(self, unique_id: int) -> bool:
        with self._lock:
            if self._objects.pop(unique_id, None) is None:
                return False
            self._revision += 1
            return True

    def replace_all(self, objects: Iterable[RawObject], galaxy_name: Optional[str] = None,
                    zone_name: Optional[str] = None) -> None:
        with self._lock:
            if galaxy_name:
                self._galaxy_name = galaxy_name
            self._zone_name = zone_name
            self._objects = {o.unique_id: o for o in objects}
            self._revision += 1
