"""Scene snapshot model: immutable records of the objects in a galaxy.

A ``SceneSnapshot`` is a point-in-time view of every object in a galaxy
(or one of its zones).  It is built once, indexed once and never mutated;
when the scene changes a new snapshot replaces it.

Usage::

    snap = SceneSnapshot("FloaterLandGalaxy", None, [
        make_object(1, "Kuribo", object_type="enemy", position=(0, 0, 100)),
    ])
    snap.objects_by_type["enemy"]
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from .spatial_index import SpatialIndex


class ObjectClass(str, Enum):
    """Classification of a scene object, derived from its editor class."""
    LEVEL = "level"
    AREA = "area"
    CAMERA = "camera"
    CHILD = "child"
    CUTSCENE = "cutscene"
    DEBUG = "debug"
    GRAVITY = "gravity"
    MAPPART = "mappart"
    POSITION = "position"
    SOUND = "sound"
    STAGE = "stage"
    START = "start"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def to_list(self) -> list[float]:
        return [self.x, self.y, self.z]


ORIGIN = Vec3()
UNIT_SCALE = Vec3(1.0, 1.0, 1.0)

VecLike = Union[Vec3, Iterable[float], Mapping[str, float], None]


def to_vec3(value: VecLike, default: Vec3 = ORIGIN) -> Vec3:
    """Coerce a tuple/list, ``{"x","y","z"}`` dict or ``Vec3`` into a ``Vec3``."""
    if value is None:
        return default
    if isinstance(value, Vec3):
        return value
    if isinstance(value, Mapping):
        return Vec3(
            float(value.get("x", default.x)),
            float(value.get("y", default.y)),
            float(value.get("z", default.z)),
        )
    coords = [float(v) for v in value]
    if len(coords) != 3:
        raise ValueError(f"Expected 3 components, got {len(coords)}")
    return Vec3(*coords)


@dataclass(frozen=True, eq=False)
class ObjectRecord:
    """One object's identity, transform, classification and metadata."""
    unique_id: int
    name: str = ""
    display_name: str = ""
    object_type: str = ObjectClass.UNKNOWN.value
    position: Vec3 = ORIGIN
    rotation: Vec3 = ORIGIN
    scale: Vec3 = UNIT_SCALE
    layer: str = ""
    zone: str = ""
    properties: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    tags: tuple[str, ...] = ()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


def make_object(
    unique_id: int,
    name: str = "",
    *,
    display_name: str = "",
    object_type: Union[str, ObjectClass] = ObjectClass.UNKNOWN,
    position: VecLike = None,
    rotation: VecLike = None,
    scale: VecLike = None,
    layer: str = "",
    zone: str = "",
    properties: Optional[Mapping[str, Any]] = None,
    tags: Optional[Iterable[str]] = None,
) -> ObjectRecord:
    """Build a validated, frozen ``ObjectRecord``.

    Vectors may be given as tuples, lists or ``{"x","y","z"}`` dicts.
    The property map is copied into a read-only view; tags keep their
    source order.

    Raises:
        ValueError: If *unique_id* is not an integer or a vector is malformed.
    """
    if isinstance(unique_id, bool) or not isinstance(unique_id, int):
        raise ValueError(f"unique_id must be an int, got {unique_id!r}")
    if isinstance(object_type, ObjectClass):
        object_type = object_type.value
    return ObjectRecord(
        unique_id=unique_id,
        name=name or "",
        display_name=display_name or "",
        object_type=(object_type or ObjectClass.UNKNOWN.value),
        position=to_vec3(position),
        rotation=to_vec3(rotation),
        scale=to_vec3(scale, UNIT_SCALE),
        layer=layer or "",
        zone=zone or "",
        properties=MappingProxyType(dict(properties or {})),
        tags=tuple(tags or ()),
    )


class SceneSnapshot:
    """Immutable, indexed collection of ``ObjectRecord``.

    Indices are computed once in the constructor.  Records with an empty
    name are left out of the name index.
    """

    __slots__ = ("_galaxy_name", "_zone_name", "_objects", "_by_id",
                 "_by_type", "_by_name", "_spatial", "_revision", "__weakref__")

    def __init__(
        self,
        galaxy_name: str,
        zone_name: Optional[str],
        objects: Iterable[ObjectRecord],
        revision: Optional[int] = None,
    ) -> None:
        self._galaxy_name = galaxy_name
        self._zone_name = zone_name
        self._revision = revision
        self._objects: tuple[ObjectRecord, ...] = tuple(objects)

        by_id: dict[int, ObjectRecord] = {}
        by_type: dict[str, list[ObjectRecord]] = {}
        by_name: dict[str, list[ObjectRecord]] = {}
        for obj in self._objects:
            by_id.setdefault(obj.unique_id, obj)
            by_type.setdefault(obj.object_type, []).append(obj)
            if obj.name:
                by_name.setdefault(obj.name, []).append(obj)

        self._by_id = MappingProxyType(by_id)
        self._by_type = MappingProxyType({k: tuple(v) for k, v in by_type.items()})
        self._by_name = MappingProxyType({k: tuple(v) for k, v in by_name.items()})
        self._spatial = SpatialIndex(self._objects)

    @property
    def galaxy_name(self) -> str:
        return self._galaxy_name

    @property
    def zone_name(self) -> Optional[str]:
        return self._zone_name

    @property
    def revision(self) -> Optional[int]:
        """Revision of the source scene this was built from, if it tracks one."""
        return self._revision

    @property
    def objects(self) -> tuple[ObjectRecord, ...]:
        return self._objects

    @property
    def objects_by_type(self) -> Mapping[str, tuple[ObjectRecord, ...]]:
        return self._by_type

    @property
    def objects_by_name(self) -> Mapping[str, tuple[ObjectRecord, ...]]:
        return self._by_name

    @property
    def object_count(self) -> int:
        return len(self._objects)

    def get(self, unique_id: int) -> Optional[ObjectRecord]:
        return self._by_id.get(unique_id)

    def __contains__(self, unique_id: object) -> bool:
        return unique_id in self._by_id

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self):
        return iter(self._objects)

    @property
    def spatial_index(self) -> SpatialIndex:
        return self._spatial

    def objects_near(self, origin: Vec3, max_distance: float) -> list[ObjectRecord]:
        """Return records whose position is within *max_distance* of *origin*."""
        return self._spatial.objects_near(origin, max_distance)

    def objects_in_bounds(self, lower: Vec3, upper: Vec3) -> list[ObjectRecord]:
        return self._spatial.objects_in_bounds(lower, upper)

    def closest_object(self, origin: Vec3, max_distance: float = math.inf) -> Optional[ObjectRecord]:
        return self._spatial.closest_object(origin, max_distance)

    def __repr__(self) -> str:
        return (
            f"SceneSnapshot(galaxy={self._galaxy_name!r}, zone={self._zone_name!r}, "
            f"objects={len(self._objects)})"
        )
