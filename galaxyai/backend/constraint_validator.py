"""Constraint validation for transformations before they reach the scene.

Problems are collected, not raised: the caller sees every error and
warning at once and decides whether to apply the transformation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .scene_model import ObjectRecord, Vec3
from .transformations import ObjectTransformation, TransformKind

MAX_COORDINATE = 1_000_000.0
LARGE_COORDINATE = 100_000.0
MIN_SCALE = 0.001
MAX_SCALE = 1000.0
MAX_ROTATION = 360.0
DEEP_Y = -10_000.0
HIGH_Y = 50_000.0
MAX_STRING_LENGTH = 1000
MAX_SWITCH_ID = 999


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def combine(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(self.errors + other.errors, self.warnings + other.warnings)


def _non_finite(v: Vec3) -> bool:
    return not v.is_finite()


def validate_position(pos: Vec3, obj: Optional[ObjectRecord] = None) -> ValidationResult:
    result = ValidationResult()
    if _non_finite(pos):
        result.errors.append("Position contains invalid values (NaN or infinity)")
        return result
    if any(abs(c) > MAX_COORDINATE for c in pos.to_list()):
        result.errors.append(f"Position exceeds the coordinate limit of {MAX_COORDINATE:g}")
    elif any(abs(c) > LARGE_COORDINATE for c in pos.to_list()):
        result.warnings.append("Position is very far from the origin and may be unreachable")

    if pos.y < DEEP_Y:
        result.warnings.append("Position is far below the stage and may be out of bounds")
    elif pos.y > HIGH_Y:
        result.warnings.append("Position is very high above the stage")

    if obj is not None and obj.object_type == "start" and pos.y < 0:
        result.warnings.append("Start position is below ground level")
    return result


def validate_rotation(rot: Vec3) -> ValidationResult:
    result = ValidationResult()
    if _non_finite(rot):
        result.errors.append("Rotation contains invalid values (NaN or infinity)")
        return result
    if any(abs(c) > MAX_ROTATION for c in rot.to_list()):
        result.warnings.append("Rotation exceeds 360 degrees and will wrap around")
    return result


def validate_scale(scale: Vec3) -> ValidationResult:
    result = ValidationResult()
    if _non_finite(scale):
        result.errors.append("Scale contains invalid values (NaN or infinity)")
        return result
    comps = scale.to_list()
    if any(c <= 0 for c in comps):
        result.errors.append("Scale must be positive")
        return result
    if any(c < MIN_SCALE for c in comps):
        result.warnings.append("Scale is extremely small; the object may be invisible")
    if any(c > MAX_SCALE for c in comps):
        result.warnings.append("Scale is extremely large; the object may cause performance issues")
    return result


def validate_property_changes(changes: dict[str, Any]) -> ValidationResult:
    result = ValidationResult()
    if not changes:
        result.errors.append("Property change has no properties")
        return result

    for key, value in changes.items():
        if not key or not str(key).strip():
            result.errors.append("Property name cannot be empty")
            continue
        if value is None:
            result.warnings.append(f"Property '{key}' is set to null")
            continue
        if isinstance(value, float) and not math.isfinite(value):
            result.errors.append(f"Property '{key}' has an invalid numeric value")
            continue
        if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
            result.warnings.append(f"Property '{key}' is a very long string")
        result = result.combine(_check_known_property(key, value))
    return result


def _check_known_property(key: str, value: Any) -> ValidationResult:
    result = ValidationResult()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return result
    lower = key.lower()
    if lower == "l_id" and value < 0:
        result.warnings.append("Link ID (l_id) is negative")
    elif lower.startswith("sw_") and not (-1 <= value <= MAX_SWITCH_ID):
        result.warnings.append(f"Switch ID '{key}' is outside the range -1..{MAX_SWITCH_ID}")
    elif lower == "groupid" and value < -1:
        result.warnings.append("Group ID is below -1")
    return result


class ConstraintValidator:
    """Validates transformations against numeric and scene constraints."""

    def validate(self, tf: ObjectTransformation, obj: Optional[ObjectRecord] = None) -> ValidationResult:
        kind = tf.kind
        if kind.is_vector and tf.vector is None:
            return ValidationResult(errors=[f"{kind.value} transformation has no vector"])

        if kind == TransformKind.TRANSLATE:
            if _non_finite(tf.vector):
                return ValidationResult(errors=["Translation contains invalid values (NaN or infinity)"])
            if obj is None:
                return validate_position(tf.vector)
            p, d = obj.position, tf.vector
            return validate_position(Vec3(p.x + d.x, p.y + d.y, p.z + d.z), obj)
        if kind in (TransformKind.SET_POSITION, TransformKind.ADD):
            return validate_position(tf.vector, obj)
        if kind in (TransformKind.ROTATE, TransformKind.SET_ROTATION):
            return validate_rotation(tf.vector)
        if kind in (TransformKind.SCALE, TransformKind.SET_SCALE):
            return validate_scale(tf.vector)
        if kind == TransformKind.PROPERTY_CHANGE:
            return validate_property_changes(tf.property_changes)
        return ValidationResult()

    def validate_all(self, items: Iterable[tuple[ObjectTransformation, Optional[ObjectRecord]]]) -> ValidationResult:
        combined = ValidationResult()
        for tf, obj in items:
            combined = combined.combine(self.validate(tf, obj))
        return combined
