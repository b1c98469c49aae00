"""Transformation records handed from the command layer to the scene applier."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .scene_model import Vec3


class TransformKind(str, Enum):
    TRANSLATE = "TRANSLATE"
    ROTATE = "ROTATE"
    SCALE = "SCALE"
    SET_POSITION = "SET_POSITION"
    SET_ROTATION = "SET_ROTATION"
    SET_SCALE = "SET_SCALE"
    ADD = "ADD"
    PROPERTY_CHANGE = "PROPERTY_CHANGE"
    BATCH_OPERATION = "BATCH_OPERATION"

    @property
    def is_vector(self) -> bool:
        return self in _VECTOR_KINDS


_VECTOR_KINDS = {
    TransformKind.TRANSLATE,
    TransformKind.ROTATE,
    TransformKind.SCALE,
    TransformKind.SET_POSITION,
    TransformKind.SET_ROTATION,
    TransformKind.SET_SCALE,
    TransformKind.ADD,
}


@dataclass(frozen=True)
class ObjectTransformation:
    """One change to apply to the scene.

    ``object_id`` is ``None`` for ``ADD``, where ``add_object_type`` names
    the object class to create and ``vector`` its position.
    """
    kind: TransformKind
    object_id: Optional[int] = None
    vector: Optional[Vec3] = None
    property_changes: dict[str, Any] = field(default_factory=dict)
    add_object_type: Optional[str] = None
    description: str = ""

    @classmethod
    def translate(cls, object_id: int, delta: Vec3, description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.TRANSLATE, object_id, delta,
                   description=description or f"Move object {object_id}")

    @classmethod
    def rotate(cls, object_id: int, delta: Vec3, description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.ROTATE, object_id, delta,
                   description=description or f"Rotate object {object_id}")

    @classmethod
    def scale(cls, object_id: int, factor: Vec3, description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.SCALE, object_id, factor,
                   description=description or f"Scale object {object_id}")

    @classmethod
    def set_position(cls, object_id: int, position: Vec3, description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.SET_POSITION, object_id, position,
                   description=description or f"Place object {object_id}")

    @classmethod
    def add_object(cls, object_type: str, position: Vec3, description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.ADD, None, position, add_object_type=object_type,
                   description=description or f"Add {object_type}")

    @classmethod
    def change_property(cls, object_id: int, changes: dict[str, Any],
                        description: str = "") -> "ObjectTransformation":
        return cls(TransformKind.PROPERTY_CHANGE, object_id, None, dict(changes),
                   description=description or f"Change properties of object {object_id}")

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "objectId": self.object_id,
            "description": self.description,
        }
        if self.vector is not None:
            data["vector"] = self.vector.to_dict()
        if self.property_changes:
            data["propertyChanges"] = dict(self.property_changes)
        if self.add_object_type:
            data["addObjectType"] = self.add_object_type
        return data


@dataclass
class ProviderResponse:
    """Parsed output of one backend call."""
    success: bool
    transformations: list[ObjectTransformation] = field(default_factory=list)
    feedback: str = ""
    raw_response: str = ""
    provider: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class CommandResult:
    success: bool
    transformations: list[ObjectTransformation] = field(default_factory=list)
    user_feedback: str = ""
    raw_response: str = ""
    provider: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    processing_time_ms: float = 0.0
    used_fallback_parser: bool = False

    def summary(self) -> str:
        if not self.success:
            first = self.errors[0] if self.errors else "unknown error"
            return f"Command failed: {first}"
        text = f"Applied {len(self.transformations)} transformation(s)"
        if self.warnings:
            text += f" with {len(self.warnings)} warning(s)"
        return f"{text} in {self.processing_time_ms:.0f} ms"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "transformations": [t.to_dict() for t in self.transformations],
            "userFeedback": self.user_feedback,
            "rawResponse": self.raw_response,
            "provider": self.provider,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
            "usedFallbackParser": self.used_fallback_parser,
            "processingTimeMs": round(self.processing_time_ms, 2),
            "summary": self.summary(),
        }
