"""Template command parser: pattern-matched commands that need no AI backend.

Used when every provider is unavailable or returned nothing usable.
Supported forms::

    move the goomba 100 units up
    move the goomba up 100 units
    move coin1 to position 0, 200, -50
    rotate all platforms 90 degrees
    scale the coin by 2x
    add a coin at 0, 100, 0
    add a coin above the platform
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .object_resolver import ObjectResolver, singular_form
from .scene_model import ObjectRecord, SceneSnapshot, Vec3
from .transformations import ObjectTransformation

logger = logging.getLogger("galaxyai.templates")

_NUM = r"(-?\d+(?:\.\d+)?)"

MOVE_PATTERN = re.compile(
    r"move\s+(?:the\s+)?(.+?)\s+" + _NUM + r"\s+units?\s+(?:to\s+the\s+)?"
    r"(right|left|up|down|forward|backward)",
    re.IGNORECASE,
)
MOVE_DIRECTION_FIRST_PATTERN = re.compile(
    r"move\s+(?:the\s+)?(.+?)\s+(?:to\s+the\s+)?(right|left|up|down|forward|backward)\s+"
    + _NUM + r"\s+units?",
    re.IGNORECASE,
)
POSITION_PATTERN = re.compile(
    r"move\s+(?:the\s+)?(.+?)\s+to\s+(?:position\s+)?" + _NUM + r",?\s*" + _NUM + r",?\s*" + _NUM,
    re.IGNORECASE,
)
ROTATE_PATTERN = re.compile(
    r"rotate\s+(?:the\s+)?(.+?)\s+" + _NUM + r"\s+degrees?",
    re.IGNORECASE,
)
SCALE_PATTERN = re.compile(
    r"scale\s+(?:the\s+)?(.+?)\s+by\s+(\d+(?:\.\d+)?)x?",
    re.IGNORECASE,
)
ADD_AT_PATTERN = re.compile(
    r"add\s+(?:an?\s+|the\s+)?(.+?)\s+at\s+(?:position\s+)?" + _NUM + r",?\s*" + _NUM + r",?\s*" + _NUM,
    re.IGNORECASE,
)
ADD_RELATIVE_PATTERN = re.compile(
    r"add\s+(?:an?\s+|the\s+)?(.+?)\s+(above|below|near|behind|in front of)\s+(?:the\s+)?(.+)",
    re.IGNORECASE,
)
SPLIT_PATTERN = re.compile(r"\s*(?:;|\band then\b|\bthen\b)\s*", re.IGNORECASE)

DIRECTIONS = {
    "right": Vec3(1, 0, 0),
    "left": Vec3(-1, 0, 0),
    "up": Vec3(0, 1, 0),
    "down": Vec3(0, -1, 0),
    "forward": Vec3(0, 0, 1),
    "backward": Vec3(0, 0, -1),
}

RELATIVE_OFFSETS = {
    "above": Vec3(0, 100, 0),
    "below": Vec3(0, -100, 0),
    "near": Vec3(50, 0, 50),
    "behind": Vec3(0, 0, -100),
    "in front of": Vec3(0, 0, 100),
}

ACTION_KEYWORDS = ("move", "rotate", "scale", "add", "set", "change", "turn", "put", "place")

MAX_COMMAND_LENGTH = 500


@dataclass
class TemplateResult:
    success: bool
    transformations: list[ObjectTransformation] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def split_multi_command(command: str) -> list[str]:
    """Split ``"move x up 10 units; rotate y 90 degrees"`` into single commands."""
    return [part for part in SPLIT_PATTERN.split(command.strip()) if part]


def pre_validate(command: str) -> tuple[list[str], list[str]]:
    """Cheap checks before a command is sent anywhere.

    Returns:
        (errors, warnings)
    """
    errors: list[str] = []
    warnings: list[str] = []
    text = (command or "").strip()
    if not text:
        errors.append("Command is empty")
        return errors, warnings
    if len(text) > MAX_COMMAND_LENGTH:
        warnings.append(f"Command is longer than {MAX_COMMAND_LENGTH} characters and may be misread")
    lower = text.lower()
    if not any(re.search(rf"\b{k}\b", lower) for k in ACTION_KEYWORDS):
        warnings.append("Command has no recognized action (move, rotate, scale, add)")
    return errors, warnings


def _is_multi_reference(ref: str) -> bool:
    lower = ref.strip().lower()
    return (
        lower.startswith("all ")
        or "," in lower
        or (lower.endswith("s") and not lower.endswith("ss"))
    )


class TemplateCommandParser:
    """Parses the fixed command forms against one snapshot."""

    def __init__(self, resolver: ObjectResolver) -> None:
        self.resolver = resolver

    @property
    def snapshot(self) -> SceneSnapshot:
        return self.resolver.snapshot

    def parse(self, command: str) -> TemplateResult:
        result = TemplateResult(success=False)
        for part in split_multi_command(command):
            self._parse_single(part, result)
        result.success = bool(result.transformations)
        if not result.success and not result.errors:
            result.errors.append(f"Could not understand command: {command}")
        return result

    # ── Single command ───────────────────────────────────────

    def _parse_single(self, command: str, result: TemplateResult) -> None:
        text = command.strip()

        m = POSITION_PATTERN.search(text)
        if m:
            target = Vec3(float(m.group(2)), float(m.group(3)), float(m.group(4)))
            for obj in self._targets(m.group(1), result):
                result.transformations.append(ObjectTransformation.set_position(
                    obj.unique_id, target, f"Place {obj.name} at {target.to_list()}"))
            return

        m = MOVE_PATTERN.search(text)
        if m:
            self._move(m.group(1), float(m.group(2)), m.group(3), result)
            return
        m = MOVE_DIRECTION_FIRST_PATTERN.search(text)
        if m:
            self._move(m.group(1), float(m.group(3)), m.group(2), result)
            return

        m = ROTATE_PATTERN.search(text)
        if m:
            degrees = float(m.group(2))
            for obj in self._targets(m.group(1), result):
                result.transformations.append(ObjectTransformation.rotate(
                    obj.unique_id, Vec3(0, degrees, 0), f"Rotate {obj.name} by {degrees:g} degrees"))
            return

        m = SCALE_PATTERN.search(text)
        if m:
            factor = float(m.group(2))
            for obj in self._targets(m.group(1), result):
                result.transformations.append(ObjectTransformation.scale(
                    obj.unique_id, Vec3(factor, factor, factor), f"Scale {obj.name} by {factor:g}x"))
            return

        m = ADD_AT_PATTERN.search(text)
        if m:
            object_type = singular_form(m.group(1).strip().lower())
            position = Vec3(float(m.group(2)), float(m.group(3)), float(m.group(4)))
            result.transformations.append(ObjectTransformation.add_object(
                object_type, position, f"Add {object_type} at {position.to_list()}"))
            return

        m = ADD_RELATIVE_PATTERN.search(text)
        if m:
            object_type = singular_form(m.group(1).strip().lower())
            relation = m.group(2).lower()
            anchors = self._targets(m.group(3), result, single=True)
            if anchors:
                base, offset = anchors[0].position, RELATIVE_OFFSETS[relation]
                position = Vec3(base.x + offset.x, base.y + offset.y, base.z + offset.z)
                result.transformations.append(ObjectTransformation.add_object(
                    object_type, position, f"Add {object_type} {relation} {anchors[0].name}"))
            return

        result.errors.append(f"Could not understand command: {command}")

    def _move(self, ref: str, amount: float, direction: str, result: TemplateResult) -> None:
        unit = DIRECTIONS[direction.lower()]
        delta = Vec3(unit.x * amount, unit.y * amount, unit.z * amount)
        for obj in self._targets(ref, result):
            result.transformations.append(ObjectTransformation.translate(
                obj.unique_id, delta, f"Move {obj.name} {amount:g} units {direction.lower()}"))

    def _targets(self, ref: str, result: TemplateResult, single: bool = False) -> list[ObjectRecord]:
        ref = ref.strip()
        multi = not single and _is_multi_reference(ref)
        resolution = self.resolver.resolve_multiple(ref) if multi else self.resolver.resolve(ref)
        if not resolution.success:
            result.errors.append(resolution.error or f"No objects found matching: {ref}")
            return []
        if multi:
            # comma lists may name the same object twice; first mention wins
            return list({c.object_id: c.record for c in resolution.candidates}.values())

        best = resolution.candidates[0]
        if resolution.needs_disambiguation:
            others = ", ".join(c.record.name for c in resolution.candidates[1:4])
            result.warnings.append(
                f"'{ref}' is ambiguous (also matches {others}); using {best.record.name}"
            )
        return [best.record]


def parse_command(command: str, snapshot: SceneSnapshot,
                  resolver: Optional[ObjectResolver] = None) -> TemplateResult:
    """Convenience wrapper: parse *command* against *snapshot*."""
    return TemplateCommandParser(resolver or ObjectResolver(snapshot)).parse(command)
