"""Object resolver: turns textual object references into ranked matches.

Resolution runs several independent matching strategies over a
``SceneSnapshot`` and merges their candidates, keeping the best score per
object.  The resolver never raises for a miss; it returns a failed
``ResolutionResult`` and lets the caller decide how to present it.

Usage::

    resolver = ObjectResolver(snapshot)
    result = resolver.resolve_multiple("all goombas")
    if result.success:
        ids = result.object_ids
"""

from __future__ import annotations

import logging
import math
import re
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Optional

from .performance import PerformanceMonitor
from .scene_model import ORIGIN, ObjectRecord, SceneSnapshot, Vec3

logger = logging.getLogger("galaxyai.resolver")

# ── Thresholds & scores ──────────────────────────────────────

NAME_SIMILARITY_THRESHOLD = 0.6
PARTIAL_MATCH_THRESHOLD = 0.4
SPATIAL_NEAR_DISTANCE = 100.0
SPATIAL_CLOSE_DISTANCE = 50.0
SPATIAL_FAR_SCALE = 200.0
DISAMBIGUATION_GAP = 0.1

EXACT_MATCH_SCORE = 1.0
PARTIAL_MATCH_SCORE = 0.8
DISPLAY_NAME_SCORE = 0.7
TYPE_MATCH_SCORE = 0.6
TAG_MATCH_SCORE = 0.5
START_POINT_SCORE = 0.9

_START_KEYWORDS = ("start", "beginning")
_SPATIAL_CONNECTOR = re.compile(r" (?:near|close|far) ")


# ── String similarity ────────────────────────────────────────

def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit insert/delete/substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(prev[j] + 1, curr[j - 1] + 1, prev[j - 1] + cost)
        prev = curr
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """Return ``1 - edit_distance / max(len)``; 1.0 for equal, 0.0 if either is empty."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - edit_distance(a, b) / max(len(a), len(b))


def singular_form(word: str) -> str:
    """Naive English singular: ``ies`` → ``y``, trailing ``s`` dropped (not ``ss``)."""
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith("s") and not word.endswith("ss") and len(word) > 1:
        return word[:-1]
    return word


def _contains_either(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def _is_start_point(obj: ObjectRecord) -> bool:
    return obj.object_type == "start" or obj.has_tag("player")


# ── Result types ─────────────────────────────────────────────

@dataclass
class MatchCandidate:
    """One object matched by a reference, with a clamped confidence."""
    record: ObjectRecord
    confidence: float
    reason: str = ""

    def __post_init__(self) -> None:
        c = float(self.confidence)
        if math.isnan(c):
            c = 0.0
        self.confidence = max(0.0, min(1.0, c))

    @property
    def object_id(self) -> int:
        return self.record.unique_id

    def to_dict(self) -> dict:
        return {
            "id": self.record.unique_id,
            "name": self.record.name,
            "type": self.record.object_type,
            "confidence": round(self.confidence, 4),
            "reason": self.reason,
        }


@dataclass
class ResolutionResult:
    success: bool
    candidates: list[MatchCandidate] = field(default_factory=list)
    needs_disambiguation: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, candidates: list[MatchCandidate], needs_disambiguation: bool = False) -> "ResolutionResult":
        if not candidates:
            raise ValueError("A successful resolution needs at least one candidate")
        ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        return cls(True, ranked, needs_disambiguation, None)

    @classmethod
    def failure(cls, error: str) -> "ResolutionResult":
        return cls(False, [], False, error or "Resolution failed")

    @property
    def best(self) -> Optional[MatchCandidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def object_ids(self) -> list[int]:
        return [c.object_id for c in self.candidates]

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "candidates": [c.to_dict() for c in self.candidates],
            "needsDisambiguation": self.needs_disambiguation,
            "error": self.error,
        }


# ── Resolver ─────────────────────────────────────────────────

class ObjectResolver:
    """Multi-strategy fuzzy matcher over one immutable snapshot.

    Safe to share between threads: the snapshot is read-only and the
    optional monitor does its own locking.

    Args:
        snapshot: Scene snapshot to search.
        origin: Reference point for the "start"/"beginning" keyword.
        monitor: Optional performance monitor for timing resolutions.
    """

    def __init__(
        self,
        snapshot: SceneSnapshot,
        origin: Vec3 = ORIGIN,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.snapshot = snapshot
        self.origin = origin
        self._monitor = monitor

    # ── Public API ───────────────────────────────────────────

    def resolve(self, reference: str) -> ResolutionResult:
        """Resolve a single object reference such as ``"the red goomba"``."""
        if not reference or not reference.strip():
            return ResolutionResult.failure("Empty object reference")

        with self._timed("resolve"):
            normalized = reference.strip().lower()
            candidates: list[MatchCandidate] = []
            candidates += self._exact_name_matches(normalized)
            candidates += self._partial_name_matches(normalized)
            candidates += self._display_name_matches(normalized)
            candidates += self._type_matches(normalized)
            candidates += self._tag_matches(normalized)
            candidates += self._spatial_keyword_matches(normalized)

            ranked = self._dedupe_and_rank(candidates)
            if not ranked:
                logger.debug("No match for %r in %r", reference, self.snapshot)
                return ResolutionResult.failure(f"No objects found matching: {reference}")

            ambiguous = (
                len(ranked) >= 2
                and ranked[0].confidence - ranked[1].confidence < DISAMBIGUATION_GAP
            )
            return ResolutionResult(True, ranked, ambiguous, None)

    def resolve_multiple(self, reference: str) -> ResolutionResult:
        """Resolve phrases that may name several objects.

        Handled forms, in priority order: ``"all <type>"`` (with an
        optional, currently ignored, spatial clause), comma separated
        lists, plural nouns, and finally a plain single reference.
        """
        if not reference or not reference.strip():
            return ResolutionResult.failure("Empty object reference")

        normalized = reference.strip().lower()

        if normalized.startswith("all "):
            phrase = normalized[4:].strip()
            parts = _SPATIAL_CONNECTOR.split(phrase, maxsplit=1)
            if len(parts) == 2:
                type_phrase, spatial_phrase = parts[0].strip(), parts[1].strip()
                # Spatial narrowing is not implemented: type filter only.
                logger.info(
                    "Spatial clause %r ignored for 'all %s'", spatial_phrase, type_phrase
                )
                return self.resolve_all_of_type(type_phrase)
            return self.resolve_all_of_type(phrase)

        if "," in normalized:
            return self._resolve_list(reference)

        if normalized.endswith("s") and not normalized.endswith("ss"):
            result = self.resolve_all_of_type(singular_form(normalized))
            if result.success:
                return result
            result = self.resolve_all_of_type(normalized)
            if result.success:
                return result

        return self.resolve(reference)

    def resolve_all_of_type(self, type_phrase: str) -> ResolutionResult:
        """Select every object whose type, a tag, or its name contains *type_phrase*."""
        phrase = (type_phrase or "").strip().lower()
        if not phrase:
            return ResolutionResult.failure("Empty object reference")
        singular = singular_form(phrase) or phrase

        candidates: list[MatchCandidate] = []
        for obj in self.snapshot.objects:
            obj_type = obj.object_type.lower()
            if obj_type and (phrase in obj_type or singular in obj_type):
                candidates.append(MatchCandidate(obj, TYPE_MATCH_SCORE, "Type match"))
                continue

            tag = next(
                (t for t in obj.tags
                 if _contains_either(t.lower(), phrase) or _contains_either(t.lower(), singular)),
                None,
            )
            if tag is not None:
                candidates.append(MatchCandidate(obj, TAG_MATCH_SCORE, f"Tag match: {tag}"))
                continue

            name = obj.name.lower()
            if name and (phrase in name or singular in name):
                candidates.append(MatchCandidate(obj, PARTIAL_MATCH_SCORE, "Name contains type"))

        if not candidates:
            return ResolutionResult.failure(f"No objects found of type: {type_phrase}")
        return ResolutionResult.ok(candidates)

    def resolve_spatial(self, reference: str, origin: Vec3) -> ResolutionResult:
        """Select objects near to or far from *origin*.

        ``near``/``close`` picks everything within 100 units (closer scores
        higher); ``far``/``distant`` picks everything beyond 100 units.
        """
        if not reference or not reference.strip():
            return ResolutionResult.failure("Empty object reference")

        normalized = reference.strip().lower()
        candidates: list[MatchCandidate] = []
        with self._timed("resolve_spatial"):
            if "near" in normalized or "close" in normalized:
                for obj in self.snapshot.objects_near(origin, SPATIAL_NEAR_DISTANCE):
                    d = obj.position.distance_to(origin)
                    candidates.append(MatchCandidate(
                        obj, 1.0 - d / SPATIAL_NEAR_DISTANCE, f"Near ({d:.1f} units)"))
            elif "far" in normalized or "distant" in normalized:
                for obj in self.snapshot.objects:
                    d = obj.position.distance_to(origin)
                    if d > SPATIAL_NEAR_DISTANCE:
                        candidates.append(MatchCandidate(
                            obj, min(1.0, d / SPATIAL_FAR_SCALE), f"Far ({d:.1f} units)"))

        if not candidates:
            return ResolutionResult.failure(f"No objects found with spatial reference: {reference}")
        return ResolutionResult.ok(candidates)

    # ── Strategies ───────────────────────────────────────────

    def _exact_name_matches(self, ref: str) -> list[MatchCandidate]:
        return [
            MatchCandidate(obj, EXACT_MATCH_SCORE, "Exact name match")
            for obj in self.snapshot.objects
            if obj.name and obj.name.lower() == ref
        ]

    def _partial_name_matches(self, ref: str) -> list[MatchCandidate]:
        out = []
        for obj in self.snapshot.objects:
            name = obj.name.lower()
            if not name:
                continue
            sim = similarity(ref, name)
            if _contains_either(ref, name) and sim >= PARTIAL_MATCH_THRESHOLD:
                out.append(MatchCandidate(obj, PARTIAL_MATCH_SCORE * sim, "Partial name match"))
            elif sim >= NAME_SIMILARITY_THRESHOLD:
                out.append(MatchCandidate(obj, PARTIAL_MATCH_SCORE * sim, "Fuzzy name match"))
        return out

    def _display_name_matches(self, ref: str) -> list[MatchCandidate]:
        out = []
        for obj in self.snapshot.objects:
            display = obj.display_name.lower()
            if _contains_either(ref, display):
                out.append(MatchCandidate(
                    obj, DISPLAY_NAME_SCORE * similarity(ref, display), "Display name match"))
        return out

    def _type_matches(self, ref: str) -> list[MatchCandidate]:
        out = []
        for obj in self.snapshot.objects:
            obj_type = obj.object_type.lower()
            if _contains_either(ref, obj_type):
                out.append(MatchCandidate(
                    obj, TYPE_MATCH_SCORE * similarity(ref, obj_type), "Type match"))
        return out

    def _tag_matches(self, ref: str) -> list[MatchCandidate]:
        out = []
        for obj in self.snapshot.objects:
            for tag in obj.tags:
                tag_l = tag.lower()
                if _contains_either(ref, tag_l):
                    out.append(MatchCandidate(
                        obj, TAG_MATCH_SCORE * similarity(ref, tag_l), f"Tag match: {tag}"))
        return out

    def _spatial_keyword_matches(self, ref: str) -> list[MatchCandidate]:
        if not any(k in ref for k in _START_KEYWORDS):
            return []
        out = [
            MatchCandidate(obj, START_POINT_SCORE, "Start position")
            for obj in self.snapshot.objects
            if _is_start_point(obj)
        ]
        for obj in self.snapshot.objects_near(self.origin, SPATIAL_CLOSE_DISTANCE):
            if _is_start_point(obj):
                continue
            d = obj.position.distance_to(self.origin)
            if d < SPATIAL_CLOSE_DISTANCE:
                out.append(MatchCandidate(
                    obj, 0.5 * (1.0 - d / SPATIAL_CLOSE_DISTANCE), "Near start"))
        return out

    # ── Helpers ──────────────────────────────────────────────

    def _resolve_list(self, reference: str) -> ResolutionResult:
        merged: list[MatchCandidate] = []
        for part in reference.split(","):
            if not part.strip():
                continue
            result = self.resolve(part)
            if result.success:
                merged.extend(result.candidates)
            else:
                logger.debug("List segment %r unresolved: %s", part.strip(), result.error)

        if not merged:
            return ResolutionResult.failure(f"No objects found in list: {reference}")
        return ResolutionResult.ok(merged)

    @staticmethod
    def _dedupe_and_rank(candidates: list[MatchCandidate]) -> list[MatchCandidate]:
        best: dict[int, MatchCandidate] = {}
        for cand in candidates:
            current = best.get(cand.object_id)
            if current is None or cand.confidence > current.confidence:
                best[cand.object_id] = cand
        return sorted(best.values(), key=lambda c: c.confidence, reverse=True)

    def _timed(self, operation: str):
        if self._monitor is None:
            return nullcontext()
        return self._monitor.time_operation(operation)

