"""Response parser: backend text to validated ``ObjectTransformation`` lists.

Backends are asked for::

    {"transformations": [{"objectId": 12, "type": "TRANSLATE",
                          "x": 0, "y": 100, "z": 0, "description": "..."}],
     "feedback": "Moved the goomba up"}

Entries that fail the schema, reference unknown objects, or carry
out-of-range numbers are skipped with a warning rather than failing the
whole response.  Text that holds no usable JSON object raises
``ProviderError(INVALID_RESPONSE)`` so the orchestrator can fail over.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional

import jsonschema

from .errors import ProviderError, ProviderErrorKind
from .scene_model import SceneSnapshot, Vec3
from .transformations import ObjectTransformation, ProviderResponse, TransformKind

logger = logging.getLogger("galaxyai.parser")

MAX_TRANSFORMATIONS = 1000
MAX_ABS_VALUE = 1_000_000.0

TRANSFORMATION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["type"],
    "properties": {
        "objectId": {"type": ["integer", "string"]},
        "type": {"type": "string", "minLength": 1},
        "x": {"type": "number"},
        "y": {"type": "number"},
        "z": {"type": "number"},
        "properties": {"type": "object"},
        "objectType": {"type": "string"},
        "description": {"type": "string"},
    },
}

_validator = jsonschema.Draft7Validator(TRANSFORMATION_SCHEMA)

_FENCE_PATTERNS = [
    re.compile(r"```json\s*([\s\S]*?)\s*```"),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
]
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def extract_json(text: str) -> Optional[dict]:
    """Extract a JSON object from text that may contain markdown or chatter.

    Tries, in order: the whole text, fenced code blocks, and the slice from
    the first ``{`` to the last ``}``; each candidate is retried once with
    trailing commas removed.
    """
    if not text or not text.strip():
        return None

    candidates = [text.strip()]
    for pattern in _FENCE_PATTERNS:
        match = pattern.search(text)
        if match:
            candidates.append(match.group(1))
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        for attempt in (candidate, _TRAILING_COMMA.sub(r"\1", candidate)):
            try:
                parsed = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed
    return None


def _vector(entry: dict) -> Optional[Vec3]:
    values = []
    for axis in ("x", "y", "z"):
        v = entry.get(axis, 0)
        if isinstance(v, bool):
            return None
        try:
            v = float(v)
        except OverflowError:
            return None
        if not math.isfinite(v) or abs(v) >= MAX_ABS_VALUE:
            return None
        values.append(v)
    return Vec3(*values)


def _object_id(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class ResponseParser:
    """Parses backend text against the snapshot the prompt was built from."""

    def parse(self, text: str, snapshot: SceneSnapshot, provider: Optional[str] = None) -> ProviderResponse:
        data = extract_json(text)
        if data is None:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "Response contains no JSON object", provider
            )
        entries = data.get("transformations")
        if not isinstance(entries, list):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE,
                "Response JSON has no 'transformations' list",
                provider,
            )

        warnings: list[str] = []
        if len(entries) > MAX_TRANSFORMATIONS:
            warnings.append(
                f"Response has {len(entries)} transformations; only the first "
                f"{MAX_TRANSFORMATIONS} are used"
            )
            entries = entries[:MAX_TRANSFORMATIONS]

        transformations: list[ObjectTransformation] = []
        for i, entry in enumerate(entries):
            tf, problem = self._parse_entry(entry, snapshot)
            if tf is None:
                warnings.append(f"Skipped transformation #{i}: {problem}")
                logger.warning("Skipped transformation #%d: %s", i, problem)
            else:
                transformations.append(tf)

        feedback = str(data.get("feedback") or data.get("message") or "")
        errors = [] if transformations else ["No valid transformations in response"]
        return ProviderResponse(
            success=bool(transformations),
            transformations=transformations,
            feedback=feedback,
            raw_response=text,
            provider=provider,
            errors=errors,
            warnings=warnings,
        )

    def _parse_entry(self, entry: Any, snapshot: SceneSnapshot) -> tuple[Optional[ObjectTransformation], str]:
        if not isinstance(entry, dict):
            return None, "entry is not an object"

        schema_errors = sorted(_validator.iter_errors(entry), key=lambda e: list(e.path))
        if schema_errors:
            err = schema_errors[0]
            path = ".".join(str(p) for p in err.path) or "(root)"
            return None, f"[{path}] {err.message}"

        try:
            kind = TransformKind[entry["type"].strip().upper()]
        except KeyError:
            return None, f"unknown transformation type {entry['type']!r}"

        description = entry.get("description", "")

        if kind == TransformKind.ADD:
            vec = _vector(entry)
            if vec is None:
                return None, "invalid position values"
            object_type = entry.get("objectType") or "unknown"
            return ObjectTransformation.add_object(object_type, vec, description), ""

        object_id = _object_id(entry.get("objectId"))
        if object_id is None:
            return None, "missing or invalid objectId"
        if object_id not in snapshot:
            return None, f"object {object_id} does not exist"

        if kind == TransformKind.PROPERTY_CHANGE:
            changes = entry.get("properties") or {}
            if not changes:
                return None, "property change without properties"
            return ObjectTransformation.change_property(object_id, changes, description), ""

        if kind == TransformKind.BATCH_OPERATION:
            return ObjectTransformation(kind, object_id, description=description), ""

        vec = _vector(entry)
        if vec is None:
            return None, "vector values must be finite and below 1e6"
        return ObjectTransformation(kind, object_id, vec, description=description), ""
