"""Provider base class: shared prompt building, parsing and error mapping.

A provider turns a prompt into text.  ``process_command`` wraps that with
the scene projection on the way in and the response parser on the way
out, so concrete providers only implement the transport.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from ..backend.errors import ProviderError, ProviderErrorKind, classify_message, kind_for_status
from ..backend.projection import Projector
from ..backend.response_parser import ResponseParser
from ..backend.scene_model import SceneSnapshot
from ..backend.transformations import ProviderResponse

logger = logging.getLogger("galaxyai.providers")

ChunkCallback = Callable[[str], None]

DEFAULT_MAX_OBJECTS = 200

SYSTEM_PROMPT = """You are an assistant for a Super Mario Galaxy level editor.
You receive the current galaxy objects as JSON and a user command.
Translate the command into transformations of existing objects.

Coordinate system: +X is right, -X is left, +Y is up, -Y is down,
+Z is forward, -Z is backward.  Rotations are in degrees.

Allowed transformation types: TRANSLATE (relative move), ROTATE (relative
degrees), SCALE (multiplier), SET_POSITION, SET_ROTATION, SET_SCALE,
ADD (new object; give "objectType" and the position), PROPERTY_CHANGE
(give "properties").

Respond with ONLY this JSON format, no markdown:
{"transformations": [{"objectId": <id>, "type": "<TYPE>", "x": 0, "y": 0, "z": 0,
  "description": "<what this does>"}],
 "feedback": "<one sentence for the user>"}
Only use objectId values that appear in the scene."""


class ProviderId(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: str = ""
    supports_vision: bool = False
    max_tokens: int = 4096
    input_cost_per_1k: float = 0.0
    output_cost_per_1k: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "supportsVision": self.supports_vision,
            "maxTokens": self.max_tokens,
            "inputCostPer1k": self.input_cost_per_1k,
            "outputCostPer1k": self.output_cost_per_1k,
        }


def build_command_prompt(command: str, scene: dict) -> str:
    return (
        f"Current galaxy objects:\n{json.dumps(scene, ensure_ascii=False)}\n\n"
        f"User command: {command}\n\n"
        "Return ONLY the JSON object."
    )


def classify_sdk_error(
    exc: Exception,
    provider: str,
    *,
    timeout_error: type,
    connection_error: type,
    status_error: type,
) -> ProviderError:
    """Map an ``anthropic``/``openai`` SDK exception onto the error taxonomy.

    Both SDKs share the same hierarchy (timeout ⊂ connection error, and a
    status error carrying ``status_code``), so the classes are passed in.
    """
    if isinstance(exc, timeout_error):
        kind = ProviderErrorKind.TIMEOUT_ERROR
    elif isinstance(exc, connection_error):
        kind = ProviderErrorKind.NETWORK_ERROR
    elif isinstance(exc, status_error):
        kind = kind_for_status(getattr(exc, "status_code", 0))
    else:
        kind = classify_message(str(exc))
    return ProviderError(kind, str(exc), provider)


class BaseProvider(ABC):
    """Common behaviour of all language-model backends.

    Args:
        parser: Response parser; a default one is created when omitted.
        projector: Builds the compact scene view sent with each prompt.
        max_objects: Object cap for the prompt's scene view.
    """

    provider_id: ProviderId
    display_name: str = ""
    supports_streaming: bool = False

    def __init__(
        self,
        parser: Optional[ResponseParser] = None,
        projector: Optional[Projector] = None,
        max_objects: int = DEFAULT_MAX_OBJECTS,
    ) -> None:
        self.parser = parser or ResponseParser()
        self.projector = projector or Projector()
        self.max_objects = max_objects

    @property
    def name(self) -> str:
        return self.display_name or self.provider_id.value

    # ── Transport (implemented by subclasses) ────────────────

    @abstractmethod
    def configure(self, settings: dict[str, Any]) -> None:
        """Apply settings such as ``api_key``, ``model`` or ``url``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when the provider is configured well enough to be tried."""

    @abstractmethod
    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Send one prompt and return the full response text.

        Raises:
            ProviderError: On any classified transport or API failure.
        """

    def stream(self, prompt: str, system: str, on_chunk: ChunkCallback) -> str:
        raise ProviderError(
            ProviderErrorKind.CONFIGURATION_ERROR, "Streaming is not supported", self.name
        )

    @abstractmethod
    def available_models(self) -> list[ModelInfo]:
        ...

    @abstractmethod
    def configuration_status(self) -> str:
        ...

    # ── Command processing ───────────────────────────────────

    def build_prompt(self, command: str, snapshot: SceneSnapshot) -> str:
        scene = self.projector.project_for_ai(snapshot, self.max_objects)
        return build_command_prompt(command, scene)

    def process_command(self, command: str, snapshot: SceneSnapshot) -> ProviderResponse:
        self._require_available()
        text = self.complete(self.build_prompt(command, snapshot), SYSTEM_PROMPT)
        return self.parser.parse(text, snapshot, self.name)

    def process_streaming_command(
        self, command: str, snapshot: SceneSnapshot, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        self._require_available()
        if not self.supports_streaming:
            raise ProviderError(
                ProviderErrorKind.CONFIGURATION_ERROR, "Streaming is not supported", self.name
            )
        text = self.stream(self.build_prompt(command, snapshot), SYSTEM_PROMPT, on_chunk)
        return self.parser.parse(text, snapshot, self.name)

    def test_connection(self) -> bool:
        """Send a trivial prompt; True if the backend answered."""
        if not self.is_available():
            return False
        try:
            self.complete('Reply with {"ok": true}', "Reply with JSON only.")
            return True
        except ProviderError as exc:
            logger.warning("Connection test for %s failed: %s", self.name, exc)
            return False

    def status(self) -> dict:
        return {
            "id": self.provider_id.value,
            "name": self.name,
            "available": self.is_available(),
            "supportsStreaming": self.supports_streaming,
            "status": self.configuration_status(),
        }

    def _require_available(self) -> None:
        if not self.is_available():
            raise ProviderError(
                ProviderErrorKind.CONFIGURATION_ERROR, "Provider is not configured", self.name
            )


def classify_http_error(exc: httpx.HTTPError, provider: str) -> ProviderError:
    """Map an ``httpx`` failure onto the error taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        kind = ProviderErrorKind.TIMEOUT_ERROR
    elif isinstance(exc, httpx.HTTPStatusError):
        kind = kind_for_status(exc.response.status_code)
    elif isinstance(exc, httpx.TransportError):
        kind = ProviderErrorKind.NETWORK_ERROR
    else:
        kind = classify_message(str(exc))
    return ProviderError(kind, str(exc) or type(exc).__name__, provider)
