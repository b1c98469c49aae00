"""Anthropic Claude provider."""

import logging
from typing import Any, Optional

import anthropic

from ..backend import config
from ..backend.errors import ProviderError, ProviderErrorKind
from .base import SYSTEM_PROMPT, BaseProvider, ChunkCallback, ModelInfo, ProviderId, classify_sdk_error

logger = logging.getLogger("galaxyai.providers.claude")

CLAUDE_MODELS = [
    ModelInfo("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5",
              "Balanced model for everyday editing", True, 8192, 0.003, 0.015),
    ModelInfo("claude-opus-4-1-20250805", "Claude Opus 4.1",
              "Most capable model for complex scenes", True, 8192, 0.015, 0.075),
    ModelInfo("claude-3-5-haiku-20241022", "Claude Haiku 3.5",
              "Fast, low cost model", False, 8192, 0.0008, 0.004),
]


class ClaudeProvider(BaseProvider):
    provider_id = ProviderId.CLAUDE
    display_name = "Claude"
    supports_streaming = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = config.REQUEST_TIMEOUT,
        max_tokens: int = config.MAX_TOKENS,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        self.model = model or config.CLAUDE_MODEL
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client: Optional[anthropic.Anthropic] = None

    def configure(self, settings: dict[str, Any]) -> None:
        if "api_key" in settings:
            self.api_key = settings["api_key"] or ""
            self._client = None
        if settings.get("model"):
            self.model = settings["model"]

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        self._require_available()
        try:
            response = self._get_client().messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise self._classify(e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty response", self.name)
        return text

    def stream(self, prompt: str, system: str, on_chunk: ChunkCallback) -> str:
        self._require_available()
        parts: list[str] = []
        try:
            with self._get_client().messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                for text in stream.text_stream:
                    parts.append(text)
                    on_chunk(text)
        except anthropic.APIError as e:
            raise self._classify(e) from e
        return "".join(parts)

    def available_models(self) -> list[ModelInfo]:
        return list(CLAUDE_MODELS)

    def configuration_status(self) -> str:
        if not self.api_key:
            return "Not configured - API key required"
        return f"Ready - Model: {self.model}"

    def _classify(self, exc: anthropic.APIError) -> ProviderError:
        err = classify_sdk_error(
            exc,
            self.name,
            timeout_error=anthropic.APITimeoutError,
            connection_error=anthropic.APIConnectionError,
            status_error=anthropic.APIStatusError,
        )
        logger.warning("Claude request failed: %s", err)
        return err
