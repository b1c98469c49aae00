"""OpenAI and OpenRouter providers (OpenRouter speaks the OpenAI API)."""

import logging
from typing import Any, Optional

import openai

from ..backend import config
from ..backend.errors import ProviderError, ProviderErrorKind
from .base import SYSTEM_PROMPT, BaseProvider, ChunkCallback, ModelInfo, ProviderId, classify_sdk_error

logger = logging.getLogger("galaxyai.providers.openai")

OPENAI_MODELS = [
    ModelInfo("gpt-4o", "GPT-4o", "Flagship multimodal model", True, 16384, 0.0025, 0.01),
    ModelInfo("gpt-4o-mini", "GPT-4o mini", "Fast, low cost model", True, 16384, 0.00015, 0.0006),
    ModelInfo("gpt-4.1", "GPT-4.1", "Long-context model", True, 32768, 0.002, 0.008),
]

OPENROUTER_MODELS = [
    ModelInfo("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet (OpenRouter)", "", True, 8192),
    ModelInfo("openai/gpt-4o-mini", "GPT-4o mini (OpenRouter)", "", True, 16384),
    ModelInfo("meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B (OpenRouter)", "", False, 8192),
]


class OpenAIProvider(BaseProvider):
    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"
    supports_streaming = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = config.REQUEST_TIMEOUT,
        max_tokens: int = config.MAX_TOKENS,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client: Optional[openai.OpenAI] = None

    def configure(self, settings: dict[str, Any]) -> None:
        if "api_key" in settings:
            self.api_key = settings["api_key"] or ""
            self._client = None
        if settings.get("model"):
            self.model = settings["model"]
        if settings.get("base_url"):
            self.base_url = settings["base_url"]
            self._client = None

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _client_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"api_key": self.api_key, "timeout": self.timeout}
        if self.base_url:
            options["base_url"] = self.base_url
        return options

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(**self._client_options())
        return self._client

    def _messages(self, prompt: str, system: str) -> list[dict]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        self._require_available()
        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=self._messages(prompt, system),
            )
        except openai.APIError as e:
            raise self._classify(e) from e

        if not response.choices or not response.choices[0].message.content:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty response", self.name)
        return response.choices[0].message.content

    def stream(self, prompt: str, system: str, on_chunk: ChunkCallback) -> str:
        self._require_available()
        parts: list[str] = []
        try:
            events = self._get_client().chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=self._messages(prompt, system),
                stream=True,
            )
            for event in events:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    on_chunk(delta)
        except openai.APIError as e:
            raise self._classify(e) from e
        return "".join(parts)

    def available_models(self) -> list[ModelInfo]:
        return list(OPENAI_MODELS)

    def configuration_status(self) -> str:
        if not self.api_key:
            return "Not configured - API key required"
        return f"Ready - Model: {self.model}"

    def _classify(self, exc: openai.APIError) -> ProviderError:
        err = classify_sdk_error(
            exc,
            self.name,
            timeout_error=openai.APITimeoutError,
            connection_error=openai.APIConnectionError,
            status_error=openai.APIStatusError,
        )
        logger.warning("%s request failed: %s", self.name, err)
        return err


class OpenRouterProvider(OpenAIProvider):
    provider_id = ProviderId.OPENROUTER
    display_name = "OpenRouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            api_key=api_key if api_key is not None else config.OPENROUTER_API_KEY,
            model=model or config.OPENROUTER_MODEL,
            base_url=base_url or config.OPENROUTER_BASE_URL,
            **kwargs,
        )

    def _client_options(self) -> dict[str, Any]:
        options = super()._client_options()
        options["default_headers"] = {"X-Title": "GalaxyAI"}
        return options

    def available_models(self) -> list[ModelInfo]:
        return list(OPENROUTER_MODELS)
