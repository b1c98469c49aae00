"""Google Gemini provider over the Generative Language REST API."""

import logging
from typing import Any, Optional

import httpx

from ..backend import config
from ..backend.errors import ProviderError, ProviderErrorKind
from .base import SYSTEM_PROMPT, BaseProvider, ModelInfo, ProviderId, classify_http_error

logger = logging.getLogger("galaxyai.providers.gemini")

GEMINI_MODELS = [
    ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash", "Fast multimodal model", True, 8192,
              0.000075, 0.0003),
    ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro", "Long-context reasoning model", True, 8192,
              0.00125, 0.005),
    ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash", "Next generation fast model", True, 8192,
              0.0001, 0.0004),
]


class GeminiProvider(BaseProvider):
    provider_id = ProviderId.GEMINI
    display_name = "Gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = config.REQUEST_TIMEOUT,
        max_tokens: int = config.MAX_TOKENS,
        http_client: Optional[httpx.Client] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._http = http_client

    def configure(self, settings: dict[str, Any]) -> None:
        if "api_key" in settings:
            self.api_key = settings["api_key"] or ""
        if settings.get("model"):
            self.model = settings["model"]

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=self.timeout)
        return self._http

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        self._require_available()
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        logger.debug("POST %s (model=%s)", url, self.model)
        try:
            resp = self._client().post(url, params={"key": self.api_key}, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise classify_http_error(e, self.name) from e
        except ValueError as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"Bad JSON body: {e}", self.name) from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, f"Unexpected response shape: {e}", self.name
            ) from e
        if not text:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty response", self.name)
        return text

    def available_models(self) -> list[ModelInfo]:
        return list(GEMINI_MODELS)

    def configuration_status(self) -> str:
        if not self.api_key:
            return "Not configured - API key required"
        return f"Ready - Model: {self.model}"
