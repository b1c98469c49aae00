"""Ollama provider: local models over the Ollama HTTP API.

This is the baseline backend: no API key, no streaming, last in the
fallback order.
"""

import logging
from typing import Any, Optional

import httpx

from ..backend import config
from ..backend.errors import ProviderError, ProviderErrorKind
from .base import SYSTEM_PROMPT, BaseProvider, ModelInfo, ProviderId, classify_http_error

logger = logging.getLogger("galaxyai.providers.ollama")


class OllamaProvider(BaseProvider):
    provider_id = ProviderId.OLLAMA
    display_name = "Ollama"

    def __init__(
        self,
        url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = config.REQUEST_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.url = (url if url is not None else config.OLLAMA_URL).rstrip("/")
        self.model = model or config.OLLAMA_MODEL
        self.timeout = timeout
        self._http = http_client

    def configure(self, settings: dict[str, Any]) -> None:
        if "url" in settings:
            self.url = (settings["url"] or "").rstrip("/")
        if settings.get("model"):
            self.model = settings["model"]

    def is_available(self) -> bool:
        return bool(self.url and self.model)

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=self.timeout)
        return self._http

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        self._require_available()
        payload = {
            "model": self.model,
            "stream": False,
            "format": "json",
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            resp = self._client().post(f"{self.url}/api/chat", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise classify_http_error(e, self.name) from e
        except ValueError as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"Bad JSON body: {e}", self.name) from e

        text = (data.get("message") or {}).get("content", "") if isinstance(data, dict) else ""
        if not text:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty response", self.name)
        return text

    def available_models(self) -> list[ModelInfo]:
        """List locally installed models; empty if the server cannot be reached."""
        if not self.url:
            return []
        try:
            resp = self._client().get(f"{self.url}/api/tags")
            resp.raise_for_status()
            models = resp.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not list Ollama models: %s", e)
            return []
        return [
            ModelInfo(m.get("name", ""), m.get("name", ""), m.get("details", {}).get("family", ""))
            for m in models
            if m.get("name")
        ]

    def test_connection(self) -> bool:
        if not self.url:
            return False
        try:
            self._client().get(f"{self.url}/api/tags").raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning("Ollama server not reachable at %s: %s", self.url, e)
            return False

    def configuration_status(self) -> str:
        if not self.url:
            return "Not configured - server URL required"
        return f"Ready - Model: {self.model} at {self.url}"
