"""Provider orchestrator: ordered failover across language-model backends.

One instance is built by the application and injected wherever commands
are executed.  A call tries the currently selected provider first; when
it fails with a classified ``ProviderError`` and fallback is enabled, the
remaining providers are tried in the fixed fallback order (not registry
order) until one succeeds.  At most one provider's result is returned.

Usage::

    orch = ProviderOrchestrator(settings)
    orch.register(ClaudeProvider())
    orch.register(OllamaProvider())
    response = orch.execute("move the goomba up 100 units", snapshot)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from ..providers.base import BaseProvider, ChunkCallback, ProviderId
from .errors import ProviderError, ProviderErrorKind, as_provider_error
from .performance import PerformanceMonitor
from .scene_model import SceneSnapshot
from .settings_store import SettingsStore
from .transformations import ProviderResponse

logger = logging.getLogger("galaxyai.orchestrator")

DEFAULT_FALLBACK_ORDER = [
    ProviderId.CLAUDE,
    ProviderId.OPENAI,
    ProviderId.OPENROUTER,
    ProviderId.GEMINI,
    ProviderId.OLLAMA,
]

ProviderKey = Union[ProviderId, str]


def _key(provider_id: ProviderKey) -> str:
    return getattr(provider_id, "value", provider_id)


@dataclass
class AttemptRecord:
    provider: str
    success: bool
    error_kind: Optional[str] = None
    message: str = ""
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "success": self.success,
            "errorKind": self.error_kind,
            "message": self.message,
            "durationMs": round(self.duration_ms, 2),
        }


class ProviderOrchestrator:
    """Registry of providers plus the failover state machine.

    Args:
        settings: Store the selected provider and fallback flag persist to.
        fallback_order: Failover sequence; defaults to the four enhanced
            backends by priority followed by Ollama.
        fallback_enabled: Overrides the stored fallback flag when given.
        current: Initial provider id when there is no settings store.
        monitor: Optional performance monitor.
    """

    def __init__(
        self,
        settings: Optional[SettingsStore] = None,
        fallback_order: Optional[Iterable[ProviderKey]] = None,
        fallback_enabled: Optional[bool] = None,
        current: Optional[ProviderKey] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self._settings = settings
        self._providers: dict[str, BaseProvider] = {}
        self._lock = threading.Lock()
        self._monitor = monitor
        self.fallback_order: list[str] = [
            _key(p) for p in (fallback_order if fallback_order is not None else DEFAULT_FALLBACK_ORDER)
        ]

        if current is not None:
            self._current: Optional[str] = _key(current)
        elif settings is not None:
            self._current = settings.provider
        else:
            self._current = None

        if fallback_enabled is not None:
            self._fallback_enabled = fallback_enabled
        elif settings is not None:
            self._fallback_enabled = settings.fallback_enabled
        else:
            self._fallback_enabled = True

        self._last_attempts: list[AttemptRecord] = []

    # ── Registry ─────────────────────────────────────────────

    def register(self, provider: BaseProvider) -> None:
        key = _key(provider.provider_id)
        if self._settings is not None:
            stored = self._settings.provider_settings(key)
            if stored:
                provider.configure(stored)
        with self._lock:
            self._providers[key] = provider
        logger.info("Registered provider %s (%s)", key, provider.configuration_status())

    def get(self, provider_id: ProviderKey) -> Optional[BaseProvider]:
        return self._providers.get(_key(provider_id))

    @property
    def providers(self) -> dict[str, BaseProvider]:
        with self._lock:
            return dict(self._providers)

    @property
    def current_provider(self) -> Optional[BaseProvider]:
        if self._current is None:
            return None
        return self._providers.get(self._current)

    @property
    def current_provider_id(self) -> Optional[str]:
        return self._current

    def switch_provider(self, provider_id: ProviderKey) -> BaseProvider:
        """Select *provider_id* as the active provider and persist the choice.

        Raises:
            ProviderError: CONFIGURATION_ERROR if the id is not registered.
        """
        key = _key(provider_id)
        provider = self._providers.get(key)
        if provider is None:
            raise ProviderError(ProviderErrorKind.CONFIGURATION_ERROR, f"Unknown provider: {key}")
        self._current = key
        if self._settings is not None:
            self._settings.set_provider(key)
        logger.info("Switched active provider to %s", key)
        return provider

    def configure_provider(self, provider_id: ProviderKey, values: dict) -> None:
        key = _key(provider_id)
        provider = self._providers.get(key)
        if provider is None:
            raise ProviderError(ProviderErrorKind.CONFIGURATION_ERROR, f"Unknown provider: {key}")
        provider.configure(values)
        if self._settings is not None:
            self._settings.update_provider_settings(key, values)

    @property
    def fallback_enabled(self) -> bool:
        return self._fallback_enabled

    @fallback_enabled.setter
    def fallback_enabled(self, enabled: bool) -> None:
        self._fallback_enabled = bool(enabled)
        if self._settings is not None:
            self._settings.set_fallback_enabled(self._fallback_enabled)

    @property
    def last_attempts(self) -> list[AttemptRecord]:
        with self._lock:
            return list(self._last_attempts)

    # ── Read-only queries ────────────────────────────────────

    def health_check(self) -> dict[str, bool]:
        return {key: p.is_available() for key, p in self.providers.items()}

    def first_available(self) -> Optional[BaseProvider]:
        current = self.current_provider
        if current is not None and current.is_available():
            return current
        for key in self.fallback_order:
            provider = self._providers.get(key)
            if provider is not None and provider.is_available():
                return provider
        return None

    def is_any_available(self) -> bool:
        return any(p.is_available() for p in self.providers.values())

    def provider_statuses(self) -> list[dict]:
        statuses = []
        for key, provider in self.providers.items():
            status = provider.status()
            status["current"] = key == self._current
            statuses.append(status)
        return statuses

    def test_provider(self, provider_id: ProviderKey) -> bool:
        provider = self._providers.get(_key(provider_id))
        return provider.test_connection() if provider is not None else False

    # ── Execution ────────────────────────────────────────────

    def execute(self, command: str, snapshot: SceneSnapshot) -> ProviderResponse:
        """Run *command* on the current provider, failing over when enabled.

        Raises:
            ProviderError: The current provider's error when fallback is
                disabled, or SERVICE_UNAVAILABLE once every provider failed.
        """
        attempts: list[AttemptRecord] = []
        try:
            return self._run(
                attempts,
                lambda p: p.process_command(command, snapshot),
                lambda p: True,
            )
        finally:
            self._store_attempts(attempts)

    def execute_streaming(
        self, command: str, snapshot: SceneSnapshot, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Like ``execute`` but over streaming-capable providers only.

        When no streaming provider succeeds the call degrades to ``execute``
        and the full response text is delivered as a single chunk.
        """
        attempts: list[AttemptRecord] = []
        try:
            try:
                return self._run(
                    attempts,
                    lambda p: p.process_streaming_command(command, snapshot, on_chunk),
                    lambda p: p.supports_streaming,
                )
            except ProviderError as exc:
                if not self._fallback_enabled and not isinstance(exc, _NotEligible):
                    raise
                logger.info("No streaming provider succeeded; using non-streaming execution")

            response = self._run(
                attempts,
                lambda p: p.process_command(command, snapshot),
                lambda p: True,
            )
            if response.raw_response:
                on_chunk(response.raw_response)
            return response
        finally:
            self._store_attempts(attempts)

    # ── Internals ────────────────────────────────────────────

    def _run(
        self,
        attempts: list[AttemptRecord],
        call: Callable[[BaseProvider], ProviderResponse],
        eligible: Callable[[BaseProvider], bool],
    ) -> ProviderResponse:
        tried: set[str] = set()
        last_error: Optional[ProviderError] = None

        current = self.current_provider
        if current is None:
            if not self._fallback_enabled:
                raise ProviderError(ProviderErrorKind.CONFIGURATION_ERROR, "No AI provider selected")
        elif not eligible(current):
            if not self._fallback_enabled:
                raise _NotEligible(current.name)
        elif not current.is_available():
            if not self._fallback_enabled:
                raise ProviderError(
                    ProviderErrorKind.SERVICE_UNAVAILABLE,
                    f"Provider {current.name} is not available",
                    current.name,
                )
            logger.info("Current provider %s is not available", current.name)
        else:
            tried.add(self._current)
            try:
                return self._attempt(current, call, attempts)
            except ProviderError as exc:
                if not self._fallback_enabled:
                    raise
                last_error = exc

        for key in self.fallback_order:
            if key in tried:
                continue
            provider = self._providers.get(key)
            if provider is None or not eligible(provider) or not provider.is_available():
                continue
            tried.add(key)
            try:
                return self._attempt(provider, call, attempts)
            except ProviderError as exc:
                last_error = exc

        logger.error("All AI providers are unavailable (tried: %s)", ", ".join(sorted(tried)) or "none")
        raise ProviderError(
            ProviderErrorKind.SERVICE_UNAVAILABLE, "All AI providers are unavailable"
        ) from last_error

    def _attempt(
        self,
        provider: BaseProvider,
        call: Callable[[BaseProvider], ProviderResponse],
        attempts: list[AttemptRecord],
    ) -> ProviderResponse:
        key = _key(provider.provider_id)
        start = time.perf_counter()
        try:
            response = call(provider)
        except Exception as exc:
            err = as_provider_error(exc, provider.name)
            elapsed = (time.perf_counter() - start) * 1000.0
            attempts.append(AttemptRecord(key, False, err.kind.value, err.message, elapsed))
            self._record(key, elapsed, False)
            logger.warning("Provider %s failed (%s): %s", provider.name, err.kind.value, err.message)
            if err is exc:
                raise
            raise err from exc

        elapsed = (time.perf_counter() - start) * 1000.0
        attempts.append(AttemptRecord(key, True, duration_ms=elapsed))
        self._record(key, elapsed, True)
        if response.provider is None:
            response.provider = provider.name
        logger.info("Provider %s answered in %.0f ms", provider.name, elapsed)
        return response

    def _record(self, key: str, elapsed_ms: float, success: bool) -> None:
        if self._monitor is not None:
            self._monitor.record(f"provider.{key}", elapsed_ms, success)

    def _store_attempts(self, attempts: list[AttemptRecord]) -> None:
        with self._lock:
            self._last_attempts = list(attempts)


class _NotEligible(ProviderError):
    """The selected provider cannot serve this kind of call (e.g. no streaming)."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            ProviderErrorKind.CONFIGURATION_ERROR, "Provider does not support streaming", provider
        )
