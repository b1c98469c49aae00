"""Persistent user settings: active provider, fallback flag, per-provider options."""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("galaxyai.settings")


class SettingsStore:
    """Small JSON-file backed settings store.

    Layout on disk::

        {"provider": "claude", "fallback": true,
         "providers": {"ollama": {"url": "http://localhost:11434"}}}
    """

    def __init__(self, path: Path, default_provider: str = "claude", fallback: bool = True) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, Any] = {
            "provider": default_provider,
            "fallback": fallback,
            "providers": {},
        }
        self._load()

    # ── Persistence helpers ──────────────────────────────────

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("Settings file not found; using defaults")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, dict):
                raise TypeError("settings root must be an object")
            self._data.update(data)
            logger.info("Loaded settings from %s", self.path)
        except (json.JSONDecodeError, TypeError) as exc:
            logger.error("Failed to parse settings file (%s); using defaults: %s", self.path, exc)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh, ensure_ascii=False, indent=2)
        logger.debug("Saved settings to %s", self.path)

    # ── Accessors ────────────────────────────────────────────

    @property
    def provider(self) -> Optional[str]:
        with self._lock:
            return self._data.get("provider")

    def set_provider(self, provider_id: str) -> None:
        with self._lock:
            self._data["provider"] = provider_id
            self._save()

    @property
    def fallback_enabled(self) -> bool:
        with self._lock:
            return bool(self._data.get("fallback", True))

    def set_fallback_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._data["fallback"] = bool(enabled)
            self._save()

    def provider_settings(self, provider_id: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._data.get("providers", {}).get(provider_id, {}))

    def update_provider_settings(self, provider_id: str, values: dict[str, Any]) -> None:
        with self._lock:
            providers = self._data.setdefault("providers", {})
            providers.setdefault(provider_id, {}).update(values)
            self._save()
