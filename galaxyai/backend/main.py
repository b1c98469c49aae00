"""GalaxyAI: FastAPI backend.

Receives natural-language commands for the currently loaded galaxy,
resolves object references, and returns validated transformations for
the editor to apply.  All long-lived services are built once here and
passed to the components that use them.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import config
from .command_processor import CommandProcessor
from .context_cache import ContextCache
from .errors import ProviderError, ProviderErrorKind
from .object_resolver import ObjectResolver
from .orchestrator import ProviderOrchestrator
from .performance import PerformanceMonitor
from .projection import ProjectionLevel, Projector
from .scene_model import SceneSnapshot, Vec3
from .settings_store import SettingsStore
from .snapshot_builder import InMemoryScene, RawObject, SnapshotBuilder
from ..providers.base import BaseProvider
from ..providers.claude import ClaudeProvider
from ..providers.gemini import GeminiProvider
from ..providers.ollama import OllamaProvider
from ..providers.openai_provider import OpenAIProvider, OpenRouterProvider

logger = logging.getLogger("galaxyai")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Log to stderr and ``LOGS_DIR/galaxyai.log``."""
    os.makedirs(config.LOGS_DIR, exist_ok=True)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(config.LOGS_DIR / "galaxyai.log", encoding="utf-8"),
        ],
    )


# ── Services ─────────────────────────────────────────────────

class Services:
    """Composition root: one instance of every long-lived component."""

    def __init__(
        self,
        settings: SettingsStore,
        providers: Optional[list[BaseProvider]] = None,
        cache: Optional[ContextCache] = None,
        scene: Optional[InMemoryScene] = None,
    ) -> None:
        self.monitor = PerformanceMonitor()
        self.cache = cache or ContextCache(
            max_contexts=config.MAX_CACHED_CONTEXTS,
            max_projections=config.MAX_CACHED_PROJECTIONS,
            ttl_seconds=config.CACHE_TTL_SECONDS,
        )
        self.settings = settings
        self.projector = Projector(self.cache, self.monitor)
        self.builder = SnapshotBuilder(self.cache, self.monitor)
        self.orchestrator = ProviderOrchestrator(settings, monitor=self.monitor)
        for provider in providers if providers is not None else default_providers(self.projector):
            self.orchestrator.register(provider)
        self.processor = CommandProcessor(self.orchestrator, monitor=self.monitor)
        self.scene = scene or InMemoryScene("")
        self._snapshot: Optional[SceneSnapshot] = None
        self._lock = threading.Lock()

    def snapshot(self) -> SceneSnapshot:
        """Current snapshot; the strong reference keeps the cache entry alive."""
        with self._lock:
            self._snapshot = self.builder.build(self.scene)
            return self._snapshot

    def resolver(self, snapshot: SceneSnapshot) -> ObjectResolver:
        return ObjectResolver(snapshot, monitor=self.monitor)


def default_providers(projector: Projector) -> list[BaseProvider]:
    kwargs = {"projector": projector, "max_objects": config.MAX_AI_OBJECTS}
    return [
        ClaudeProvider(**kwargs),
        OpenAIProvider(**kwargs),
        OpenRouterProvider(**kwargs),
        GeminiProvider(**kwargs),
        OllamaProvider(**kwargs),
    ]


# ── Request models ───────────────────────────────────────────

class RawObjectModel(BaseModel):
    unique_id: int = Field(description="Identifier, unique within the galaxy")
    name: str = ""
    class_name: str = Field("", description="Editor class, e.g. AreaObj or StartObj")
    display_name: str = ""
    category: str = ""
    position: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)
    rotation: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)
    scale: list[float] = Field(default_factory=lambda: [1.0, 1.0, 1.0], min_length=3, max_length=3)
    layer: str = ""
    zone: str = ""
    properties: dict = Field(default_factory=dict)


class SceneLoadRequest(BaseModel):
    galaxy: str
    zone: Optional[str] = None
    objects: list[RawObjectModel] = Field(default_factory=list)


class ResolveRequest(BaseModel):
    reference: str
    mode: str = Field("multiple", description="single | multiple | spatial")
    origin: Optional[list[float]] = None


class CommandRequest(BaseModel):
    command: str


class ProjectRequest(BaseModel):
    level: ProjectionLevel = ProjectionLevel.STANDARD
    ai: bool = False
    max_objects: int = Field(config.MAX_AI_OBJECTS, ge=1)


class SwitchProviderRequest(BaseModel):
    provider: str


class FallbackRequest(BaseModel):
    enabled: bool


class ProviderConfigRequest(BaseModel):
    settings: dict


class InvalidateRequest(BaseModel):
    zone: Optional[str] = None


def _http_error(exc: ProviderError) -> HTTPException:
    status = 400 if exc.kind == ProviderErrorKind.CONFIGURATION_ERROR else 503
    return HTTPException(status, exc.to_dict())


# ── App ──────────────────────────────────────────────────────

def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the FastAPI app around *services* (default: from ``config``)."""
    if services is None:
        services = Services(
            SettingsStore(config.SETTINGS_FILE, config.DEFAULT_PROVIDER, config.ENABLE_FALLBACK)
        )

    app = FastAPI(
        title="GalaxyAI",
        version="1.0.0",
        description="Natural language → galaxy object transformations",
    )
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Health & providers ───────────────────────────────────

    @app.get("/api/health")
    async def health():
        orch = services.orchestrator
        return {
            "status": "ok",
            "currentProvider": orch.current_provider_id,
            "anyAvailable": orch.is_any_available(),
            "providers": orch.health_check(),
        }

    @app.get("/api/providers")
    async def list_providers():
        orch = services.orchestrator
        return {
            "current": orch.current_provider_id,
            "fallbackEnabled": orch.fallback_enabled,
            "fallbackOrder": list(orch.fallback_order),
            "providers": orch.provider_statuses(),
        }

    @app.post("/api/providers/switch")
    async def switch_provider(req: SwitchProviderRequest):
        try:
            provider = services.orchestrator.switch_provider(req.provider)
        except ProviderError as exc:
            raise _http_error(exc)
        return {"current": req.provider, "status": provider.configuration_status()}

    @app.post("/api/providers/fallback")
    async def set_fallback(req: FallbackRequest):
        services.orchestrator.fallback_enabled = req.enabled
        return {"fallbackEnabled": services.orchestrator.fallback_enabled}

    @app.post("/api/providers/{provider_id}/configure")
    async def configure_provider(provider_id: str, req: ProviderConfigRequest):
        try:
            services.orchestrator.configure_provider(provider_id, req.settings)
        except ProviderError as exc:
            raise _http_error(exc)
        return services.orchestrator.get(provider_id).status()

    @app.post("/api/providers/{provider_id}/test")
    async def test_provider(provider_id: str):
        if services.orchestrator.get(provider_id) is None:
            raise HTTPException(404, f"Unknown provider: {provider_id}")
        ok = await asyncio.to_thread(services.orchestrator.test_provider, provider_id)
        return {"provider": provider_id, "connected": ok}

    @app.get("/api/providers/{provider_id}/models")
    async def provider_models(provider_id: str):
        provider = services.orchestrator.get(provider_id)
        if provider is None:
            raise HTTPException(404, f"Unknown provider: {provider_id}")
        models = await asyncio.to_thread(provider.available_models)
        return {"provider": provider_id, "models": [m.to_dict() for m in models]}

    # ── Scene ────────────────────────────────────────────────

    @app.post("/api/scene/objects")
    async def load_scene(req: SceneLoadRequest):
        raws = [RawObject(**obj.model_dump()) for obj in req.objects]
        previous = services.scene.galaxy_name
        services.scene.replace_all(raws, req.galaxy, req.zone)
        if previous:
            services.builder.invalidate(previous)
        services.builder.invalidate(req.galaxy)
        snapshot = services.snapshot()
        logger.info("Loaded galaxy %s with %d objects", req.galaxy, snapshot.object_count)
        return {"galaxy": req.galaxy, "zone": req.zone, "objectCount": snapshot.object_count}

    @app.post("/api/resolve")
    async def resolve(req: ResolveRequest):
        resolver = services.resolver(services.snapshot())
        if req.mode == "single":
            result = resolver.resolve(req.reference)
        elif req.mode == "spatial":
            origin = Vec3(*req.origin) if req.origin and len(req.origin) == 3 else Vec3()
            result = resolver.resolve_spatial(req.reference, origin)
        elif req.mode == "multiple":
            result = resolver.resolve_multiple(req.reference)
        else:
            raise HTTPException(400, f"Unknown resolve mode: {req.mode}")
        return result.to_dict()

    @app.post("/api/command")
    async def command(req: CommandRequest):
        snapshot = services.snapshot()
        result = await asyncio.to_thread(services.processor.process, req.command, snapshot)
        return result.to_dict()

    @app.post("/api/project")
    async def project(req: ProjectRequest):
        snapshot = services.snapshot()
        if req.ai:
            return services.projector.project_for_ai(snapshot, req.max_objects)
        return await asyncio.to_thread(services.projector.project, snapshot, req.level)

    # ── Cache & diagnostics ──────────────────────────────────

    @app.get("/api/cache/stats")
    async def cache_stats():
        return services.builder.statistics()

    @app.post("/api/cache/invalidate")
    async def invalidate_cache(req: InvalidateRequest):
        galaxy = services.scene.galaxy_name
        if req.zone:
            removed = services.builder.invalidate_zone(galaxy, req.zone)
        else:
            removed = services.builder.invalidate(galaxy)
        return {"removed": removed}

    @app.get("/api/performance")
    async def performance():
        return services.monitor.statistics()

    @app.get("/api/attempts")
    async def last_attempts():
        return [a.to_dict() for a in services.orchestrator.last_attempts]

    return app


app = create_app()
