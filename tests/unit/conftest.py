"""Shared fixtures: sample galaxies, a controllable clock and fake providers."""

import json

import pytest

from galaxyai.backend.errors import ProviderError
from galaxyai.backend.scene_model import SceneSnapshot, make_object
from galaxyai.providers.base import SYSTEM_PROMPT, BaseProvider, ProviderId


def move_up_response(object_id: int = 1, feedback: str = "Moved it up") -> str:
    return json.dumps({
        "transformations": [
            {"objectId": object_id, "type": "TRANSLATE", "x": 0, "y": 100, "z": 0,
             "description": "Move up"},
        ],
        "feedback": feedback,
    })


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseProvider):
    """Scriptable provider: fails with a given kind or answers with fixed text."""

    def __init__(self, provider_id, *, fail_with=None, raise_exc=None, available=True,
                 streaming=False, text=None, chunks=None):
        super().__init__()
        self.provider_id = provider_id
        self.display_name = provider_id.value
        self.supports_streaming = streaming
        self.fail_with = fail_with
        self.raise_exc = raise_exc
        self.available = available
        self.text = text if text is not None else move_up_response(feedback=f"from {provider_id.value}")
        self.chunks = chunks
        self.calls = 0
        self.stream_calls = 0
        self.configured = {}

    def configure(self, settings):
        self.configured.update(settings)

    def is_available(self):
        return self.available

    def _maybe_fail(self):
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.fail_with is not None:
            raise ProviderError(self.fail_with, "scripted failure", self.name)

    def complete(self, prompt, system=SYSTEM_PROMPT):
        self.calls += 1
        self._maybe_fail()
        return self.text

    def stream(self, prompt, system, on_chunk):
        self.stream_calls += 1
        self._maybe_fail()
        parts = self.chunks or [self.text]
        for part in parts:
            on_chunk(part)
        return "".join(parts)

    def available_models(self):
        return []

    def configuration_status(self):
        return "Ready - fake" if self.available else "Not configured - fake"


@pytest.fixture
def goomba_snapshot():
    """Two goombas and a coin."""
    return SceneSnapshot("TestGalaxy", None, [
        make_object(1, "Goomba1", object_type="enemy", position=(10, 0, 0)),
        make_object(2, "Goomba2", object_type="enemy", position=(300, 0, 0)),
        make_object(3, "Coin1", object_type="collectible", position=(0, 0, 500)),
    ])


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_provider():
    def _make(provider_id=ProviderId.CLAUDE, **kwargs):
        return FakeProvider(provider_id, **kwargs)
    return _make
