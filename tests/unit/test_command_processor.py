"""Tests for end-to-end command processing."""

import json

import pytest

from galaxyai.backend.command_processor import CommandProcessor
from galaxyai.backend.errors import USER_MESSAGES, ProviderErrorKind
from galaxyai.backend.orchestrator import ProviderOrchestrator
from galaxyai.backend.performance import PerformanceMonitor
from galaxyai.providers.base import ProviderId

UNAVAILABLE_MESSAGE = USER_MESSAGES[ProviderErrorKind.SERVICE_UNAVAILABLE]


@pytest.fixture
def processor_for():
    def _build(*providers, **kwargs):
        orch = ProviderOrchestrator(current=ProviderId.CLAUDE)
        for provider in providers:
            orch.register(provider)
        return CommandProcessor(orch, **kwargs)
    return _build


class TestAIPath:
    def test_success(self, processor_for, make_provider, goomba_snapshot):
        processor = processor_for(make_provider(ProviderId.CLAUDE))
        result = processor.process("move goomba1 up", goomba_snapshot)
        assert result.success
        assert result.provider == "claude"
        assert result.user_feedback == "from claude"
        assert [t.object_id for t in result.transformations] == [1]
        assert not result.used_fallback_parser
        assert result.summary().startswith("Applied 1 transformation(s)")

    def test_invalid_transformations_are_dropped(self, processor_for, make_provider, goomba_snapshot):
        text = json.dumps({"transformations": [
            {"objectId": 1, "type": "SCALE", "x": 0, "y": 1, "z": 1},
            {"objectId": 2, "type": "SCALE", "x": 2, "y": 2, "z": 2},
        ], "feedback": "scaled"})
        processor = processor_for(make_provider(ProviderId.CLAUDE, text=text))
        result = processor.process("scale things", goomba_snapshot)
        assert result.success
        assert [t.object_id for t in result.transformations] == [2]
        assert result.errors == ["SCALE: Scale must be positive"]

    def test_all_invalid_fails(self, processor_for, make_provider, goomba_snapshot):
        text = json.dumps({"transformations": [
            {"objectId": 1, "type": "SCALE", "x": -1, "y": 1, "z": 1}]})
        processor = processor_for(make_provider(ProviderId.CLAUDE, text=text))
        result = processor.process("scale goomba1", goomba_snapshot)
        assert not result.success
        assert result.transformations == []

    def test_streaming(self, processor_for, make_provider, goomba_snapshot):
        provider = make_provider(ProviderId.CLAUDE, streaming=True)
        chunks = []
        result = processor_for(provider).process_streaming("move goomba1 up", goomba_snapshot, chunks.append)
        assert result.success
        assert "".join(chunks) == provider.text

    def test_empty_command_never_reaches_providers(self, processor_for, make_provider, goomba_snapshot):
        provider = make_provider(ProviderId.CLAUDE)
        result = processor_for(provider).process("  ", goomba_snapshot)
        assert not result.success
        assert result.errors == ["Command is empty"]
        assert result.suggestions
        assert provider.calls == 0

    def test_monitor_records_commands(self, processor_for, make_provider, goomba_snapshot):
        monitor = PerformanceMonitor()
        processor_for(make_provider(ProviderId.CLAUDE), monitor=monitor).process(
            "move goomba1 up", goomba_snapshot)
        assert monitor.get("command.process").count == 1


class TestTemplateFallback:
    def test_used_when_providers_fail(self, processor_for, make_provider, goomba_snapshot):
        provider = make_provider(ProviderId.CLAUDE, fail_with=ProviderErrorKind.SERVICE_UNAVAILABLE)
        result = processor_for(provider).process("move the goomba1 100 units up", goomba_snapshot)
        assert result.success
        assert result.used_fallback_parser
        assert result.transformations[0].vector.y == 100
        assert f"AI processing unavailable: {UNAVAILABLE_MESSAGE}" in result.warnings

    def test_used_when_response_has_nothing_valid(self, processor_for, make_provider, goomba_snapshot):
        text = '{"transformations": [{"objectId": 42, "type": "TRANSLATE"}]}'
        provider = make_provider(ProviderId.CLAUDE, text=text)
        result = processor_for(provider).process("rotate coin1 45 degrees", goomba_snapshot)
        assert result.used_fallback_parser
        assert result.transformations[0].object_id == 3

    def test_both_paths_fail(self, processor_for, make_provider, goomba_snapshot):
        provider = make_provider(ProviderId.CLAUDE, fail_with=ProviderErrorKind.SERVICE_UNAVAILABLE)
        result = processor_for(provider).process("make it pretty", goomba_snapshot)
        assert not result.success
        assert result.errors == [UNAVAILABLE_MESSAGE, "Could not understand command: make it pretty"]
        assert result.suggestions
        assert result.to_dict()["summary"] == f"Command failed: {UNAVAILABLE_MESSAGE}"

    def test_can_be_disabled(self, processor_for, make_provider, goomba_snapshot):
        provider = make_provider(ProviderId.CLAUDE, fail_with=ProviderErrorKind.SERVICE_UNAVAILABLE)
        processor = processor_for(provider, template_fallback=False)
        result = processor.process("move the goomba1 100 units up", goomba_snapshot)
        assert not result.success
        assert result.errors == [UNAVAILABLE_MESSAGE]
