"""Command processor: natural-language command to validated transformations.

Flow: pre-validate → provider orchestrator (with failover) → response
parser → constraint validation.  When no provider can produce a usable
answer the built-in template parser is tried before giving up.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from .command_templates import TemplateCommandParser, pre_validate
from .constraint_validator import ConstraintValidator
from .errors import ProviderError, analyze, command_suggestions
from .object_resolver import ObjectResolver
from .orchestrator import ProviderOrchestrator
from .performance import PerformanceMonitor
from .scene_model import SceneSnapshot
from .transformations import CommandResult, ObjectTransformation, ProviderResponse

logger = logging.getLogger("galaxyai.commands")


class CommandProcessor:
    """Turns commands into ``CommandResult`` objects for the scene applier.

    Args:
        orchestrator: Provider orchestrator used for AI processing.
        validator: Constraint validator applied to every transformation.
        monitor: Optional performance monitor.
        template_fallback: Try the built-in command patterns when the AI
            path fails.
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        validator: Optional[ConstraintValidator] = None,
        monitor: Optional[PerformanceMonitor] = None,
        template_fallback: bool = True,
    ) -> None:
        self.orchestrator = orchestrator
        self.validator = validator or ConstraintValidator()
        self.monitor = monitor
        self.template_fallback = template_fallback

    def process(self, command: str, snapshot: SceneSnapshot) -> CommandResult:
        return self._process(command, snapshot, None)

    def process_streaming(self, command: str, snapshot: SceneSnapshot, on_chunk) -> CommandResult:
        return self._process(command, snapshot, on_chunk)

    # ── Internals ────────────────────────────────────────────

    def _process(self, command: str, snapshot: SceneSnapshot, on_chunk) -> CommandResult:
        start = time.perf_counter()
        errors, warnings = pre_validate(command)
        if errors:
            return self._finish(
                CommandResult(False, errors=errors, warnings=warnings,
                              suggestions=command_suggestions(command)),
                start,
            )

        response: Optional[ProviderResponse] = None
        ai_errors: list[str] = []
        try:
            if on_chunk is None:
                response = self.orchestrator.execute(command, snapshot)
            else:
                response = self.orchestrator.execute_streaming(command, snapshot, on_chunk)
        except ProviderError as exc:
            analysis = analyze(exc)
            ai_errors.append(analysis.user_message)
            logger.warning("AI processing failed for %r: %s", command, exc)

        if response is not None and response.success:
            result = CommandResult(
                True,
                user_feedback=response.feedback,
                raw_response=response.raw_response,
                provider=response.provider,
                warnings=warnings + response.warnings,
            )
            self._apply_validation(response.transformations, snapshot, result)
            return self._finish(result, start)

        if response is not None:
            ai_errors.extend(response.errors)

        if self.template_fallback:
            template = TemplateCommandParser(ObjectResolver(snapshot, monitor=self.monitor)).parse(command)
            if template.success:
                result = CommandResult(
                    True,
                    user_feedback="Processed with built-in command patterns",
                    raw_response=response.raw_response if response is not None else "",
                    warnings=warnings + [f"AI processing unavailable: {e}" for e in ai_errors]
                    + template.warnings,
                    used_fallback_parser=True,
                )
                self._apply_validation(template.transformations, snapshot, result)
                return self._finish(result, start)
            ai_errors.extend(template.errors)

        result = CommandResult(
            False,
            raw_response=response.raw_response if response is not None else "",
            provider=response.provider if response is not None else None,
            errors=ai_errors or ["Command could not be processed"],
            warnings=warnings,
            suggestions=command_suggestions(command),
        )
        return self._finish(result, start)

    def _apply_validation(
        self,
        transformations: list[ObjectTransformation],
        snapshot: SceneSnapshot,
        result: CommandResult,
    ) -> None:
        for tf in transformations:
            obj = snapshot.get(tf.object_id) if tf.object_id is not None else None
            check = self.validator.validate(tf, obj)
            result.warnings.extend(check.warnings)
            if check.is_valid:
                result.transformations.append(tf)
            else:
                result.errors.extend(f"{tf.description or tf.kind.value}: {e}" for e in check.errors)
        if not result.transformations:
            result.success = False
            if not result.errors:
                result.errors.append("No valid transformations")

    def _finish(self, result: CommandResult, start: float) -> CommandResult:
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0
        if self.monitor is not None:
            self.monitor.record("command.process", result.processing_time_ms, result.success)
        logger.info("Command processed: %s", result.summary())
        return result
