#!/usr/bin/env python3
"""
Mermaid Render Attempt Controller

Orchestrates one render attempt per diagram id through the recovery tiers:
normalize, classify, repair (flowcharts only), validate and render the
primary text; on failure synthesize, validate and render a fallback skeleton;
and when even that fails, hand the raw text to the error presenter.

Re-entrancy is handled with generation tokens. Each new input for a diagram
id starts a new generation; a run commits its outcome only if its generation
is still the latest when it finishes. Identical input arriving while a run is
in flight joins that run instead of starting another.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from diagram_recovery.cache import RenderOutcomeCache
from diagram_recovery.config import RecoveryConfig, get_recovery_config
from diagram_recovery.error_presenter import ErrorPresenter
from diagram_recovery.mermaid_utils import DiagramClassifier, DiagramNormalizer
from diagram_recovery.mermaid_validator import MermaidBackend, MermaidValidator, call_backend
from diagram_recovery.performance_logger import log_render_performance, time_block
from diagram_recovery.render_outcome import (
    Degraded,
    DiagramRecoveryError,
    DiagramRenderError,
    DiagramSyntaxError,
    EmptyOutcome,
    Failed,
    FailureReason,
    FallbackExhaustedError,
    Rendered,
    RenderOutcome,
    RepairResult,
    Superseded,
)
from diagram_recovery.tools.fallback_builder import FallbackGraphBuilder
from diagram_recovery.tools.line_repairer import LineRepairer
from diagram_recovery.tools.node_inferencer import NodeInferencer

logger = logging.getLogger(__name__)

DEFAULT_DIAGRAM_ID = "mermaid-diagram"


class RenderState(Enum):
    """Stage a diagram's latest run is currently in"""
    IDLE = "idle"
    NORMALIZING = "normalizing"
    CLASSIFYING = "classifying"
    REPAIRING = "repairing"
    VALIDATING = "validating"
    RENDERING = "rendering"
    FALLBACK_BUILDING = "fallback_building"
    VALIDATING_FALLBACK = "validating_fallback"
    RENDERING_DEGRADED = "rendering_degraded"
    FAILED = "failed"


class RecoveryLogger:
    """Specialized logger for recovery pipeline events"""

    def __init__(self, name: str = "diagram_recovery"):
        self.logger = logging.getLogger(name)

    def log_stage(self, diagram_id: str, generation: int, state: RenderState):
        self.logger.debug(f"🔄 MERMAID RECOVERY: {diagram_id}#{generation} -> {state.value}")

    def log_repairs(self, diagram_id: str, fixes):
        if fixes:
            self.logger.info(f"🔧 MERMAID RECOVERY: {diagram_id} repaired ({len(fixes)} fixes)")
            for fix in fixes:
                self.logger.debug(f"   {fix}")

    def log_primary_failure(self, diagram_id: str, reason: FailureReason):
        """Log validation or render failure of the primary text"""
        self.logger.warning(
            f"🔄 MERMAID RECOVERY: {diagram_id} {reason.kind.value} "
            f"({reason.error_type.value}): {reason.detail}"
        )
        if reason.line_number:
            self.logger.debug(f"Error at line {reason.line_number}")
        if reason.suggested_fix:
            self.logger.debug(f"Suggested fix: {reason.suggested_fix}")
        self.logger.info(f"🔄 MERMAID RECOVERY: {diagram_id} building fallback diagram")

    def log_exhausted(self, diagram_id: str, reason: FailureReason):
        self.logger.error(f"❌ MERMAID RECOVERY: {diagram_id} fallback exhausted: {reason.detail}")

    def log_superseded(self, diagram_id: str, generation: int, latest: int):
        self.logger.info(
            f"⏭️ MERMAID RECOVERY: {diagram_id}#{generation} superseded by #{latest}, result discarded"
        )

    def log_outcome(self, diagram_id: str, outcome: RenderOutcome, duration: float, fixes: int = 0):
        log_render_performance(diagram_id, outcome.status, duration, fixes)


@dataclass
class _InFlightRun:
    key: str
    generation: int
    task: "asyncio.Future"


class RenderAttemptController:
    """
    Owns the cache, generation counters and in-flight table for a set of
    diagram ids. One controller per display site.
    """

    def __init__(
        self,
        backend: MermaidBackend,
        config: Optional[RecoveryConfig] = None,
        on_error: Optional[Callable[[str], None]] = None,
        cache: Optional[RenderOutcomeCache] = None,
        presenter: Optional[ErrorPresenter] = None,
        recovery_logger: Optional[RecoveryLogger] = None,
    ):
        self.config = config or get_recovery_config()
        self.backend = backend
        self.on_error = on_error
        self.cache = cache or RenderOutcomeCache(self.config.cache_max_entries)
        self.presenter = presenter or ErrorPresenter()
        self.recovery_logger = recovery_logger or RecoveryLogger()

        self.validator = MermaidValidator(backend)
        self.normalizer = DiagramNormalizer(self.config)
        self.classifier = DiagramClassifier(self.config)
        self.repairer = LineRepairer(self.config)
        self.inferencer = NodeInferencer()
        self.fallback_builder = FallbackGraphBuilder(self.config)

        self._generations: Dict[str, int] = {}
        self._in_flight: Dict[str, _InFlightRun] = {}
        self._displayed: Dict[str, RenderOutcome] = {}
        self._states: Dict[str, RenderState] = {}

        self.stats = {
            "runs": 0,
            "joined": 0,
            "cache_hits": 0,
            "superseded": 0,
            "rendered": 0,
            "degraded": 0,
            "failed": 0,
            "empty": 0,
        }

    def displayed(self, diagram_id: str = DEFAULT_DIAGRAM_ID) -> Optional[RenderOutcome]:
        """Last committed outcome for a diagram id"""
        return self._displayed.get(diagram_id)

    def state(self, diagram_id: str = DEFAULT_DIAGRAM_ID) -> RenderState:
        return self._states.get(diagram_id, RenderState.IDLE)

    def generation(self, diagram_id: str = DEFAULT_DIAGRAM_ID) -> int:
        return self._generations.get(diagram_id, 0)

    async def run(self, raw_text: str, diagram_id: str = DEFAULT_DIAGRAM_ID) -> RenderOutcome:
        """Run (or join, or serve from cache) a render attempt for raw diagram text"""
        with time_block("normalize"):
            normalized = self.normalizer.normalize(raw_text or "")

        if not normalized:
            generation = self._start_generation(diagram_id)
            self.cache.discard(diagram_id)
            outcome = EmptyOutcome()
            self._commit(diagram_id, outcome, notify=False)
            self._enter(diagram_id, generation, RenderState.IDLE)
            return outcome

        key = self.cache.make_key(normalized)

        in_flight = self._in_flight.get(diagram_id)
        if in_flight is not None and in_flight.key == key:
            self.stats["joined"] += 1
            logger.debug(f"Joining in-flight run {diagram_id}#{in_flight.generation}")
            return await asyncio.shield(in_flight.task)

        cached = self.cache.get(diagram_id, key)
        if cached is not None:
            self._start_generation(diagram_id)
            self.stats["cache_hits"] += 1
            self._commit(diagram_id, cached, notify=False)
            return cached

        generation = self._start_generation(diagram_id)
        task = asyncio.ensure_future(self._attempt(raw_text, normalized, key, diagram_id, generation))
        self._in_flight[diagram_id] = _InFlightRun(key, generation, task)
        return await asyncio.shield(task)

    def _start_generation(self, diagram_id: str) -> int:
        """New generation for an id; any in-flight run becomes stale"""
        generation = self._generations.get(diagram_id, 0) + 1
        self._generations[diagram_id] = generation
        self._in_flight.pop(diagram_id, None)
        return generation

    def _is_current(self, diagram_id: str, generation: int) -> bool:
        return self._generations.get(diagram_id) == generation

    def _enter(self, diagram_id: str, generation: int, state: RenderState) -> None:
        if self._is_current(diagram_id, generation):
            self._states[diagram_id] = state
            self.recovery_logger.log_stage(diagram_id, generation, state)

    async def _attempt(self, raw_text: str, normalized: str, key: str,
                       diagram_id: str, generation: int) -> RenderOutcome:
        self.stats["runs"] += 1
        start_time = time.perf_counter()
        try:
            outcome, fixes = await self._execute(raw_text, normalized, diagram_id, generation)
        finally:
            run = self._in_flight.get(diagram_id)
            if run is not None and run.generation == generation:
                del self._in_flight[diagram_id]

        if not self._is_current(diagram_id, generation):
            self.stats["superseded"] += 1
            self.recovery_logger.log_superseded(diagram_id, generation, self.generation(diagram_id))
            return Superseded(generation)

        self.cache.store(diagram_id, key, outcome)
        self._commit(diagram_id, outcome, notify=True)
        self._enter(diagram_id, generation,
                    RenderState.FAILED if isinstance(outcome, Failed) else RenderState.IDLE)
        self.recovery_logger.log_outcome(diagram_id, outcome, time.perf_counter() - start_time, fixes)
        return outcome

    def repair(self, raw_text: str) -> RepairResult:
        """Run the backend-free stages only: normalize, classify, repair, infer"""
        with time_block("normalize"):
            normalized = self.normalizer.normalize(raw_text or "")
        return self._prepare(normalized)

    def _prepare(self, normalized: str, diagram_id: Optional[str] = None,
                 generation: int = 0) -> RepairResult:
        if diagram_id is not None:
            self._enter(diagram_id, generation, RenderState.CLASSIFYING)
        with time_block("classify"):
            classification = self.classifier.classify(normalized)

        repair = RepairResult(classification.text, classification.diagram_type)
        if classification.header_added:
            repair.fixes_applied.append(f"Added missing header for {classification.diagram_type.value} diagram")

        if classification.diagram_type.is_flowchart:
            if diagram_id is not None:
                self._enter(diagram_id, generation, RenderState.REPAIRING)
            with time_block("repair"):
                cleaned, fixes = self.repairer.repair_with_report(classification.text)
                repair.cleaned_text = self.inferencer.infer_text(cleaned)
                repair.fixes_applied.extend(fixes)
        return repair

    async def _execute(self, raw_text: str, normalized: str, diagram_id: str, generation: int):
        repair = self._prepare(normalized, diagram_id, generation)
        self.recovery_logger.log_repairs(diagram_id, repair.fixes_applied)

        element_id = f"{diagram_id}-{generation}"
        try:
            self._enter(diagram_id, generation, RenderState.VALIDATING)
            visual = await self._draw(repair.cleaned_text, element_id, diagram_id, generation,
                                      RenderState.RENDERING)
            return Rendered(visual, repair.cleaned_text, repair.diagram_type), len(repair.fixes_applied)
        except DiagramRecoveryError as e:
            reason = FailureReason.from_error(e)
            self.recovery_logger.log_primary_failure(diagram_id, reason)

        self._enter(diagram_id, generation, RenderState.FALLBACK_BUILDING)
        with time_block("fallback"):
            fallback_text = self.fallback_builder.build_fallback(repair.cleaned_text)

        try:
            self._enter(diagram_id, generation, RenderState.VALIDATING_FALLBACK)
            visual = await self._draw(fallback_text, f"{element_id}-fallback", diagram_id, generation,
                                      RenderState.RENDERING_DEGRADED)
            return Degraded(visual, reason, fallback_text, raw_text), len(repair.fixes_applied)
        except DiagramRecoveryError as e:
            exhausted = FailureReason.from_error(
                FallbackExhaustedError(f"{reason.detail} (fallback: {e.detail})")
            )
            self.recovery_logger.log_exhausted(diagram_id, exhausted)

        display = self.presenter.present(raw_text, exhausted)
        return Failed(exhausted, raw_text, display), len(repair.fixes_applied)

    async def _draw(self, text: str, element_id: str, diagram_id: str, generation: int,
                    render_state: RenderState) -> str:
        """Validate then render; both kinds of failure surface as DiagramRecoveryError"""
        result = await self.validator.validate(text)
        if not result.ok:
            raise DiagramSyntaxError(result.error)

        self._enter(diagram_id, generation, render_state)
        try:
            with time_block("render"):
                return await call_backend(self.backend.render(text, element_id))
        except Exception as e:
            detail = getattr(e, "detail", None) or str(e) or e.__class__.__name__
            logger.warning(f"⚠️ Render failed for {element_id}: {detail}")
            raise DiagramRenderError(detail) from e

    def _commit(self, diagram_id: str, outcome: RenderOutcome, notify: bool) -> None:
        self._displayed[diagram_id] = outcome
        if outcome.status in self.stats:
            self.stats[outcome.status] += 1

        if not notify or not isinstance(outcome, (Degraded, Failed)) or self.on_error is None:
            return
        try:
            self.on_error(outcome.reason.user_message())
        except Exception as e:
            logger.error(f"on_error callback raised: {e}")

    def get_stats(self) -> dict:
        return {
            **self.stats,
            "in_flight": len(self._in_flight),
            "tracked_diagrams": len(self._displayed),
        }
