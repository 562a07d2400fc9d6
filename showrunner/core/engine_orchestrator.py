"""
Engine Orchestrator - runs the active enhancement engines over a draft.

Phases run in declared order. Consecutive phases that do not depend on
earlier notes share one concurrent wave; a dependent phase waits for every
earlier wave to settle and receives their successful notes. Engine failures
never abort the run.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import PipelineSettings
from ..engines import EngineRegistry, EnhancementEngine
from ..models import ArtifactKind, EngineRunSummary, EnhancementNote, EnginePhase, StoryContext
from ..services.model_gateway import ModelGateway
from .requests import Draft

logger = logging.getLogger("showrunner.orchestrator")


@dataclass(frozen=True)
class PhaseSpec:
    """A phase and whether it needs the notes of the phases before it."""
    phase: EnginePhase
    depends_on_prior_notes: bool = False


DEFAULT_PHASES: Tuple[PhaseSpec, ...] = (
    PhaseSpec(EnginePhase.NARRATIVE),
    PhaseSpec(EnginePhase.DIALOGUE),
    PhaseSpec(EnginePhase.WORLD),
    PhaseSpec(EnginePhase.FORMAT),
    PhaseSpec(EnginePhase.GENRE, depends_on_prior_notes=True),
    PhaseSpec(EnginePhase.PRODUCTION, depends_on_prior_notes=True),
)


@dataclass
class OrchestratorMetadata:
    total_run: int = 0
    successful: int = 0
    failed: int = 0
    per_engine_status: Dict[str, bool] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    success_rate: float = 1.0
    healthy: bool = True
    phase_durations_ms: Dict[str, int] = field(default_factory=dict)

    def to_summary(self) -> EngineRunSummary:
        return EngineRunSummary(
            total_run=self.total_run,
            successful=self.successful,
            failed=self.failed,
            succeeded=[engine_id for engine_id, ok in self.per_engine_status.items() if ok],
            failed_engines=[engine_id for engine_id, ok in self.per_engine_status.items() if not ok],
            healthy=self.healthy,
        )


@dataclass
class OrchestratorResult:
    notes: List[EnhancementNote]
    metadata: OrchestratorMetadata


def plan_waves(phases: Sequence[PhaseSpec]) -> List[List[PhaseSpec]]:
    """Group phases into waves of concurrently runnable phases."""
    waves: List[List[PhaseSpec]] = []
    current: List[PhaseSpec] = []
    for spec in phases:
        if spec.depends_on_prior_notes:
            if current:
                waves.append(current)
                current = []
            waves.append([spec])
        else:
            current.append(spec)
    if current:
        waves.append(current)
    return waves


class EngineOrchestrator:
    """Runs enhancement engines phase by phase with partial-failure tolerance."""

    def __init__(
        self,
        gateway: ModelGateway,
        registry: EngineRegistry,
        settings: Optional[PipelineSettings] = None,
        phases: Sequence[PhaseSpec] = DEFAULT_PHASES,
    ):
        self.gateway = gateway
        self.registry = registry
        self.settings = settings or PipelineSettings()
        self.phases = tuple(phases)
        self.waves = plan_waves(self.phases)

    async def run(
        self,
        draft: Draft,
        context: StoryContext,
        kind: ArtifactKind,
        engine_ids: Optional[Sequence[str]] = None,
    ) -> OrchestratorResult:
        engines = self.registry.select(kind, context, engine_ids)
        by_phase: Dict[EnginePhase, List[EnhancementEngine]] = {}
        for engine in engines:
            by_phase.setdefault(engine.phase, []).append(engine)

        logger.info(
            f"[orchestrator] Running {len(engines)} engines for {kind.value} "
            f"across {len(by_phase)} phases"
        )

        metadata = OrchestratorMetadata()
        all_notes: List[EnhancementNote] = []

        for wave in self.waves:
            runnable = [spec for spec in wave if by_phase.get(spec.phase)]
            if not runnable:
                continue
            prior = [note for note in all_notes if note.success]
            results = await asyncio.gather(*(
                self._run_phase(
                    spec,
                    by_phase[spec.phase],
                    draft,
                    context,
                    prior if spec.depends_on_prior_notes else (),
                )
                for spec in runnable
            ))
            for spec, (notes, duration_ms) in zip(runnable, results):
                metadata.phase_durations_ms[spec.phase.value] = duration_ms
                all_notes.extend(notes)

        for note in all_notes:
            metadata.per_engine_status[note.engine_id] = note.success
            if not note.success:
                metadata.errors[note.engine_id] = note.error or "unknown error"
        metadata.total_run = len(all_notes)
        metadata.successful = sum(1 for note in all_notes if note.success)
        metadata.failed = metadata.total_run - metadata.successful
        metadata.success_rate = (
            metadata.successful / metadata.total_run if metadata.total_run else 1.0
        )
        metadata.healthy = metadata.success_rate >= self.settings.engine_success_threshold

        if metadata.healthy:
            logger.info(
                f"[orchestrator] {metadata.successful}/{metadata.total_run} engines succeeded"
            )
        else:
            logger.warning(
                f"[orchestrator] DEGRADED run: {metadata.successful}/{metadata.total_run} "
                f"engines succeeded (failed: {', '.join(metadata.errors)})"
            )

        return OrchestratorResult(
            notes=[note for note in all_notes if note.success],
            metadata=metadata,
        )

    async def _run_phase(
        self,
        spec: PhaseSpec,
        engines: List[EnhancementEngine],
        draft: Draft,
        context: StoryContext,
        prior_notes: Sequence[EnhancementNote],
    ) -> Tuple[List[EnhancementNote], int]:
        start_time = time.time()
        outcomes = await asyncio.gather(
            *(
                engine.enhance(
                    self.gateway,
                    draft,
                    context,
                    prior_notes,
                    timeout_seconds=self.settings.engine_timeout_seconds,
                )
                for engine in engines
            ),
            return_exceptions=True,
        )

        notes: List[EnhancementNote] = []
        for engine, outcome in zip(engines, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"[orchestrator] Engine {engine.id} raised: {outcome}")
                notes.append(EnhancementNote(
                    engine_id=engine.id,
                    phase=engine.phase,
                    success=False,
                    error=f"unexpected: {outcome}",
                ))
            else:
                notes.append(outcome)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"[orchestrator] Phase {spec.phase.value} settled in {duration_ms}ms")
        return notes, duration_ms
