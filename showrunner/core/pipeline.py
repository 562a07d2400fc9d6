"""
Generation Pipeline - Draft -> Enhancement Engines -> Synthesis.

One `run()` is one invocation with its own state machine:

    drafting -> enhancing -> synthesizing -> done
        \\__________\\______________\\______> failed

The pipeline never persists anything and never raises for generation
failures; the outcome is reported on the returned `PipelineRun`.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..config import PipelineSettings
from ..models import ArtifactKind
from ..prompts.drafting import build_draft_system_prompt, build_draft_user_prompt
from ..services.model_gateway import GenerationParams, ModelGateway
from .engine_orchestrator import EngineOrchestrator, OrchestratorMetadata
from .errors import GenerationError, GenerationErrorKind
from .requests import Draft, GenerationRequest
from .synthesis import Artifact, SynthesisStage

logger = logging.getLogger("showrunner.pipeline")


class PipelineStage(str, Enum):
    DRAFTING = "drafting"
    ENHANCING = "enhancing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PipelineStage.DRAFTING: {PipelineStage.ENHANCING, PipelineStage.FAILED},
    PipelineStage.ENHANCING: {PipelineStage.SYNTHESIZING, PipelineStage.FAILED},
    PipelineStage.SYNTHESIZING: {PipelineStage.DONE, PipelineStage.FAILED},
    PipelineStage.DONE: set(),
    PipelineStage.FAILED: set(),
}


class FailureStage(str, Enum):
    """Where a failed run stopped."""
    DRAFTING = "drafting_failed"
    SYNTHESIS = "synthesis_failed"


@dataclass
class StageTransition:
    stage: PipelineStage
    at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class PipelineRun:
    """State and outcome of one pipeline invocation."""
    request: GenerationRequest
    stage: PipelineStage = PipelineStage.DRAFTING
    transitions: List[StageTransition] = field(
        default_factory=lambda: [StageTransition(PipelineStage.DRAFTING)]
    )
    draft: Optional[Draft] = None
    engine_metadata: Optional[OrchestratorMetadata] = None
    artifact: Optional[Artifact] = None
    error: Optional[GenerationError] = None
    failure: Optional[FailureStage] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == PipelineStage.DONE

    def advance(self, stage: PipelineStage) -> None:
        if stage not in ALLOWED_TRANSITIONS[self.stage]:
            raise RuntimeError(f"Illegal pipeline transition {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.transitions.append(StageTransition(stage))

    def fail(self, failure: FailureStage, error: GenerationError) -> "PipelineRun":
        self.failure = failure
        self.error = error
        self.advance(PipelineStage.FAILED)
        return self


class GenerationPipeline:
    """Runs one artifact through draft, enhancement and synthesis."""

    def __init__(
        self,
        gateway: ModelGateway,
        orchestrator: EngineOrchestrator,
        synthesis: SynthesisStage,
        settings: Optional[PipelineSettings] = None,
    ):
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.synthesis = synthesis
        self.settings = settings or PipelineSettings()

    async def run(self, request: GenerationRequest) -> PipelineRun:
        run = PipelineRun(request=request)
        label = request.describe()
        logger.info(f"[pipeline] Starting {label}")

        # Drafting
        draft_result = await self.gateway.generate(
            build_draft_system_prompt(request),
            build_draft_user_prompt(request),
            GenerationParams(
                temperature=self.settings.draft.temperature,
                max_tokens=self.settings.draft.max_tokens,
                response_format="json",
            ),
        )
        if not draft_result.ok:
            logger.error(f"[pipeline] Drafting failed for {label}: {draft_result.error}")
            return run.fail(FailureStage.DRAFTING, draft_result.error)

        content = draft_result.data if isinstance(draft_result.data, dict) else {}
        draft = Draft(kind=request.kind, content=content, raw_text=draft_result.text)
        if draft.is_empty:
            logger.error(f"[pipeline] Drafting produced an empty draft for {label}")
            return run.fail(
                FailureStage.DRAFTING,
                GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "empty draft"),
            )
        run.draft = draft
        run.advance(PipelineStage.ENHANCING)

        # Enhancing never fails the pipeline
        engine_result = await self.orchestrator.run(
            draft, request.context, request.kind, request.engine_ids
        )
        run.engine_metadata = engine_result.metadata
        run.advance(PipelineStage.SYNTHESIZING)

        # Synthesis
        synthesis_result = await self.synthesis.synthesize(request, draft, engine_result.notes)
        if not synthesis_result.ok:
            logger.error(f"[pipeline] Synthesis failed for {label}: {synthesis_result.error}")
            return run.fail(FailureStage.SYNTHESIS, synthesis_result.error)

        artifact = synthesis_result.artifact
        if request.kind != ArtifactKind.STORY_BIBLE:
            artifact = artifact.model_copy(
                update={"engine_report": engine_result.metadata.to_summary()}
            )
        run.artifact = artifact
        run.advance(PipelineStage.DONE)

        logger.info(
            f"[pipeline] Finished {label} "
            f"({engine_result.metadata.successful}/{engine_result.metadata.total_run} engines succeeded)"
        )
        return run
