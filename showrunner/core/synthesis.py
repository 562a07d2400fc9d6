"""
Synthesis Stage - merges draft, enhancement notes and the full story bible
into the final, validated artifact.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from ..config import PipelineSettings
from ..models import (
    ArtifactKind,
    EnhancementNote,
    Episode,
    PreProductionDocument,
    StoryContext,
)
from ..prompts.synthesis import build_synthesis_system_prompt, build_synthesis_user_prompt
from ..services.model_gateway import GenerationParams, ModelGateway
from .errors import GenerationError, GenerationErrorKind
from .requests import Draft, GenerationRequest

logger = logging.getLogger("showrunner.synthesis")

Artifact = Union[StoryContext, Episode, PreProductionDocument]

# Fields the model may set on a story bible; identity and bookkeeping come from the seed
STORY_BIBLE_FIELDS = (
    "series_title", "synopsis", "theme", "genre", "tone",
    "characters", "narrative_arcs", "world_building",
)


@dataclass
class SynthesisResult:
    artifact: Optional[Artifact] = None
    error: Optional[GenerationError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.artifact is not None


def build_artifact(request: GenerationRequest, data: Any) -> Artifact:
    """Validate model output into the requested entity. Raises ValueError/ValidationError."""
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    if request.kind == ArtifactKind.STORY_BIBLE:
        seed = request.context
        payload = seed.model_dump(exclude=set(STORY_BIBLE_FIELDS))
        for name in STORY_BIBLE_FIELDS:
            if data.get(name) not in (None, ""):
                payload[name] = data[name]
        payload.setdefault("genre", seed.genre)
        payload.setdefault("tone", seed.tone)
        payload["updated_at"] = datetime.utcnow()
        return StoryContext.model_validate(payload)

    if request.kind == ArtifactKind.EPISODE:
        return Episode.model_validate({
            "story_id": request.context.id,
            "number": request.episode_number,
            "title": data.get("title"),
            "synopsis": data.get("synopsis") or "",
            "scenes": data.get("scenes"),
            "branching_options": data.get("branching_options"),
        })

    return PreProductionDocument.model_validate({
        "story_id": request.context.id,
        "episode_number": request.episode_number,
        "document_type": request.document_type,
        "title": data.get("title"),
        "summary": data.get("summary") or "",
        "sections": data.get("sections"),
    })


class SynthesisStage:
    """Produces the final artifact; one strict retry on malformed output."""

    def __init__(self, gateway: ModelGateway, settings: Optional[PipelineSettings] = None):
        self.gateway = gateway
        self.settings = settings or PipelineSettings()

    async def synthesize(
        self,
        request: GenerationRequest,
        draft: Draft,
        notes: Sequence[EnhancementNote],
    ) -> SynthesisResult:
        user_prompt = build_synthesis_user_prompt(request, draft, notes)
        params = GenerationParams(
            temperature=self.settings.synthesis.temperature,
            max_tokens=self.settings.synthesis.max_tokens,
            response_format="json",
        )

        problem = ""
        attempts = 0
        for attempt in range(2):
            system_prompt = build_synthesis_system_prompt(request.kind, strict_problem=problem)
            result = await self.gateway.generate(system_prompt, user_prompt, params)
            attempts += result.attempts

            if not result.ok:
                if result.error.kind != GenerationErrorKind.MALFORMED_RESPONSE:
                    logger.error(f"[synthesis] {request.describe()} failed: {result.error}")
                    return SynthesisResult(error=result.error, attempts=attempts)
                problem = result.error.message
            else:
                try:
                    artifact = build_artifact(request, result.data)
                    logger.info(
                        f"[synthesis] {request.describe()} synthesized from "
                        f"{len(notes)} notes on attempt {attempt + 1}"
                    )
                    return SynthesisResult(artifact=artifact, attempts=attempts)
                except (ValidationError, ValueError) as e:
                    problem = f"the JSON did not match the schema ({e})"

            logger.warning(f"[synthesis] {request.describe()} attempt {attempt + 1} malformed: {problem}")

        return SynthesisResult(
            error=GenerationError(
                kind=GenerationErrorKind.MALFORMED_RESPONSE,
                message=f"synthesis output unusable after strict retry: {problem}",
            ),
            attempts=attempts,
        )
