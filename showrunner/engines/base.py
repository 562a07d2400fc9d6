"""
Base Enhancement Engine implementation.

An engine is a declarative record (prompts, sampling, applicability) plus one
async operation that turns a draft into an `EnhancementNote`. Engines never
raise: any failure becomes a note with `success=False`.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

from ..models import ArtifactKind, EnhancementNote, EnginePhase, StoryContext
from ..prompts.engines import build_engine_system_prompt, build_engine_user_prompt
from ..services.model_gateway import GenerationParams

if TYPE_CHECKING:
    from ..core.requests import Draft
    from ..services.model_gateway import ModelGateway

logger = logging.getLogger("showrunner.engines")


@dataclass(frozen=True)
class EnhancementEngine:
    """A specialist that analyses a draft and returns guidance for synthesis."""
    id: str
    name: str
    phase: EnginePhase
    artifact_kinds: Tuple[ArtifactKind, ...]
    system_prompt: str
    task_prompt: str
    instructions: Tuple[str, ...] = ()
    temperature: float = 0.85
    max_tokens: int = 1500
    # Genre engines only apply when the series genre or tone mentions one of these
    genre_keywords: Tuple[str, ...] = ()
    tone_keywords: Tuple[str, ...] = ()

    @property
    def is_genre_specific(self) -> bool:
        return bool(self.genre_keywords or self.tone_keywords)

    def applies_to(self, context: StoryContext, kind: ArtifactKind) -> bool:
        if kind not in self.artifact_kinds:
            return False
        if not self.is_genre_specific:
            return True
        genre = (context.genre or "").lower()
        tone = (context.tone or "").lower()
        return (
            any(keyword in genre for keyword in self.genre_keywords)
            or any(keyword in tone for keyword in self.tone_keywords)
        )

    async def enhance(
        self,
        gateway: "ModelGateway",
        draft: "Draft",
        context: StoryContext,
        prior_notes: Sequence[EnhancementNote] = (),
        timeout_seconds: Optional[float] = None,
    ) -> EnhancementNote:
        """Run this engine against the draft. Failures are reported in the note."""
        start_time = time.time()

        def elapsed_ms() -> int:
            return int((time.time() - start_time) * 1000)

        try:
            result = await gateway.generate(
                build_engine_system_prompt(self, context),
                build_engine_user_prompt(self, draft, context, prior_notes),
                GenerationParams(
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    timeout_seconds=timeout_seconds,
                ),
            )
        except Exception as e:
            logger.warning(f"[{self.id}] Unexpected engine error: {e}")
            return EnhancementNote(
                engine_id=self.id,
                phase=self.phase,
                success=False,
                error=f"unexpected: {e}",
                duration_ms=elapsed_ms(),
            )

        if not result.ok:
            logger.warning(f"[{self.id}] Engine failed: {result.error}")
            return EnhancementNote(
                engine_id=self.id,
                phase=self.phase,
                success=False,
                error=str(result.error),
                duration_ms=elapsed_ms(),
            )

        logger.debug(f"[{self.id}] Engine produced {len(result.text)} chars in {elapsed_ms()}ms")
        return EnhancementNote(
            engine_id=self.id,
            phase=self.phase,
            guidance=result.text.strip(),
            success=True,
            duration_ms=elapsed_ms(),
        )
