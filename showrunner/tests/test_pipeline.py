"""
Unit tests for the Generation Pipeline state machine.
"""

import pytest

from showrunner.config import PipelineSettings
from showrunner.core.engine_orchestrator import EngineOrchestrator
from showrunner.core.errors import GenerationErrorKind
from showrunner.core.pipeline import FailureStage, GenerationPipeline, PipelineRun, PipelineStage
from showrunner.core.requests import GenerationRequest
from showrunner.core.synthesis import SynthesisStage
from showrunner.engines import build_default_registry
from showrunner.models import DocumentType, Episode, StoryContext
from showrunner.tests.fakes import make_gateway


def _pipeline(gateway):
    settings = PipelineSettings()
    orchestrator = EngineOrchestrator(gateway, build_default_registry(), settings)
    return GenerationPipeline(gateway, orchestrator, SynthesisStage(gateway, settings), settings)


class TestPipelineRun:
    """Tests for PipelineRun transitions."""

    def test_illegal_transition_rejected(self, story_bible):
        run = PipelineRun(request=GenerationRequest.for_episode(story_bible, 1, []))

        with pytest.raises(RuntimeError):
            run.advance(PipelineStage.DONE)

    def test_terminal_states(self, story_bible):
        run = PipelineRun(request=GenerationRequest.for_episode(story_bible, 1, []))
        run.advance(PipelineStage.ENHANCING)
        run.advance(PipelineStage.SYNTHESIZING)
        run.advance(PipelineStage.DONE)

        with pytest.raises(RuntimeError):
            run.advance(PipelineStage.FAILED)


class TestGenerationPipeline:
    """Tests for GenerationPipeline.run."""

    @pytest.mark.asyncio
    async def test_story_bible_happy_path(self, studio):
        gateway, _, _ = make_gateway(studio)
        seed = StoryContext(
            owner_id="user-1", premise="A retired detective takes one last case",
            genre="Mystery thriller", tone="Dark",
        )

        run = await _pipeline(gateway).run(GenerationRequest.for_story_bible(seed))

        assert run.succeeded
        assert [t.stage for t in run.transitions] == [
            PipelineStage.DRAFTING,
            PipelineStage.ENHANCING,
            PipelineStage.SYNTHESIZING,
            PipelineStage.DONE,
        ]
        assert run.artifact.id == seed.id
        assert len(run.artifact.characters) == 7
        assert studio.counts["draft"] == 1
        assert studio.counts["synthesis"] == 1
        assert studio.counts["engine"] == run.engine_metadata.total_run
        assert run.engine_metadata.total_run > 0

    @pytest.mark.asyncio
    async def test_draft_uses_draft_preset(self, studio, story_bible):
        gateway, primary, _ = make_gateway(studio)

        await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        draft_call = primary.calls[0]
        assert draft_call["json_mode"] is True
        assert draft_call["temperature"] == PipelineSettings().draft.temperature

    @pytest.mark.asyncio
    async def test_episode_carries_engine_report(self, studio, story_bible):
        studio.engine_failures = 1
        gateway, _, _ = make_gateway(studio)

        run = await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        assert run.succeeded
        episode = run.artifact
        assert isinstance(episode, Episode)
        report = episode.engine_report
        assert report.failed == 1
        assert report.successful == report.total_run - 1
        assert report.quality_indicator == f"{report.total_run - 1}/{report.total_run} engines succeeded"

    @pytest.mark.asyncio
    async def test_drafting_failure(self, studio, story_bible):
        studio.fail_stage = "draft"
        gateway, _, _ = make_gateway(studio)

        run = await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        assert run.stage == PipelineStage.FAILED
        assert run.failure == FailureStage.DRAFTING
        assert run.error.kind == GenerationErrorKind.UPSTREAM_ERROR
        assert studio.counts["engine"] == 0

    @pytest.mark.asyncio
    async def test_empty_draft_is_drafting_failure(self, studio, story_bible):
        studio.episode = {"title": "", "scenes": []}
        gateway, _, _ = make_gateway(studio)

        run = await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        assert run.failure == FailureStage.DRAFTING
        assert run.error.kind == GenerationErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_synthesis_failure(self, studio, story_bible):
        studio.synthesis_outputs = ["not json", "still not json"]
        gateway, _, _ = make_gateway(studio)

        run = await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        assert run.failure == FailureStage.SYNTHESIS
        assert run.transitions[-2].stage == PipelineStage.SYNTHESIZING
        assert run.artifact is None

    @pytest.mark.asyncio
    async def test_all_engines_failing_still_synthesizes(self, studio, story_bible):
        """Test enhancement never blocks synthesis."""
        studio.engine_failures = 1000
        gateway, _, _ = make_gateway(studio)

        run = await _pipeline(gateway).run(GenerationRequest.for_episode(story_bible, 1, []))

        assert run.succeeded
        assert run.artifact.engine_report.successful == 0
        assert run.artifact.scenes

    @pytest.mark.asyncio
    async def test_preproduction_document(self, studio, story_bible):
        gateway, _, _ = make_gateway(studio)
        episode = Episode.model_validate({
            "story_id": story_bible.id, "number": 1,
            **{k: v for k, v in studio.episode.items()},
        })
        request = GenerationRequest.for_preproduction(story_bible, episode, DocumentType.CASTING)
        request.engine_ids = ["casting"]

        run = await _pipeline(gateway).run(request)

        assert run.succeeded
        assert run.artifact.document_type == DocumentType.CASTING
        assert run.artifact.episode_number == 1
        assert run.artifact.engine_report.succeeded == ["casting"]
