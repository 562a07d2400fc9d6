"""
Unit tests for enhancement engines and the engine registry.
"""

import pytest

from showrunner.engines import (
    DEFAULT_ENGINES,
    DOCUMENT_ENGINES,
    EngineRegistry,
    EnhancementEngine,
    build_default_registry,
)
from showrunner.core.requests import Draft
from showrunner.models import ArtifactKind, EnginePhase, StoryContext
from showrunner.services.llm_clients import ContentRejectedError
from showrunner.tests.fakes import make_gateway


def _engine(engine_id, phase=EnginePhase.NARRATIVE, kinds=(ArtifactKind.EPISODE,), **kwargs):
    return EnhancementEngine(
        id=engine_id,
        name=engine_id.title(),
        phase=phase,
        artifact_kinds=kinds,
        system_prompt=f"ENGINE:{engine_id}",
        task_prompt="Improve it.",
        **kwargs,
    )


def _context(genre="", tone=""):
    return StoryContext(owner_id="user-1", premise="A premise", genre=genre, tone=tone)


class TestEngineRegistry:
    """Tests for EngineRegistry."""

    def test_default_registry_has_every_engine(self):
        """Test the built-in catalog registers cleanly with unique ids."""
        registry = build_default_registry()

        assert len(registry) == len(DEFAULT_ENGINES)
        assert "dialogue" in registry
        assert registry.get("mystery-construction").phase == EnginePhase.GENRE

    def test_duplicate_id_rejected(self):
        registry = EngineRegistry([_engine("pacing")])

        with pytest.raises(ValueError):
            registry.register(_engine("pacing"))

    def test_unknown_engine(self):
        with pytest.raises(KeyError):
            EngineRegistry().get("nope")

    def test_select_filters_by_artifact_kind(self):
        """Test production engines never run on story bibles."""
        registry = build_default_registry()

        selected = registry.select(ArtifactKind.STORY_BIBLE, _context())

        assert selected
        assert all(ArtifactKind.STORY_BIBLE in e.artifact_kinds for e in selected)
        assert not any(e.phase == EnginePhase.PRODUCTION for e in selected)

    def test_genre_engines_follow_genre_and_tone(self):
        """Test genre-specific engines only apply when the genre or tone matches."""
        registry = build_default_registry()

        plain = {e.id for e in registry.select(ArtifactKind.EPISODE, _context("Drama", "Warm"))}
        mystery = {e.id for e in registry.select(ArtifactKind.EPISODE, _context("Mystery thriller", "Dark"))}

        assert "mystery-construction" not in plain
        assert "comedy-timing" not in plain
        assert "mystery-construction" in mystery
        assert "horror-atmosphere" in mystery
        assert "romance-chemistry" not in mystery

    def test_select_narrowed_by_ids_keeps_catalog_order(self):
        registry = build_default_registry()

        selected = registry.select(
            ArtifactKind.PREPRODUCTION, _context(), ["sound-design", "storyboard"]
        )

        assert [e.id for e in selected] == ["storyboard", "sound-design"]

    def test_select_unknown_id_raises(self):
        with pytest.raises(KeyError):
            build_default_registry().select(ArtifactKind.EPISODE, _context(), ["made-up"])

    def test_document_engines_are_registered_production_engines(self):
        registry = build_default_registry()

        for engine_ids in DOCUMENT_ENGINES.values():
            for engine_id in engine_ids:
                assert registry.get(engine_id).phase == EnginePhase.PRODUCTION


class TestEnhancementEngine:
    """Tests for EnhancementEngine.enhance."""

    def setup_method(self):
        self.draft = Draft(kind=ArtifactKind.EPISODE, content={"title": "Pilot"})
        self.context = _context("Mystery", "Dark")

    @pytest.mark.asyncio
    async def test_success_note(self):
        gateway, primary, _ = make_gateway(lambda s, u, j: "  - Cut the first scene  ")
        engine = _engine("pacing", temperature=0.8, max_tokens=900)

        note = await engine.enhance(gateway, self.draft, self.context)

        assert note.success
        assert note.guidance == "- Cut the first scene"
        assert note.engine_id == "pacing"
        assert primary.calls[0]["temperature"] == 0.8
        assert primary.calls[0]["max_tokens"] == 900
        assert "ENGINE:pacing" in primary.calls[0]["system"]
        assert "Mystery" in primary.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_failure_becomes_note(self):
        """Test engine failures are reported, never raised."""
        gateway, _, _ = make_gateway(lambda s, u, j: ContentRejectedError("blocked"))

        note = await _engine("pacing").enhance(gateway, self.draft, self.context)

        assert not note.success
        assert "content_rejected" in note.error
        assert note.guidance == ""

    @pytest.mark.asyncio
    async def test_prior_notes_in_prompt(self):
        gateway, primary, _ = make_gateway(lambda s, u, j: "- ok")
        prior = await _engine("dialogue").enhance(gateway, self.draft, self.context)

        await _engine("mystery", phase=EnginePhase.GENRE).enhance(gateway, self.draft, self.context, [prior])

        assert "Notes Already Given by Other Engines" in primary.calls[-1]["user"]
        assert "Notes Already Given by Other Engines" not in primary.calls[0]["user"]
