"""
Unit tests for episode reflection.
"""

import json
import pytest

from showrunner.core.reflection import EpisodeReflector, parse_reflection
from showrunner.models import ContentOrigin, Episode
from showrunner.tests.fakes import episode_payload, make_gateway, reflection_payload


class TestParseReflection:
    """Tests for parse_reflection."""

    def test_only_new_items_kept(self, story_bible):
        reflection = parse_reflection(reflection_payload(), story_bible, 2)

        assert [c.name for c in reflection.new_characters] == ["Marguerite Vale"]
        assert reflection.new_characters[0].origin == ContentOrigin.REFLECTION
        assert reflection.new_characters[0].first_appearance_episode == 2
        assert [loc.name for loc in reflection.new_locations] == ["The Lighthouse"]
        assert reflection.new_locations[0].first_mentioned_episode == 2
        assert reflection.world_rules == ["The lighthouse lamp has not been lit since 1987"]
        assert reflection.confidence == 0.9
        assert not reflection.needs_review

    def test_invalid_entries_skipped(self, story_bible):
        data = {
            "new_characters": [{"name": "   "}, "Just a string", {"name": "Ada"}, {"name": "ada"}],
            "new_locations": "not a list",
            "world_rules": [None, "", "Nobody talks to outsiders about the Hollis family"],
            "confidence": "high",
        }

        reflection = parse_reflection(data, story_bible, 1)

        assert [c.name for c in reflection.new_characters] == ["Ada"]
        assert reflection.new_locations == []
        assert reflection.world_rules == []
        assert reflection.confidence == 0.0
        assert reflection.needs_review

    def test_world_rules_as_single_string(self, story_bible):
        reflection = parse_reflection({"world_rules": "Magic costs blood"}, story_bible, 1)

        assert reflection.world_rules == ["Magic costs blood"]

    @pytest.mark.parametrize("value", [3, True, {"rule": "Magic costs blood"}, None])
    def test_world_rules_of_other_types_ignored(self, story_bible, value):
        reflection = parse_reflection({**reflection_payload(), "world_rules": value}, story_bible, 1)

        assert reflection.world_rules == []
        assert [c.name for c in reflection.new_characters] == ["Marguerite Vale"]

    def test_confidence_clamped(self, story_bible):
        assert parse_reflection({"confidence": 7}, story_bible, 1).confidence == 1.0
        assert parse_reflection({"confidence": -1}, story_bible, 1).confidence == 0.0

    def test_non_object(self, story_bible):
        assert parse_reflection(["a"], story_bible, 1) is None


class TestEpisodeReflector:
    """Tests for EpisodeReflector.reflect."""

    def _episode(self, story_bible):
        return Episode.model_validate({"story_id": story_bible.id, "number": 1, **episode_payload()})

    @pytest.mark.asyncio
    async def test_reflect(self, story_bible):
        gateway, primary, _ = make_gateway(lambda s, u, j: json.dumps(reflection_payload()))

        reflection = await EpisodeReflector(gateway).reflect(story_bible, self._episode(story_bible))

        assert len(reflection.new_characters) == 1
        assert primary.calls[0]["json_mode"] is True
        assert "Walter finds the letter" in primary.calls[0]["user"]

    @pytest.mark.asyncio
    async def test_failure_yields_empty_reflection(self, story_bible):
        gateway, _, _ = make_gateway(lambda s, u, j: "no json at all")

        reflection = await EpisodeReflector(gateway).reflect(story_bible, self._episode(story_bible))

        assert reflection.is_empty
        assert reflection.needs_review
        assert reflection.confidence == 0.0

    @pytest.mark.asyncio
    async def test_unexpected_shapes_never_raise(self, story_bible):
        payload = {**reflection_payload(), "new_characters": {"name": "Ada"}, "world_rules": 42}
        gateway, _, _ = make_gateway(lambda s, u, j: json.dumps(payload))

        reflection = await EpisodeReflector(gateway).reflect(story_bible, self._episode(story_bible))

        assert reflection.new_characters == []
        assert reflection.world_rules == []
        assert [loc.name for loc in reflection.new_locations] == ["The Lighthouse"]
