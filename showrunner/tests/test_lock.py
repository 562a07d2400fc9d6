"""
Unit tests for the Lock State Machine and lock-aware story bible edits.
"""

import pytest

from showrunner.core.errors import ContentLocked, DuplicateCharacter, ElementNotFound, RegenerationLimitExceeded
from showrunner.core.lock import (
    LockStateMachine,
    StoryBibleEditor,
    check_regeneration_allowed,
    compute_lock_state,
)
from showrunner.models import Character, ContentOrigin, Location, ReflectionData


UNLOCKED = compute_lock_state(0)
LOCKED = compute_lock_state(1)


class TestLockState:
    """Tests for lock derivation."""

    @pytest.mark.parametrize("count", [0, 1, 2, 7, 100])
    def test_locked_iff_episodes_exist(self, count):
        state = compute_lock_state(count)

        assert state.is_locked == (count > 0)
        assert state.can_edit_existing_content == (count == 0)
        assert state.can_add_location_manually == (count == 0)
        assert state.can_add_character is True

    def test_idempotent(self):
        """Test checking twice without a new episode yields the same state."""
        assert compute_lock_state(3) == compute_lock_state(3)
        assert compute_lock_state(0) == compute_lock_state(0)

    def test_serialized_flags(self):
        data = LOCKED.model_dump()

        assert data["is_locked"] is True
        assert data["can_add_character"] is True

    def test_transition_only_on_first_episode(self):
        assert LockStateMachine.on_episode_persisted(0, 1) is True
        assert LockStateMachine.on_episode_persisted(1, 2) is False
        assert LockStateMachine.on_episode_persisted(0, 0) is False


class TestRegenerationCheck:
    """Tests for check_regeneration_allowed."""

    def test_allowed(self, story_bible):
        check_regeneration_allowed(story_bible, UNLOCKED, 5)

    def test_limit(self, story_bible):
        exhausted = story_bible.model_copy(update={"regeneration_count": 5})

        with pytest.raises(RegenerationLimitExceeded):
            check_regeneration_allowed(exhausted, UNLOCKED, 5)

    def test_locked(self, story_bible):
        with pytest.raises(ContentLocked):
            check_regeneration_allowed(story_bible, LOCKED, 5)


class TestStoryBibleEditor:
    """Tests for StoryBibleEditor."""

    def setup_method(self):
        self.editor = StoryBibleEditor()

    def test_edit_character_when_unlocked(self, story_bible):
        updated = self.editor.update_character(story_bible, UNLOCKED, "walter brennan", {"description": "Older now."})

        assert updated.find_character("Walter Brennan").description == "Older now."
        assert story_bible.find_character("Walter Brennan").description != "Older now."

    def test_edit_character_when_locked(self, story_bible):
        with pytest.raises(ContentLocked):
            self.editor.update_character(story_bible, LOCKED, "Walter Brennan", {"description": "Older now."})

    def test_rename_onto_existing_name(self, story_bible):
        with pytest.raises(DuplicateCharacter):
            self.editor.update_character(story_bible, UNLOCKED, "Walter Brennan", {"name": "June Hollis"})

    def test_edit_unknown_character(self, story_bible):
        with pytest.raises(ElementNotFound):
            self.editor.update_character(story_bible, UNLOCKED, "Nobody", {"arc": "x"})

    def test_unknown_field(self, story_bible):
        with pytest.raises(ValueError):
            self.editor.update_character(story_bible, UNLOCKED, "Walter Brennan", {"image_url": "x"})

    def test_locked_edits_rejected(self, story_bible):
        with pytest.raises(ContentLocked):
            self.editor.update_series_fields(story_bible, LOCKED, {"theme": "New"})
        with pytest.raises(ContentLocked):
            self.editor.update_world_building(story_bible, LOCKED, {"setting": "Elsewhere"})
        with pytest.raises(ContentLocked):
            self.editor.update_arc(story_bible, LOCKED, "The Reopening", {"summary": "x"})
        with pytest.raises(ContentLocked):
            self.editor.remove_character(story_bible, LOCKED, "June Hollis")
        with pytest.raises(ContentLocked):
            self.editor.add_location(story_bible, LOCKED, Location(name="Pier"))

    def test_unlocked_edits(self, story_bible):
        updated = self.editor.update_series_fields(story_bible, UNLOCKED, {"theme": "New"})
        updated = self.editor.update_world_building(updated, UNLOCKED, {"setting": "Elsewhere"})
        updated = self.editor.update_arc(updated, UNLOCKED, "The Reopening", {"summary": "Rewritten"})
        updated = self.editor.remove_character(updated, UNLOCKED, "June Hollis")
        updated = self.editor.add_location(updated, UNLOCKED, Location(name="Pier"))

        assert updated.theme == "New"
        assert updated.world_building.setting == "Elsewhere"
        assert updated.find_arc("The Reopening").summary == "Rewritten"
        assert updated.find_character("June Hollis") is None
        assert updated.world_building.find_location("Pier").origin == ContentOrigin.USER

    def test_arc_edit_cannot_duplicate_episode_numbers(self, story_bible):
        with pytest.raises(ValueError):
            self.editor.update_arc(
                story_bible, UNLOCKED, "The Truth", {"episodes": [{"number": 1, "title": "Dup"}]}
            )

    def test_add_character_allowed_when_locked(self, story_bible):
        updated = self.editor.add_character(story_bible, Character(name="Marguerite Vale"))

        added = updated.find_character("Marguerite Vale")
        assert added.origin == ContentOrigin.USER
        assert len(updated.characters) == len(story_bible.characters) + 1

    def test_add_duplicate_character(self, story_bible):
        with pytest.raises(DuplicateCharacter):
            self.editor.add_character(story_bible, Character(name="  WALTER   brennan "))

    def test_set_image_url_ignores_lock(self, story_bible):
        updated = self.editor.set_image_url(story_bible, "location", "Brennan House", "https://img/1.png")

        assert updated.world_building.find_location("Brennan House").image_url == "https://img/1.png"

    def test_absorb_reflection_appends_only_new(self, story_bible):
        reflection = ReflectionData(
            episode_number=2,
            new_characters=[Character(name="Marguerite Vale"), Character(name="Walter Brennan", description="x")],
            new_locations=[Location(name="The Lighthouse")],
            world_rules=["Nobody talks to outsiders about the Hollis family", "The lamp is dark"],
            confidence=0.9,
        )

        updated, added = self.editor.absorb_reflection(story_bible, reflection)

        assert added == 3
        marguerite = updated.find_character("Marguerite Vale")
        assert marguerite.origin == ContentOrigin.REFLECTION
        assert marguerite.first_appearance_episode == 2
        assert updated.find_character("Walter Brennan").description == story_bible.find_character("Walter Brennan").description
        assert updated.world_building.rules[-1] == "The lamp is dark"
        assert updated.world_building.find_location("The Lighthouse").first_mentioned_episode == 2

    def test_absorb_nothing_new(self, story_bible):
        updated, added = self.editor.absorb_reflection(story_bible, ReflectionData(episode_number=1))

        assert added == 0
        assert updated is story_bible

    def test_restore_keeps_identity(self, story_bible):
        edited = self.editor.update_series_fields(story_bible, UNLOCKED, {"series_title": "Changed"})
        edited = edited.model_copy(update={"regeneration_count": 3, "revision": 9})

        restored = self.editor.restore(edited, UNLOCKED, story_bible)

        assert restored.series_title == "The Last Case"
        assert restored.regeneration_count == 3
        assert restored.revision == 9
        assert restored.id == story_bible.id

    def test_restore_locked(self, story_bible):
        with pytest.raises(ContentLocked):
            self.editor.restore(story_bible, LOCKED, story_bible)
