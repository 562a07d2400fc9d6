"""
Lock State Machine for story bibles.

A story bible is unlocked until its first episode is persisted, then locked
forever. While locked, existing narrative content is frozen: only new
characters (by the creator) and reflection discoveries (by the system) may be
appended. Asset fields such as image URLs are not narrative content.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Tuple

from ..models import (
    Character,
    ContentOrigin,
    Location,
    LockState,
    ReflectionData,
    StoryContext,
    normalize_name,
)
from .errors import ContentLocked, DuplicateCharacter, ElementNotFound, RegenerationLimitExceeded

logger = logging.getLogger("showrunner.lock")

SERIES_FIELDS = ("series_title", "synopsis", "theme", "genre", "tone")
CHARACTER_FIELDS = ("name", "archetype", "description", "arc", "motivation", "voice", "relationships")
WORLD_FIELDS = ("setting", "rules", "time_period", "cultural_context")
ARC_FIELDS = ("title", "summary", "episodes")


def compute_lock_state(episode_count: int) -> LockState:
    """Derive the lock state from the number of persisted episodes."""
    return LockState(episode_count=episode_count)


class LockStateMachine:
    """unlocked --first episode persisted--> locked; locked is terminal."""

    @staticmethod
    def on_episode_persisted(before: int, after: int) -> bool:
        """Return True when this persist moved the story bible from unlocked to locked."""
        transitioned = not compute_lock_state(before).is_locked and compute_lock_state(after).is_locked
        if transitioned:
            logger.info("[lock] Story bible locked: first episode persisted")
        return transitioned


def check_regeneration_allowed(context: StoryContext, lock: LockState, limit: int) -> None:
    """Raise if the story bible may not be regenerated."""
    if lock.is_locked:
        raise ContentLocked("cannot regenerate a story bible that has episodes")
    if context.regeneration_count >= limit:
        raise RegenerationLimitExceeded(limit)


def _check_fields(updates: Dict[str, Any], allowed: Iterable[str], what: str) -> None:
    unknown = set(updates) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown {what} field(s): {', '.join(sorted(unknown))}")


def _rebuild(context: StoryContext, **updates: Any) -> StoryContext:
    """Apply updates and re-run every StoryContext validator."""
    data = context.model_dump()
    data.update(updates)
    data["updated_at"] = datetime.utcnow()
    return StoryContext.model_validate(data)


class StoryBibleEditor:
    """Lock-aware edits. Every method returns a new StoryContext."""

    @staticmethod
    def _require_unlocked(lock: LockState, action: str) -> None:
        if not lock.can_edit_existing_content:
            raise ContentLocked(f"cannot {action}: story bible is locked")

    # ------------------------------------------------------------------
    # Edits to existing content (rejected when locked)
    # ------------------------------------------------------------------

    def update_series_fields(self, context: StoryContext, lock: LockState, updates: Dict[str, Any]) -> StoryContext:
        self._require_unlocked(lock, "edit series fields")
        _check_fields(updates, SERIES_FIELDS, "series")
        return _rebuild(context, **updates)

    def update_character(
        self, context: StoryContext, lock: LockState, name: str, updates: Dict[str, Any]
    ) -> StoryContext:
        self._require_unlocked(lock, "edit an existing character")
        _check_fields(updates, CHARACTER_FIELDS, "character")
        existing = context.find_character(name)
        if existing is None:
            raise ElementNotFound(f"character '{name}' not found")

        new_name = updates.get("name")
        if new_name and normalize_name(new_name) != normalize_name(existing.name):
            if context.find_character(new_name) is not None:
                raise DuplicateCharacter(f"character '{new_name}' already exists")

        characters = [
            {**c.model_dump(), **updates} if c is existing else c
            for c in context.characters
        ]
        return _rebuild(context, characters=characters)

    def remove_character(self, context: StoryContext, lock: LockState, name: str) -> StoryContext:
        self._require_unlocked(lock, "remove a character")
        existing = context.find_character(name)
        if existing is None:
            raise ElementNotFound(f"character '{name}' not found")
        return _rebuild(context, characters=[c for c in context.characters if c is not existing])

    def update_world_building(
        self, context: StoryContext, lock: LockState, updates: Dict[str, Any]
    ) -> StoryContext:
        self._require_unlocked(lock, "edit world building")
        _check_fields(updates, WORLD_FIELDS, "world building")
        world = context.world_building.model_dump()
        world.update(updates)
        return _rebuild(context, world_building=world)

    def update_arc(
        self, context: StoryContext, lock: LockState, title: str, updates: Dict[str, Any]
    ) -> StoryContext:
        self._require_unlocked(lock, "edit a narrative arc")
        _check_fields(updates, ARC_FIELDS, "arc")
        existing = context.find_arc(title)
        if existing is None:
            raise ElementNotFound(f"arc '{title}' not found")
        arcs = [
            {**arc.model_dump(), **updates} if arc is existing else arc.model_dump()
            for arc in context.narrative_arcs
        ]
        return _rebuild(context, narrative_arcs=arcs)

    def add_location(self, context: StoryContext, lock: LockState, location: Location) -> StoryContext:
        if not lock.can_add_location_manually:
            raise ContentLocked("cannot add locations manually: story bible is locked")
        if context.world_building.find_location(location.name) is not None:
            raise ValueError(f"location '{location.name}' already exists")
        location = location.model_copy(update={"origin": ContentOrigin.USER})
        world = context.world_building.model_copy(
            update={"locations": [*context.world_building.locations, location]}
        )
        return _rebuild(context, world_building=world.model_dump())

    def restore(self, context: StoryContext, lock: LockState, snapshot: StoryContext) -> StoryContext:
        """Replace the narrative content with a snapshot, keeping identity and counters."""
        self._require_unlocked(lock, "restore a version")
        data = snapshot.model_dump(exclude={"id", "owner_id", "regeneration_count", "revision", "created_at"})
        return _rebuild(context, **data)

    # ------------------------------------------------------------------
    # Appends (allowed when locked)
    # ------------------------------------------------------------------

    def add_character(self, context: StoryContext, character: Character) -> StoryContext:
        if context.find_character(character.name) is not None:
            raise DuplicateCharacter(f"character '{character.name}' already exists")
        character = character.model_copy(update={"origin": ContentOrigin.USER})
        return _rebuild(context, characters=[*context.characters, character])

    def set_image_url(self, context: StoryContext, kind: str, name: str, image_url: str) -> StoryContext:
        """Attach a generated asset. Not a narrative edit, so the lock does not apply."""
        if kind == "character":
            target = context.find_character(name)
            if target is None:
                raise ElementNotFound(f"character '{name}' not found")
            characters = [
                c.model_copy(update={"image_url": image_url}) if c is target else c
                for c in context.characters
            ]
            return _rebuild(context, characters=characters)

        target = context.world_building.find_location(name)
        if target is None:
            raise ElementNotFound(f"location '{name}' not found")
        locations = [
            loc.model_copy(update={"image_url": image_url}) if loc is target else loc
            for loc in context.world_building.locations
        ]
        world = context.world_building.model_copy(update={"locations": locations})
        return _rebuild(context, world_building=world.model_dump())

    def absorb_reflection(
        self, context: StoryContext, reflection: ReflectionData
    ) -> Tuple[StoryContext, int]:
        """System path: append reflection discoveries, skipping anything already known.

        Returns the new context and the number of elements added.
        """
        added = 0
        characters = list(context.characters)
        known = {normalize_name(c.name) for c in characters}
        for character in reflection.new_characters:
            key = normalize_name(character.name)
            if key in known:
                continue
            known.add(key)
            characters.append(character.model_copy(update={
                "origin": ContentOrigin.REFLECTION,
                "first_appearance_episode": character.first_appearance_episode or reflection.episode_number,
            }))
            added += 1

        locations = list(context.world_building.locations)
        known_places = {normalize_name(loc.name) for loc in locations}
        for location in reflection.new_locations:
            key = normalize_name(location.name)
            if key in known_places:
                continue
            known_places.add(key)
            locations.append(location.model_copy(update={
                "origin": ContentOrigin.REFLECTION,
                "first_mentioned_episode": location.first_mentioned_episode or reflection.episode_number,
            }))
            added += 1

        rules = list(context.world_building.rules)
        known_rules = {normalize_name(rule) for rule in rules}
        for rule in reflection.world_rules:
            key = normalize_name(rule)
            if not key or key in known_rules:
                continue
            known_rules.add(key)
            rules.append(rule)
            added += 1

        if not added:
            return context, 0

        world = context.world_building.model_copy(update={"locations": locations, "rules": rules})
        return _rebuild(context, characters=characters, world_building=world.model_dump()), added
