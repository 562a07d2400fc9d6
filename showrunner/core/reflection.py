"""
Episode reflection: after an episode is persisted, discover the characters,
locations and world rules it introduced so the story bible keeps up.
Reflection never fails the caller; problems yield an empty result marked
for review.
"""

import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from ..config import PipelineSettings
from ..models import Character, ContentOrigin, Episode, Location, ReflectionData, StoryContext, normalize_name
from ..prompts.reflection import REFLECTION_SYSTEM_PROMPT, build_reflection_user_prompt
from ..services.model_gateway import GenerationParams, ModelGateway

logger = logging.getLogger("showrunner.reflection")


def empty_reflection(episode_number: int) -> ReflectionData:
    return ReflectionData(episode_number=episode_number, confidence=0.0, needs_review=True)


def _parse_items(raw: Any, model, extra: dict, known: set) -> List:
    items = []
    if not isinstance(raw, list):
        return items
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            item = model.model_validate({**entry, **extra, "origin": ContentOrigin.REFLECTION})
        except ValidationError as e:
            logger.debug(f"[reflection] Skipping invalid {model.__name__}: {e}")
            continue
        key = normalize_name(item.name)
        if key in known:
            continue
        known.add(key)
        items.append(item)
    return items


def parse_reflection(data: Any, context: StoryContext, episode_number: int) -> Optional[ReflectionData]:
    """Turn model output into ReflectionData holding only genuinely new items."""
    if not isinstance(data, dict):
        return None

    known_characters = {normalize_name(name) for name in context.character_names()}
    known_locations = {normalize_name(loc.name) for loc in context.world_building.locations}
    known_rules = {normalize_name(rule) for rule in context.world_building.rules}

    characters = _parse_items(
        data.get("new_characters"), Character, {"first_appearance_episode": episode_number}, known_characters
    )
    locations = _parse_items(
        data.get("new_locations"), Location, {"first_mentioned_episode": episode_number}, known_locations
    )

    raw_rules = data.get("world_rules")
    if isinstance(raw_rules, str):
        raw_rules = [raw_rules]
    elif not isinstance(raw_rules, list):
        raw_rules = []

    rules = []
    for rule in raw_rules:
        if isinstance(rule, str) and rule.strip() and normalize_name(rule) not in known_rules:
            known_rules.add(normalize_name(rule))
            rules.append(rule.strip())

    try:
        confidence = float(data.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.0
    confidence = min(max(confidence, 0.0), 1.0)

    return ReflectionData(
        episode_number=episode_number,
        new_characters=characters,
        new_locations=locations,
        world_rules=rules,
        confidence=confidence,
        needs_review=confidence < 0.5,
    )


class EpisodeReflector:
    """Extracts new world elements from a persisted episode."""

    def __init__(self, gateway: ModelGateway, settings: Optional[PipelineSettings] = None):
        self.gateway = gateway
        self.settings = settings or PipelineSettings()

    async def reflect(self, context: StoryContext, episode: Episode) -> ReflectionData:
        result = await self.gateway.generate(
            REFLECTION_SYSTEM_PROMPT,
            build_reflection_user_prompt(context, episode),
            GenerationParams(
                temperature=self.settings.reflection.temperature,
                max_tokens=self.settings.reflection.max_tokens,
                response_format="json",
            ),
        )
        if not result.ok:
            logger.warning(f"[reflection] Episode {episode.number} reflection failed: {result.error}")
            return empty_reflection(episode.number)

        try:
            reflection = parse_reflection(result.data, context, episode.number)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[reflection] Episode {episode.number} reflection could not be parsed: {e}")
            return empty_reflection(episode.number)
        if reflection is None:
            logger.warning(f"[reflection] Episode {episode.number} reflection returned unusable data")
            return empty_reflection(episode.number)

        logger.info(
            f"[reflection] Episode {episode.number}: {len(reflection.new_characters)} characters, "
            f"{len(reflection.new_locations)} locations, {len(reflection.world_rules)} rules"
        )
        return reflection
