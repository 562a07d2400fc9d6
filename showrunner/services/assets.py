"""
Asset generation policy: fill missing character and location images only.

The image backend itself is an opaque `AssetGenerator`. Existing images are
never replaced unless `force=True`.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..core.lock import StoryBibleEditor
from ..models import Character, Location, StoryContext

logger = logging.getLogger("showrunner.assets")


class AssetGenerator(ABC):
    """Image generation capability (character portraits, location plates)."""

    @abstractmethod
    async def generate_image(self, kind: str, name: str, prompt: str) -> str:
        """Generate an image and return its URL."""
        pass


@dataclass
class AssetFillReport:
    generated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.generated)


def character_image_prompt(context: StoryContext, character: Character) -> str:
    parts = [f"Character portrait of {character.name}"]
    if character.description:
        parts.append(character.description)
    if context.genre or context.tone:
        parts.append(f"{context.genre} series, {context.tone} tone".strip(", "))
    if context.world_building.time_period:
        parts.append(f"Period: {context.world_building.time_period}")
    return ". ".join(parts)


def location_image_prompt(context: StoryContext, location: Location) -> str:
    parts = [f"Establishing shot of {location.name}"]
    if location.description:
        parts.append(location.description)
    if context.world_building.setting:
        parts.append(f"Setting: {context.world_building.setting}")
    return ". ".join(parts)


async def fill_missing_assets(
    context: StoryContext,
    generator: AssetGenerator,
    force: bool = False,
) -> Tuple[StoryContext, AssetFillReport]:
    """Generate images for characters and locations that have none.

    Args:
        context: Story bible to fill
        generator: Image backend
        force: Regenerate every image, replacing existing ones

    Returns:
        The updated story bible and a report; per-asset failures are in the report
    """
    report = AssetFillReport()
    targets: List[Tuple[str, str, str]] = []

    for character in context.characters:
        if character.image_url and not force:
            report.skipped.append(f"character:{character.name}")
        else:
            targets.append(("character", character.name, character_image_prompt(context, character)))
    for location in context.world_building.locations:
        if location.image_url and not force:
            report.skipped.append(f"location:{location.name}")
        else:
            targets.append(("location", location.name, location_image_prompt(context, location)))

    if not targets:
        return context, report

    logger.info(f"[assets] Generating {len(targets)} images for {context.id} (force={force})")
    outcomes = await asyncio.gather(
        *(generator.generate_image(kind, name, prompt) for kind, name, prompt in targets),
        return_exceptions=True,
    )

    editor = StoryBibleEditor()
    updated = context
    for (kind, name, _), outcome in zip(targets, outcomes):
        label = f"{kind}:{name}"
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException) or not outcome:
            reason = str(outcome) if isinstance(outcome, BaseException) else "no URL returned"
            logger.warning(f"[assets] {label} failed: {reason}")
            report.failed[label] = reason
            continue
        updated = editor.set_image_url(updated, kind, name, outcome)
        report.generated.append(label)

    return updated, report
