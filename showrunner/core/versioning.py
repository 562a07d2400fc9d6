"""
Story bible version history.

A snapshot is taken on every significant save. History is bounded: once a
story has more than MAX_VERSIONS versions, every manual save is kept plus the
AUTO_SAVES_KEPT newest auto-saves.
"""

import logging
from typing import List, Optional

from ..models import StoryContext, Version
from ..services.persistence import StoryStore

logger = logging.getLogger("showrunner.versioning")

MAX_VERSIONS = 50
AUTO_SAVES_KEPT = 20


def select_retained(versions: List[Version]) -> List[Version]:
    """Apply the retention policy to versions ordered newest first."""
    if len(versions) <= MAX_VERSIONS:
        return list(versions)
    auto_saves = [v for v in versions if v.auto_save][:AUTO_SAVES_KEPT]
    keep = {v.id for v in auto_saves} | {v.id for v in versions if not v.auto_save}
    return [v for v in versions if v.id in keep]


class VersionHistory:
    """Snapshots story bibles into the store and prunes old auto-saves."""

    def __init__(self, store: StoryStore):
        self.store = store

    async def snapshot(self, context: StoryContext, description: str, auto_save: bool = True) -> Version:
        version = Version(
            story_id=context.id,
            snapshot=context.model_copy(deep=True),
            description=description,
            auto_save=auto_save,
        )
        await self.store.save_version(version)
        await self._prune(context.id)
        logger.debug(f"[versioning] {context.id}: saved version '{description}'")
        return version

    async def list(self, story_id: str) -> List[Version]:
        return await self.store.list_versions(story_id)

    async def get(self, story_id: str, version_id: str) -> Optional[Version]:
        for version in await self.store.list_versions(story_id):
            if version.id == version_id:
                return version
        return None

    async def _prune(self, story_id: str) -> None:
        versions = await self.store.list_versions(story_id)
        retained = {v.id for v in select_retained(versions)}
        doomed = [v.id for v in versions if v.id not in retained]
        if doomed:
            await self.store.delete_versions(story_id, doomed)
            logger.info(f"[versioning] {story_id}: pruned {len(doomed)} old auto-saves")
