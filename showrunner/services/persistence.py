"""
Persistence boundary for Showrunner

`StoryStore` is the contract the service writes through: story bibles with
compare-and-swap on `revision`, append-only episodes, versions and
pre-production documents. `InMemoryStoryStore` is the reference
implementation used by the API process and the tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..models import DocumentType, Episode, PreProductionDocument, StoryContext, Version

logger = logging.getLogger("showrunner.persistence")


@dataclass(frozen=True)
class PutResult:
    """Outcome of a conditional write."""
    ok: bool
    revision: Optional[int] = None
    reason: str = ""

    @classmethod
    def conflict(cls, reason: str) -> "PutResult":
        return cls(ok=False, reason=reason)


class StoryStore(ABC):
    """Abstract persistence boundary."""

    @abstractmethod
    async def get(self, story_id: str) -> Optional[StoryContext]:
        """Fetch a story bible by id, or None."""

    @abstractmethod
    async def put(self, context: StoryContext, expected_revision: Optional[int] = None) -> PutResult:
        """
        Store a story bible.

        Args:
            context: The story bible to write
            expected_revision: When given, the write only succeeds if the stored
                revision still equals this value

        Returns:
            PutResult with the new revision, or a conflict
        """

    @abstractmethod
    async def append_episode(self, episode: Episode) -> PutResult:
        """Append the next episode; a duplicate or out-of-order number is a conflict."""

    @abstractmethod
    async def replace_episode(self, episode: Episode) -> PutResult:
        """Overwrite an existing episode (scene edits, chosen path)."""

    @abstractmethod
    async def get_episode(self, story_id: str, number: int) -> Optional[Episode]:
        """Fetch one episode."""

    @abstractmethod
    async def list_episodes(self, story_id: str) -> List[Episode]:
        """All episodes of a story, ordered by number."""

    @abstractmethod
    async def save_version(self, version: Version) -> None:
        """Store a version snapshot."""

    @abstractmethod
    async def list_versions(self, story_id: str) -> List[Version]:
        """Versions of a story, newest first."""

    @abstractmethod
    async def delete_versions(self, story_id: str, version_ids: Iterable[str]) -> None:
        """Remove pruned versions."""

    @abstractmethod
    async def save_document(self, document: PreProductionDocument) -> None:
        """Store (or replace) a pre-production document."""

    @abstractmethod
    async def list_documents(
        self, story_id: str, episode_number: Optional[int] = None
    ) -> List[PreProductionDocument]:
        """Pre-production documents of a story, optionally for one episode."""

    async def count_episodes(self, story_id: str) -> int:
        return len(await self.list_episodes(story_id))


class InMemoryStoryStore(StoryStore):
    """Process-local store. Every read and write is a deep copy."""

    def __init__(self):
        self._stories: Dict[str, StoryContext] = {}
        self._episodes: Dict[str, Dict[int, Episode]] = {}
        self._versions: Dict[str, List[Version]] = {}
        self._documents: Dict[str, Dict[tuple, PreProductionDocument]] = {}
        self._lock = asyncio.Lock()

    async def get(self, story_id: str) -> Optional[StoryContext]:
        stored = self._stories.get(story_id)
        return stored.model_copy(deep=True) if stored else None

    async def put(self, context: StoryContext, expected_revision: Optional[int] = None) -> PutResult:
        async with self._lock:
            current = self._stories.get(context.id)
            current_revision = current.revision if current else 0
            if expected_revision is not None and current_revision != expected_revision:
                logger.warning(
                    f"[store] Revision conflict on {context.id}: "
                    f"expected {expected_revision}, stored {current_revision}"
                )
                return PutResult.conflict(
                    f"expected revision {expected_revision}, stored revision is {current_revision}"
                )

            revision = current_revision + 1
            self._stories[context.id] = context.model_copy(update={"revision": revision}, deep=True)
            return PutResult(ok=True, revision=revision)

    async def append_episode(self, episode: Episode) -> PutResult:
        async with self._lock:
            episodes = self._episodes.setdefault(episode.story_id, {})
            if episode.number in episodes:
                return PutResult.conflict(f"episode {episode.number} already exists")
            expected = len(episodes) + 1
            if episode.number != expected:
                return PutResult.conflict(f"next episode is {expected}, got {episode.number}")
            episodes[episode.number] = episode.model_copy(deep=True)
            return PutResult(ok=True, revision=len(episodes))

    async def replace_episode(self, episode: Episode) -> PutResult:
        async with self._lock:
            episodes = self._episodes.get(episode.story_id, {})
            if episode.number not in episodes:
                return PutResult.conflict(f"episode {episode.number} does not exist")
            episodes[episode.number] = episode.model_copy(deep=True)
            return PutResult(ok=True)

    async def get_episode(self, story_id: str, number: int) -> Optional[Episode]:
        stored = self._episodes.get(story_id, {}).get(number)
        return stored.model_copy(deep=True) if stored else None

    async def list_episodes(self, story_id: str) -> List[Episode]:
        episodes = self._episodes.get(story_id, {})
        return [episodes[n].model_copy(deep=True) for n in sorted(episodes)]

    async def save_version(self, version: Version) -> None:
        self._versions.setdefault(version.story_id, []).append(version.model_copy(deep=True))

    async def list_versions(self, story_id: str) -> List[Version]:
        versions = self._versions.get(story_id, [])
        ordered = sorted(enumerate(versions), key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [version.model_copy(deep=True) for _, version in ordered]

    async def delete_versions(self, story_id: str, version_ids: Iterable[str]) -> None:
        doomed = set(version_ids)
        self._versions[story_id] = [
            version for version in self._versions.get(story_id, []) if version.id not in doomed
        ]

    async def save_document(self, document: PreProductionDocument) -> None:
        key = (document.episode_number, document.document_type)
        self._documents.setdefault(document.story_id, {})[key] = document.model_copy(deep=True)

    async def list_documents(
        self, story_id: str, episode_number: Optional[int] = None
    ) -> List[PreProductionDocument]:
        documents = self._documents.get(story_id, {})
        keys = sorted(documents, key=lambda key: (key[0], list(DocumentType).index(key[1])))
        return [
            documents[key].model_copy(deep=True)
            for key in keys
            if episode_number is None or key[0] == episode_number
        ]
