"""
Pipeline inputs: what is being generated, and the working draft.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import ArtifactKind, DocumentType, Episode, StoryContext


@dataclass
class GenerationRequest:
    """One artifact to generate.

    For story bibles `context` is the seed (premise, genre, tone, identity);
    for episodes and documents it is the full persisted story bible.
    """
    kind: ArtifactKind
    context: StoryContext
    episode_number: Optional[int] = None
    previous_episodes: List[Episode] = field(default_factory=list)
    previous_choice: Optional[str] = None
    episode: Optional[Episode] = None
    document_type: Optional[DocumentType] = None
    engine_ids: Optional[List[str]] = None

    @classmethod
    def for_story_bible(cls, seed: StoryContext) -> "GenerationRequest":
        return cls(kind=ArtifactKind.STORY_BIBLE, context=seed)

    @classmethod
    def for_episode(
        cls,
        context: StoryContext,
        episode_number: int,
        previous_episodes: List[Episode],
        previous_choice: Optional[str] = None,
    ) -> "GenerationRequest":
        return cls(
            kind=ArtifactKind.EPISODE,
            context=context,
            episode_number=episode_number,
            previous_episodes=list(previous_episodes),
            previous_choice=previous_choice,
        )

    @classmethod
    def for_preproduction(
        cls,
        context: StoryContext,
        episode: Episode,
        document_type: DocumentType,
    ) -> "GenerationRequest":
        return cls(
            kind=ArtifactKind.PREPRODUCTION,
            context=context,
            episode_number=episode.number,
            episode=episode,
            document_type=document_type,
        )

    def describe(self) -> str:
        if self.kind == ArtifactKind.EPISODE:
            return f"episode {self.episode_number} of {self.context.id}"
        if self.kind == ArtifactKind.PREPRODUCTION:
            return f"{self.document_type.value} for episode {self.episode_number} of {self.context.id}"
        return f"story bible {self.context.id}"


@dataclass
class Draft:
    """Working draft of an artifact. Never persisted."""
    kind: ArtifactKind
    content: Dict[str, Any]
    raw_text: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(value not in (None, "", [], {}) for value in self.content.values())
