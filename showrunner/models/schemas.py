"""
Pydantic data models for Showrunner - story bibles, episodes and pre-production.
Models validate the structural invariants of each entity; nothing here ever
truncates a list or a text field.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


def normalize_name(name: str) -> str:
    """Comparison key for character and location names."""
    return " ".join(name.split()).casefold()


def _new_id() -> str:
    return str(uuid.uuid4())


class ContentOrigin(str, Enum):
    """Who introduced a character or location into the story bible."""
    GENERATED = "generated"    # Produced by a story bible generation run
    USER = "user"              # Added manually by the creator
    REFLECTION = "reflection"  # Discovered by the system after an episode


class ArtifactKind(str, Enum):
    """Artifacts produced by the generation pipeline."""
    STORY_BIBLE = "story_bible"
    EPISODE = "episode"
    PREPRODUCTION = "preproduction"


class EnginePhase(str, Enum):
    """Enhancement engine phases, in execution order."""
    NARRATIVE = "narrative"
    DIALOGUE = "dialogue"
    WORLD = "world"
    FORMAT = "format"
    GENRE = "genre"
    PRODUCTION = "production"


class DocumentType(str, Enum):
    """Pre-production document types derived from an episode."""
    SCRIPT = "script"
    STORYBOARD = "storyboard"
    CASTING = "casting"
    LOCATIONS = "locations"
    PROPS_WARDROBE = "props_wardrobe"
    SHOT_LIST = "shot_list"
    BUDGET = "budget"
    SCHEDULE = "schedule"
    MARKETING = "marketing"


# ============================================================================
# Story Bible Models
# ============================================================================

class Character(BaseModel):
    """A character in the story bible. The count is decided by the model, never clamped."""
    name: str = Field(..., min_length=1, description="Unique character name")
    archetype: str = Field(default="", description="Role or archetype in the series")
    description: str = Field(default="", description="Physical and personality description")
    arc: str = Field(default="", description="How the character changes over the series")
    motivation: str = Field(default="", description="What drives the character")
    voice: str = Field(default="", description="Speech patterns and dialogue voice")
    relationships: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    origin: ContentOrigin = ContentOrigin.GENERATED
    first_appearance_episode: Optional[int] = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("character name must not be blank")
        return value

    @field_validator("relationships", mode="before")
    @classmethod
    def _coerce_relationships(cls, value: Any) -> Any:
        # Models sometimes answer with a mapping or a single sentence
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, dict):
            return [f"{k}: {v}" for k, v in value.items()]
        return value


class Location(BaseModel):
    """A named place in the series world."""
    name: str = Field(..., min_length=1)
    description: str = ""
    significance: str = ""
    image_url: Optional[str] = None
    origin: ContentOrigin = ContentOrigin.GENERATED
    first_mentioned_episode: Optional[int] = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("location name must not be blank")
        return value


class WorldBuilding(BaseModel):
    """Setting, rules and places of the series world."""
    setting: str = ""
    rules: List[str] = Field(default_factory=list)
    time_period: str = ""
    cultural_context: str = ""
    locations: List[Location] = Field(default_factory=list)

    @field_validator("rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value

    def find_location(self, name: str) -> Optional[Location]:
        key = normalize_name(name)
        for location in self.locations:
            if normalize_name(location.name) == key:
                return location
        return None


class EpisodeStub(BaseModel):
    """A planned episode inside a narrative arc."""
    number: int = Field(..., ge=1)
    title: str = ""
    summary: str = ""


class NarrativeArc(BaseModel):
    """A multi-episode arc with its planned episodes."""
    title: str = Field(..., min_length=1)
    summary: str = ""
    episodes: List[EpisodeStub] = Field(default_factory=list)


class StoryContext(BaseModel):
    """
    The story bible: the persistent, authoritative record of a series.

    Invariants:
    - character names are unique (case-insensitive, whitespace-trimmed)
    - every episode stub number appears in exactly one arc
    """
    id: str = Field(default_factory=_new_id)
    owner_id: str
    premise: str = Field(..., min_length=1)
    series_title: str = ""
    synopsis: str = ""
    theme: str = ""
    genre: str = ""
    tone: str = ""
    characters: List[Character] = Field(default_factory=list)
    narrative_arcs: List[NarrativeArc] = Field(default_factory=list)
    world_building: WorldBuilding = Field(default_factory=WorldBuilding)
    regeneration_count: int = Field(default=0, ge=0)
    revision: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def _check_invariants(self) -> "StoryContext":
        seen = set()
        for character in self.characters:
            key = normalize_name(character.name)
            if key in seen:
                raise ValueError(f"duplicate character name: {character.name}")
            seen.add(key)

        numbers = set()
        for arc in self.narrative_arcs:
            for stub in arc.episodes:
                if stub.number in numbers:
                    raise ValueError(f"episode {stub.number} appears in more than one arc")
                numbers.add(stub.number)
        return self

    def find_character(self, name: str) -> Optional[Character]:
        key = normalize_name(name)
        for character in self.characters:
            if normalize_name(character.name) == key:
                return character
        return None

    def character_names(self) -> List[str]:
        return [character.name for character in self.characters]

    def find_arc(self, title: str) -> Optional[NarrativeArc]:
        key = normalize_name(title)
        for arc in self.narrative_arcs:
            if normalize_name(arc.title) == key:
                return arc
        return None

    def stub_for_episode(self, number: int) -> Optional[EpisodeStub]:
        for arc in self.narrative_arcs:
            for stub in arc.episodes:
                if stub.number == number:
                    return stub
        return None


# ============================================================================
# Episode Models
# ============================================================================

class Scene(BaseModel):
    """A scene of an episode."""
    title: str = ""
    content: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BranchingOption(BaseModel):
    """A viewer choice offered at the end of an episode."""
    text: str = Field(..., min_length=1)
    canonical: bool = False


class EngineRunSummary(BaseModel):
    """Persisted record of an enhancement run; the notes themselves are discarded."""
    total_run: int = 0
    successful: int = 0
    failed: int = 0
    succeeded: List[str] = Field(default_factory=list)
    failed_engines: List[str] = Field(default_factory=list)
    healthy: bool = True

    @property
    def quality_indicator(self) -> str:
        return f"{self.successful}/{self.total_run} engines succeeded"


class Episode(BaseModel):
    """
    A generated episode. Exactly three branching options, exactly one canonical.
    Episode N exists only if episode N-1 exists (enforced by the service).
    """
    story_id: str
    number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    synopsis: str = ""
    scenes: List[Scene] = Field(..., min_length=1)
    branching_options: List[BranchingOption]
    chosen_path: Optional[str] = None
    engine_report: EngineRunSummary = Field(default_factory=EngineRunSummary)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("branching_options")
    @classmethod
    def _three_options_one_canonical(cls, value: List[BranchingOption]) -> List[BranchingOption]:
        if len(value) != 3:
            raise ValueError(f"an episode needs exactly 3 branching options, got {len(value)}")
        canonical = sum(1 for option in value if option.canonical)
        if canonical != 1:
            raise ValueError(f"exactly one branching option must be canonical, got {canonical}")
        return value


# ============================================================================
# Enhancement Models
# ============================================================================

class EnhancementNote(BaseModel):
    """Guidance returned by one enhancement engine. Never persisted."""
    engine_id: str
    phase: EnginePhase
    guidance: str = ""
    success: bool
    error: Optional[str] = None
    duration_ms: int = 0


# ============================================================================
# Lock / Version Models
# ============================================================================

class LockState(BaseModel):
    """Derived lock state of a story bible. Locked iff at least one episode exists."""
    episode_count: int = Field(..., ge=0)

    @computed_field
    @property
    def is_locked(self) -> bool:
        return self.episode_count > 0

    @computed_field
    @property
    def can_edit_existing_content(self) -> bool:
        return not self.is_locked

    @computed_field
    @property
    def can_add_character(self) -> bool:
        return True

    @computed_field
    @property
    def can_add_location_manually(self) -> bool:
        return not self.is_locked


class Version(BaseModel):
    """Immutable snapshot of a story bible."""
    id: str = Field(default_factory=_new_id)
    story_id: str
    snapshot: StoryContext
    description: str = ""
    auto_save: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# Pre-production Models
# ============================================================================

class DocumentSection(BaseModel):
    heading: str = Field(..., min_length=1)
    body: str = ""


class PreProductionDocument(BaseModel):
    """A production document (script, storyboard, casting sheet...) derived from an episode."""
    story_id: str
    episode_number: int = Field(..., ge=1)
    document_type: DocumentType
    title: str = Field(..., min_length=1)
    summary: str = ""
    sections: List[DocumentSection] = Field(..., min_length=1)
    engine_report: EngineRunSummary = Field(default_factory=EngineRunSummary)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# Reflection Models
# ============================================================================

class ReflectionData(BaseModel):
    """New world elements discovered in a persisted episode."""
    episode_number: int = Field(..., ge=1)
    new_characters: List[Character] = Field(default_factory=list)
    new_locations: List[Location] = Field(default_factory=list)
    world_rules: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    needs_review: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.new_characters or self.new_locations or self.world_rules)
