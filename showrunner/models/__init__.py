"""
Showrunner Data Models Module
Pydantic schemas for story bibles, episodes and production documents.
"""

from .schemas import (
    # Enums
    ArtifactKind,
    BranchingOption,
    # Story Bible Models
    Character,
    ContentOrigin,
    DocumentSection,
    DocumentType,
    EngineRunSummary,
    EnginePhase,
    # Enhancement Models
    EnhancementNote,
    # Episode Models
    Episode,
    EpisodeStub,
    Location,
    # Lock / Version Models
    LockState,
    NarrativeArc,
    # Pre-production / Reflection Models
    PreProductionDocument,
    ReflectionData,
    Scene,
    StoryContext,
    Version,
    WorldBuilding,
    normalize_name,
)

__all__ = [
    "ArtifactKind",
    "ContentOrigin",
    "DocumentType",
    "EnginePhase",
    "Character",
    "Location",
    "WorldBuilding",
    "EpisodeStub",
    "NarrativeArc",
    "StoryContext",
    "Scene",
    "BranchingOption",
    "EngineRunSummary",
    "Episode",
    "EnhancementNote",
    "LockState",
    "Version",
    "DocumentSection",
    "PreProductionDocument",
    "ReflectionData",
    "normalize_name",
]
