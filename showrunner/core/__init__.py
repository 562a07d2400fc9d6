"""
Showrunner Core Module
Pipeline, orchestration, lock state machine and the service boundary.

Only the error taxonomy is re-exported here; import the other modules
directly (e.g. `showrunner.core.service`).
"""

from .errors import (
    AuthFailure,
    ConcurrentModification,
    ContentLocked,
    DraftingFailed,
    DuplicateCharacter,
    ElementNotFound,
    EpisodeNotFound,
    EpisodeOutOfSequence,
    GenerationError,
    GenerationErrorKind,
    RegenerationLimitExceeded,
    ShowrunnerError,
    StoryNotFound,
    SynthesisFailed,
)

__all__ = [
    "GenerationError",
    "GenerationErrorKind",
    "ShowrunnerError",
    "AuthFailure",
    "DraftingFailed",
    "SynthesisFailed",
    "RegenerationLimitExceeded",
    "ContentLocked",
    "EpisodeOutOfSequence",
    "StoryNotFound",
    "EpisodeNotFound",
    "ElementNotFound",
    "DuplicateCharacter",
    "ConcurrentModification",
]
