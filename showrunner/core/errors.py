"""
Error taxonomy for Showrunner.

Gateway failures travel as typed `GenerationError` values inside results.
Only the service layer turns them into the exceptions below.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GenerationErrorKind(str, Enum):
    """Classified failure of a single model call."""
    AUTH_FAILURE = "auth_failure"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    CONTENT_REJECTED = "content_rejected"
    UPSTREAM_ERROR = "upstream_error"


# Retried once on the same backend before falling back
TRANSIENT_KINDS = frozenset({
    GenerationErrorKind.TIMEOUT,
    GenerationErrorKind.RATE_LIMITED,
    GenerationErrorKind.UPSTREAM_ERROR,
})

# Move on to the other backend; content rejections stay where they are
FALLBACK_KINDS = TRANSIENT_KINDS | {
    GenerationErrorKind.AUTH_FAILURE,
    GenerationErrorKind.MALFORMED_RESPONSE,
}


@dataclass(frozen=True)
class GenerationError:
    """A failed generation, as reported by the gateway."""
    kind: GenerationErrorKind
    message: str
    backend: Optional[str] = None

    @property
    def is_transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    @property
    def allows_fallback(self) -> bool:
        return self.kind in FALLBACK_KINDS

    def __str__(self) -> str:
        where = f" ({self.backend})" if self.backend else ""
        return f"{self.kind.value}{where}: {self.message}"


class ShowrunnerError(Exception):
    """Base class for errors surfaced to callers of the service."""

    user_message = "Something went wrong while generating your series."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class AuthFailure(ShowrunnerError):
    user_message = "The AI provider rejected our credentials. Please contact support."


class DraftingFailed(ShowrunnerError):
    user_message = "We couldn't draft this content. Please try again."

    def __init__(self, message: str = "", error: Optional[GenerationError] = None):
        super().__init__(message)
        self.error = error


class SynthesisFailed(ShowrunnerError):
    user_message = "We couldn't assemble the final content. Please try again."

    def __init__(self, message: str = "", error: Optional[GenerationError] = None):
        super().__init__(message)
        self.error = error


class RegenerationLimitExceeded(ShowrunnerError):
    user_message = "You've reached the regeneration limit for this story bible."

    def __init__(self, limit: int):
        super().__init__(f"regeneration limit of {limit} reached")
        self.limit = limit


class ContentLocked(ShowrunnerError):
    user_message = (
        "This story bible is locked because episodes exist. "
        "You can still add new characters."
    )


class EpisodeOutOfSequence(ShowrunnerError):
    user_message = "Episodes must be generated in order."

    def __init__(self, requested: int, expected: int):
        super().__init__(f"episode {requested} requested, next episode is {expected}")
        self.requested = requested
        self.expected = expected


class StoryNotFound(ShowrunnerError):
    user_message = "Story bible not found."


class EpisodeNotFound(ShowrunnerError):
    user_message = "Episode not found."


class ElementNotFound(ShowrunnerError):
    user_message = "That character, location or arc doesn't exist in this story bible."


class DuplicateCharacter(ShowrunnerError):
    user_message = "A character with that name already exists."


class ConcurrentModification(ShowrunnerError):
    user_message = "This story bible was changed by another request. Reload and try again."
