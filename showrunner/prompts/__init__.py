"""
Showrunner Prompts Module
System prompts and prompt builders for drafting, engines, synthesis and reflection.
"""

from .context import format_notes_by_phase, format_story_context
from .reflection import REFLECTION_SYSTEM_PROMPT

__all__ = [
    "format_story_context",
    "format_notes_by_phase",
    "REFLECTION_SYSTEM_PROMPT",
]
