"""
Synthesis Stage Prompts
The final pass: draft + every successful enhancement note + the complete story bible.
"""

import json
from typing import Sequence

from ..core.requests import Draft, GenerationRequest
from ..models import ArtifactKind, EnhancementNote
from .context import format_notes_by_phase, format_previous_episodes, format_story_context
from .drafting import DOCUMENT_FOCUS, DOCUMENT_SCHEMA, EPISODE_SCHEMA, STORY_BIBLE_SCHEMA

SYNTHESIS_SYSTEM_PROMPT = """You are the Showrunner: the final creative authority of an AI-assisted web-series studio. You receive a draft, the complete story bible and notes from a team of specialist enhancement engines. You write the final version.

## Your Core Responsibilities

1. **Integrate**: apply every note that makes the work better. When notes conflict, choose the one that serves the characters.
2. **Preserve**: never contradict the story bible. Keep every character who belongs in the work.
3. **Elevate**: the final version must be clearly stronger than the draft, not a summary of it.

## Output Requirements

Respond with JSON matching this schema:

```json
{schema}
```"""

STRICT_JSON_INSTRUCTION = """

## IMPORTANT

Your previous answer could not be used: {problem}
Respond with ONE valid JSON object matching the schema above and nothing else. No markdown, no commentary."""


SYNTHESIS_USER_PROMPT_TEMPLATE = """{story_context}
{extra}
## Draft

```json
{draft}
```

## Enhancement Notes

{notes}

Write the final {artifact} now."""


def schema_for(kind: ArtifactKind) -> str:
    if kind == ArtifactKind.STORY_BIBLE:
        return STORY_BIBLE_SCHEMA
    if kind == ArtifactKind.EPISODE:
        return EPISODE_SCHEMA
    return DOCUMENT_SCHEMA


def build_synthesis_system_prompt(kind: ArtifactKind, strict_problem: str = "") -> str:
    prompt = SYNTHESIS_SYSTEM_PROMPT.format(schema=schema_for(kind))
    if strict_problem:
        prompt += STRICT_JSON_INSTRUCTION.format(problem=strict_problem)
    return prompt


def build_synthesis_user_prompt(
    request: GenerationRequest,
    draft: Draft,
    notes: Sequence[EnhancementNote],
) -> str:
    extra = ""
    artifact = "story bible"
    if request.kind == ArtifactKind.EPISODE:
        artifact = f"episode {request.episode_number}"
        extra = (
            f"\n## Previous Episodes\n\n{format_previous_episodes(request.previous_episodes)}\n\n"
            f"The viewer chose: {request.previous_choice or '(none)'}\n"
        )
    elif request.kind == ArtifactKind.PREPRODUCTION:
        artifact = DOCUMENT_FOCUS.get(request.document_type.value, request.document_type.value)
        extra = f"\n## Source Episode\n\nEpisode {request.episode.number}: {request.episode.title}\n"

    return SYNTHESIS_USER_PROMPT_TEMPLATE.format(
        story_context=format_story_context(request.context),
        extra=extra,
        draft=json.dumps(draft.content, indent=2, ensure_ascii=False),
        notes=format_notes_by_phase(notes),
        artifact=artifact,
    )
