"""
Enhancement Engine prompt templates.
Each engine analyses the current draft and returns concise, actionable guidance.
"""

import json
from typing import TYPE_CHECKING, Sequence

from ..models import EnhancementNote, StoryContext
from .context import format_notes_by_phase, format_story_context

if TYPE_CHECKING:
    from ..core.requests import Draft
    from ..engines.base import EnhancementEngine


ENGINE_SYSTEM_SUFFIX = """

## Rules for Your Notes

- You are ONE specialist in a team of enhancement engines. Stay inside your specialty.
- Write guidance for the writer who will produce the final version, not the final version itself.
- Be specific: name characters, scenes and beats from the draft.
- Never contradict established story bible facts.
- Respond with bullet points only. No preamble, no closing summary."""


ENGINE_USER_PROMPT_TEMPLATE = """## Task

{task_prompt}

## Focus Areas

{instructions}

## Story Bible

{story_context}

## Current Draft ({artifact_kind})

```json
{draft}
```
{prior_notes_section}
Provide your enhancement notes now."""


PRIOR_NOTES_SECTION = """
## Notes Already Given by Other Engines

Build on these; do not repeat them.

{notes}
"""


def build_engine_system_prompt(engine: "EnhancementEngine", context: StoryContext) -> str:
    genre_line = ""
    if context.genre or context.tone:
        genre_line = f"\n\nThe series genre is '{context.genre or 'unspecified'}' with a '{context.tone or 'unspecified'}' tone."
    return f"{engine.system_prompt}{genre_line}{ENGINE_SYSTEM_SUFFIX}"


def build_engine_user_prompt(
    engine: "EnhancementEngine",
    draft: "Draft",
    context: StoryContext,
    prior_notes: Sequence[EnhancementNote] = (),
) -> str:
    prior_notes_section = ""
    if prior_notes:
        prior_notes_section = PRIOR_NOTES_SECTION.format(notes=format_notes_by_phase(prior_notes))

    return ENGINE_USER_PROMPT_TEMPLATE.format(
        task_prompt=engine.task_prompt,
        instructions="\n".join(f"- {item}" for item in engine.instructions),
        story_context=format_story_context(context),
        artifact_kind=draft.kind.value.replace("_", " "),
        draft=json.dumps(draft.content, indent=2, ensure_ascii=False),
        prior_notes_section=prior_notes_section,
    )
