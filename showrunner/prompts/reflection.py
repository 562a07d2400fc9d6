"""
Episode Reflection Prompts
Read a finished episode and report only what is NEW to the story bible.
"""

from ..models import Episode, StoryContext
from .context import format_story_context

REFLECTION_SYSTEM_PROMPT = """You are the Series Archivist. After each episode you compare it with the story bible and record world elements the episode introduced.

## Rules

- Report ONLY new items. Anything already in the story bible must not appear in your answer.
- A new character is a named person who speaks or acts on screen.
- A new location is a named or clearly distinct place where a scene happens.
- A world rule is a fact about how this world works that the episode established.
- Do not invent anything the episode does not show.

## Output Requirements

Respond with JSON matching this schema:

```json
{
  "new_characters": [
    {"name": "Name", "archetype": "Role", "description": "Who they are", "motivation": "What they want", "voice": "How they speak"}
  ],
  "new_locations": [
    {"name": "Name", "description": "What it looks like", "significance": "Why it matters"}
  ],
  "world_rules": ["A rule this episode established"],
  "confidence": 0.0
}
```

`confidence` is your certainty (0.0 to 1.0) that every item is genuinely new."""


REFLECTION_USER_PROMPT_TEMPLATE = """{story_context}

## Episode {number}: {title}

{scenes}

List the new characters, locations and world rules introduced in this episode."""


def build_reflection_user_prompt(context: StoryContext, episode: Episode) -> str:
    scenes = "\n\n".join(
        f"### {scene.title or f'Scene {i}'}\n{scene.content}"
        for i, scene in enumerate(episode.scenes, 1)
    )
    return REFLECTION_USER_PROMPT_TEMPLATE.format(
        story_context=format_story_context(context),
        number=episode.number,
        title=episode.title,
        scenes=scenes,
    )
