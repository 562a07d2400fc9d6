"""
Drafting Stage Prompts
The first, fast pass of every artifact: a complete but unpolished draft.
"""

from ..core.requests import GenerationRequest
from ..models import ArtifactKind
from .context import format_previous_episodes, format_story_context

STORY_BIBLE_SCHEMA = """{
  "series_title": "Title of the series",
  "synopsis": "Season-long synopsis",
  "theme": "The central theme, phrased as a question or argument",
  "genre": "Primary genre",
  "tone": "Overall tone",
  "characters": [
    {
      "name": "Unique character name",
      "archetype": "Role in the story",
      "description": "Appearance and personality",
      "arc": "How they change over the season",
      "motivation": "What drives them",
      "voice": "How they speak",
      "relationships": ["Relationship to another character"]
    }
  ],
  "narrative_arcs": [
    {
      "title": "Arc title",
      "summary": "What the arc is about",
      "episodes": [{"number": 1, "title": "Episode title", "summary": "One-line summary"}]
    }
  ],
  "world_building": {
    "setting": "Where the series takes place",
    "time_period": "When",
    "cultural_context": "Social and cultural backdrop",
    "rules": ["A rule of this world"],
    "locations": [{"name": "Location", "description": "What it looks like", "significance": "Why it matters"}]
  }
}"""

EPISODE_SCHEMA = """{
  "title": "Episode title",
  "synopsis": "Short synopsis of the episode",
  "scenes": [
    {"title": "Scene heading", "content": "Full scene: action and dialogue"}
  ],
  "branching_options": [
    {"text": "Choice the viewer can make", "canonical": true},
    {"text": "Alternative choice", "canonical": false},
    {"text": "Alternative choice", "canonical": false}
  ]
}"""

DOCUMENT_SCHEMA = """{
  "title": "Document title",
  "summary": "What this document covers",
  "sections": [
    {"heading": "Section heading", "body": "Section content"}
  ]
}"""


STORY_BIBLE_DRAFT_SYSTEM_PROMPT = f"""You are the Series Developer for an AI-assisted web-series studio. From a creator's premise you draft a complete story bible for a season of five-minute interactive episodes.

## Your Core Responsibilities

1. **Series Foundation**: title, synopsis, theme, genre and tone that fit the premise.
2. **Characters**: as many characters as the story genuinely needs. Do not pad the cast and do not cut it short.
3. **Narrative Arcs**: arcs with planned episodes. Every episode number belongs to exactly one arc.
4. **World**: setting, rules and locations the episodes can return to.

## Output Requirements

Respond with JSON matching this schema:

```json
{STORY_BIBLE_SCHEMA}
```"""


EPISODE_DRAFT_SYSTEM_PROMPT = f"""You are the Episode Writer for an AI-assisted web series. You draft one five-minute episode that follows the story bible and continues from the previous episodes and the viewer's last choice.

## Your Core Responsibilities

1. Honor every established fact about characters, arcs and world.
2. Write complete scenes with action and dialogue.
3. End with exactly three branching options for the viewer. Exactly one is canonical: the path the planned arc follows.

## Output Requirements

Respond with JSON matching this schema:

```json
{EPISODE_SCHEMA}
```"""


PREPRODUCTION_DRAFT_SYSTEM_PROMPT = f"""You are the Production Coordinator for a micro-budget web series. From a finished episode you draft one pre-production document for the crew.

## Output Requirements

Respond with JSON matching this schema:

```json
{DOCUMENT_SCHEMA}
```"""


DOCUMENT_FOCUS = {
    "script": "a production script with scene headings, action lines and dialogue",
    "storyboard": "a storyboard: key frames per scene with framing and camera notes",
    "casting": "casting breakdowns for every character in the episode",
    "locations": "location requirements and scouting notes for every setting",
    "props_wardrobe": "props and wardrobe lists per scene and character",
    "shot_list": "a numbered shot list per scene",
    "budget": "a line-item budget estimate for a small crew",
    "schedule": "a shooting schedule grouped by location",
    "marketing": "a marketing brief: logline, hooks and social cut-down ideas",
}


def build_draft_system_prompt(request: GenerationRequest) -> str:
    if request.kind == ArtifactKind.STORY_BIBLE:
        return STORY_BIBLE_DRAFT_SYSTEM_PROMPT
    if request.kind == ArtifactKind.EPISODE:
        return EPISODE_DRAFT_SYSTEM_PROMPT
    return PREPRODUCTION_DRAFT_SYSTEM_PROMPT


def build_draft_user_prompt(request: GenerationRequest) -> str:
    context = request.context

    if request.kind == ArtifactKind.STORY_BIBLE:
        lines = [f"## Premise\n\n{context.premise}"]
        if context.genre:
            lines.append(f"Requested genre: {context.genre}")
        if context.tone:
            lines.append(f"Requested tone: {context.tone}")
        lines.append("Draft the story bible now.")
        return "\n\n".join(lines)

    if request.kind == ArtifactKind.EPISODE:
        stub = context.stub_for_episode(request.episode_number)
        planned = f"Planned: {stub.title} - {stub.summary}" if stub else "No plan exists for this episode; continue the story naturally."
        choice = request.previous_choice or "(none)"
        return f"""{format_story_context(context)}

## Previous Episodes

{format_previous_episodes(request.previous_episodes)}

## This Episode

Episode {request.episode_number}. {planned}
The viewer chose at the end of the last episode: {choice}

Draft episode {request.episode_number} now."""

    episode = request.episode
    scenes = "\n\n".join(
        f"### {scene.title or f'Scene {i}'}\n{scene.content}"
        for i, scene in enumerate(episode.scenes, 1)
    )
    focus = DOCUMENT_FOCUS.get(request.document_type.value, request.document_type.value)
    return f"""{format_story_context(context)}

## Episode {episode.number}: {episode.title}

{episode.synopsis}

{scenes}

## Document

Draft {focus}."""
