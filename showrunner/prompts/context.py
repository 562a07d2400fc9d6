"""
Story context formatting for prompts.

Every prompt that carries the story bible gets ALL of it: every character
with every field, every arc and every world element. Nothing is clipped.
"""

from typing import Iterable, List, Sequence

from ..models import Character, EnhancementNote, EnginePhase, Episode, StoryContext


def _line(label: str, value: str) -> str:
    return f"{label}: {value}" if value else ""


def format_character(character: Character) -> str:
    lines = [
        f"### {character.name}",
        _line("Archetype", character.archetype),
        _line("Description", character.description),
        _line("Arc", character.arc),
        _line("Motivation", character.motivation),
        _line("Voice", character.voice),
    ]
    if character.relationships:
        lines.append("Relationships:")
        lines.extend(f"- {relationship}" for relationship in character.relationships)
    if character.first_appearance_episode:
        lines.append(f"First appears in episode {character.first_appearance_episode}")
    return "\n".join(line for line in lines if line)


def format_characters(characters: Sequence[Character]) -> str:
    if not characters:
        return "(no characters yet)"
    header = f"COMPLETE CHARACTER CONTEXT (NO TRUNCATION) - {len(characters)} characters"
    return header + "\n\n" + "\n\n".join(format_character(c) for c in characters)


def format_world(context: StoryContext) -> str:
    world = context.world_building
    lines = [
        _line("Setting", world.setting),
        _line("Time period", world.time_period),
        _line("Cultural context", world.cultural_context),
    ]
    if world.rules:
        lines.append("Rules:")
        lines.extend(f"- {rule}" for rule in world.rules)
    if world.locations:
        lines.append("Locations:")
        for location in world.locations:
            detail = "; ".join(p for p in [location.description, location.significance] if p)
            lines.append(f"- {location.name}: {detail}" if detail else f"- {location.name}")
    text = "\n".join(line for line in lines if line)
    return text or "(no world details yet)"


def format_arcs(context: StoryContext) -> str:
    if not context.narrative_arcs:
        return "(no arcs yet)"
    blocks = []
    for arc in context.narrative_arcs:
        lines = [f"### {arc.title}", arc.summary]
        for stub in arc.episodes:
            lines.append(f"- Episode {stub.number}: {stub.title} - {stub.summary}")
        blocks.append("\n".join(line for line in lines if line))
    return "\n\n".join(blocks)


def format_story_context(context: StoryContext) -> str:
    """Render the complete story bible."""
    sections = [
        "## SERIES",
        _line("Title", context.series_title),
        _line("Premise", context.premise),
        _line("Synopsis", context.synopsis),
        _line("Theme", context.theme),
        _line("Genre", context.genre),
        _line("Tone", context.tone),
        "",
        "## CHARACTERS",
        format_characters(context.characters),
        "",
        "## NARRATIVE ARCS",
        format_arcs(context),
        "",
        "## WORLD",
        format_world(context),
    ]
    return "\n".join(line for line in sections if line is not None)


def format_previous_episodes(episodes: Iterable[Episode]) -> str:
    lines: List[str] = []
    for episode in episodes:
        lines.append(f"- Episode {episode.number}: {episode.title} - {episode.synopsis}")
        if episode.chosen_path:
            lines.append(f"  Viewer choice taken: {episode.chosen_path}")
    return "\n".join(lines) if lines else "(this is the first episode)"


def format_notes_by_phase(notes: Sequence[EnhancementNote]) -> str:
    """Group successful enhancement notes under their phase headings, in phase order."""
    blocks = []
    for phase in EnginePhase:
        phase_notes = [n for n in notes if n.phase == phase and n.success and n.guidance]
        if not phase_notes:
            continue
        lines = [f"### {phase.value.upper()} ENHANCEMENTS"]
        for note in phase_notes:
            lines.append(f"[{note.engine_id}]\n{note.guidance.strip()}")
        blocks.append("\n\n".join(lines))
    return "\n\n".join(blocks) if blocks else "(no enhancement notes)"
