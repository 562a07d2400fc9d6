"""
ShowrunnerService - the invocation boundary for story bibles, episodes and
pre-production documents.

The service is the only layer that reads and writes the store and the only
layer that turns typed generation failures into exceptions. Each operation
reads state once at the start and writes once at the end; story bible
writes are compare-and-swap on `revision`.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..config import LLMConfiguration, PipelineSettings
from ..engines import DOCUMENT_ENGINES, EngineRegistry, build_default_registry
from ..models import (
    Character,
    DocumentType,
    Episode,
    Location,
    LockState,
    PreProductionDocument,
    ReflectionData,
    Scene,
    StoryContext,
    Version,
)
from ..services.assets import AssetFillReport, AssetGenerator, fill_missing_assets
from ..services.model_gateway import ModelGateway
from ..services.persistence import InMemoryStoryStore, StoryStore
from .engine_orchestrator import EngineOrchestrator
from .errors import (
    AuthFailure,
    ConcurrentModification,
    ContentLocked,
    DraftingFailed,
    ElementNotFound,
    EpisodeNotFound,
    EpisodeOutOfSequence,
    GenerationErrorKind,
    StoryNotFound,
    SynthesisFailed,
)
from .lock import LockStateMachine, StoryBibleEditor, check_regeneration_allowed, compute_lock_state
from .pipeline import FailureStage, GenerationPipeline, PipelineRun
from .reflection import EpisodeReflector
from .requests import GenerationRequest
from .synthesis import SynthesisStage
from .versioning import VersionHistory

logger = logging.getLogger("showrunner.service")


class ShowrunnerService:
    """Story bible, episode and pre-production operations for one process."""

    def __init__(
        self,
        gateway: ModelGateway,
        store: StoryStore,
        settings: Optional[PipelineSettings] = None,
        registry: Optional[EngineRegistry] = None,
        asset_generator: Optional[AssetGenerator] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.settings = settings or PipelineSettings()
        self.registry = registry or build_default_registry()
        self.asset_generator = asset_generator

        self.orchestrator = EngineOrchestrator(gateway, self.registry, self.settings)
        self.synthesis = SynthesisStage(gateway, self.settings)
        self.pipeline = GenerationPipeline(gateway, self.orchestrator, self.synthesis, self.settings)
        self.reflector = EpisodeReflector(gateway, self.settings)
        self.versions = VersionHistory(store)
        self.editor = StoryBibleEditor()
        self.lock_machine = LockStateMachine()

    @classmethod
    def from_config(
        cls,
        config: LLMConfiguration,
        store: Optional[StoryStore] = None,
        asset_generator: Optional[AssetGenerator] = None,
    ) -> "ShowrunnerService":
        return cls(
            gateway=ModelGateway.from_config(config),
            store=store or InMemoryStoryStore(),
            settings=config.pipeline,
            asset_generator=asset_generator,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, owner_id: str, story_id: str) -> StoryContext:
        context = await self.store.get(story_id)
        if context is None or context.owner_id != owner_id:
            raise StoryNotFound(f"story {story_id} not found")
        return context

    async def _lock_state(self, story_id: str) -> LockState:
        return compute_lock_state(await self.store.count_episodes(story_id))

    async def _write(
        self,
        new: StoryContext,
        expected_revision: Optional[int],
    ) -> StoryContext:
        result = await self.store.put(new, expected_revision=expected_revision)
        if not result.ok:
            raise ConcurrentModification(result.reason)
        return new.model_copy(update={"revision": result.revision})

    async def _save_edit(
        self,
        before: StoryContext,
        after: StoryContext,
        description: str,
        expected_revision: Optional[int] = None,
        auto_save: bool = True,
    ) -> StoryContext:
        if expected_revision is not None and expected_revision != before.revision:
            raise ConcurrentModification(
                f"expected revision {expected_revision}, current revision is {before.revision}"
            )
        saved = await self._write(after, expected_revision=before.revision)
        await self.versions.snapshot(saved, description, auto_save=auto_save)
        return saved

    @staticmethod
    def _raise_for_failure(run: PipelineRun) -> None:
        label = run.request.describe()
        if run.error is not None and run.error.kind == GenerationErrorKind.AUTH_FAILURE:
            raise AuthFailure(f"{label}: {run.error}")
        if run.failure == FailureStage.DRAFTING:
            raise DraftingFailed(f"{label}: {run.error}", error=run.error)
        raise SynthesisFailed(f"{label}: {run.error}", error=run.error)

    async def _run_with_retries(self, request: GenerationRequest) -> PipelineRun:
        """Run the pipeline, restarting from drafting after synthesis failures."""
        attempts = self.settings.pipeline_max_attempts
        run = None
        for attempt in range(1, attempts + 1):
            run = await self.pipeline.run(request)
            if run.succeeded:
                return run
            retryable = (
                run.failure == FailureStage.SYNTHESIS
                and run.error.kind != GenerationErrorKind.AUTH_FAILURE
            )
            if not retryable or attempt == attempts:
                break
            logger.warning(
                f"[service] {request.describe()} failed in synthesis, "
                f"restarting pipeline (attempt {attempt + 1}/{attempts})"
            )
        self._raise_for_failure(run)

    # ------------------------------------------------------------------
    # Story bibles
    # ------------------------------------------------------------------

    async def generate_story_bible(
        self,
        owner_id: str,
        premise: str,
        genre: Optional[str] = None,
        tone: Optional[str] = None,
    ) -> StoryContext:
        """Create a story bible from a premise. Does not use the regeneration budget."""
        seed = StoryContext(owner_id=owner_id, premise=premise, genre=genre or "", tone=tone or "")
        run = await self.pipeline.run(GenerationRequest.for_story_bible(seed))
        if not run.succeeded:
            self._raise_for_failure(run)

        saved = await self._write(run.artifact, expected_revision=0)
        await self.versions.snapshot(saved, "Story bible created")
        logger.info(
            f"[service] Created story bible {saved.id} '{saved.series_title}' "
            f"with {len(saved.characters)} characters"
        )
        return saved

    async def regenerate_story_bible(self, owner_id: str, story_id: str) -> StoryContext:
        """Regenerate an unlocked story bible, consuming one unit of the regeneration budget."""
        context = await self._load(owner_id, story_id)
        check_regeneration_allowed(
            context, await self._lock_state(story_id), self.settings.regeneration_limit
        )

        # The attempt is counted before it runs, so failures consume budget too
        counted = await self._write(
            context.model_copy(update={
                "regeneration_count": context.regeneration_count + 1,
                "updated_at": datetime.utcnow(),
            }),
            expected_revision=context.revision,
        )
        logger.info(
            f"[service] Regenerating {story_id} "
            f"({counted.regeneration_count}/{self.settings.regeneration_limit})"
        )

        run = await self.pipeline.run(GenerationRequest.for_story_bible(counted))
        if not run.succeeded:
            self._raise_for_failure(run)

        if (await self._lock_state(story_id)).is_locked:
            raise ContentLocked(f"story {story_id} was locked while regenerating")
        return await self._save_edit(
            counted,
            run.artifact,
            f"Story bible regenerated ({counted.regeneration_count}/{self.settings.regeneration_limit})",
        )

    async def reset_regeneration_count(self, story_id: str) -> StoryContext:
        """Administrative: give a story bible its full regeneration budget back."""
        context = await self.store.get(story_id)
        if context is None:
            raise StoryNotFound(f"story {story_id} not found")
        saved = await self._write(
            context.model_copy(update={"regeneration_count": 0, "updated_at": datetime.utcnow()}),
            expected_revision=context.revision,
        )
        logger.info(f"[service] Regeneration count reset for {story_id}")
        return saved

    async def get_story_bible(self, owner_id: str, story_id: str) -> StoryContext:
        return await self._load(owner_id, story_id)

    async def get_lock_state(self, owner_id: str, story_id: str) -> LockState:
        await self._load(owner_id, story_id)
        return await self._lock_state(story_id)

    # ------------------------------------------------------------------
    # Story bible edits
    # ------------------------------------------------------------------

    async def add_character(
        self, owner_id: str, story_id: str, character: Character,
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        """Add a new character. Allowed even when the story bible is locked."""
        context = await self._load(owner_id, story_id)
        updated = self.editor.add_character(context, character)
        return await self._save_edit(context, updated, f"Added character {character.name}", expected_revision)

    async def update_character(
        self, owner_id: str, story_id: str, name: str, updates: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.update_character(context, await self._lock_state(story_id), name, updates)
        return await self._save_edit(context, updated, f"Edited character {name}", expected_revision)

    async def remove_character(
        self, owner_id: str, story_id: str, name: str,
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.remove_character(context, await self._lock_state(story_id), name)
        return await self._save_edit(context, updated, f"Removed character {name}", expected_revision)

    async def update_series_fields(
        self, owner_id: str, story_id: str, updates: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.update_series_fields(context, await self._lock_state(story_id), updates)
        return await self._save_edit(context, updated, "Edited series details", expected_revision)

    async def update_world_building(
        self, owner_id: str, story_id: str, updates: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.update_world_building(context, await self._lock_state(story_id), updates)
        return await self._save_edit(context, updated, "Edited world building", expected_revision)

    async def update_arc(
        self, owner_id: str, story_id: str, title: str, updates: Dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.update_arc(context, await self._lock_state(story_id), title, updates)
        return await self._save_edit(context, updated, f"Edited arc {title}", expected_revision)

    async def add_location(
        self, owner_id: str, story_id: str, location: Location,
        expected_revision: Optional[int] = None,
    ) -> StoryContext:
        context = await self._load(owner_id, story_id)
        updated = self.editor.add_location(context, await self._lock_state(story_id), location)
        return await self._save_edit(context, updated, f"Added location {location.name}", expected_revision)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def list_versions(self, owner_id: str, story_id: str) -> List[Version]:
        await self._load(owner_id, story_id)
        return await self.versions.list(story_id)

    async def save_version(self, owner_id: str, story_id: str, description: str) -> Version:
        """Manual save; manual saves survive history pruning."""
        context = await self._load(owner_id, story_id)
        return await self.versions.snapshot(context, description, auto_save=False)

    async def restore_version(self, owner_id: str, story_id: str, version_id: str) -> StoryContext:
        """Restore an earlier version. This is an edit, so it is rejected when locked."""
        context = await self._load(owner_id, story_id)
        version = await self.versions.get(story_id, version_id)
        if version is None:
            raise ElementNotFound(f"version {version_id} not found")
        updated = self.editor.restore(context, await self._lock_state(story_id), version.snapshot)
        return await self._save_edit(
            context, updated, f"Restored version: {version.description}", auto_save=False
        )

    # ------------------------------------------------------------------
    # Episodes
    # ------------------------------------------------------------------

    async def list_episodes(self, owner_id: str, story_id: str) -> List[Episode]:
        await self._load(owner_id, story_id)
        return await self.store.list_episodes(story_id)

    async def get_episode(self, owner_id: str, story_id: str, episode_number: int) -> Episode:
        await self._load(owner_id, story_id)
        episode = await self.store.get_episode(story_id, episode_number)
        if episode is None:
            raise EpisodeNotFound(f"episode {episode_number} of {story_id} not found")
        return episode

    async def generate_episode(
        self,
        owner_id: str,
        story_id: str,
        episode_number: int,
        previous_choice: Optional[str] = None,
    ) -> Episode:
        """Generate and persist the next episode, then reflect it into the story bible."""
        context = await self._load(owner_id, story_id)
        episodes = await self.store.list_episodes(story_id)
        expected = len(episodes) + 1
        if episode_number != expected:
            raise EpisodeOutOfSequence(episode_number, expected)

        if previous_choice is None and episodes:
            previous_choice = episodes[-1].chosen_path

        request = GenerationRequest.for_episode(context, episode_number, episodes, previous_choice)
        run = await self._run_with_retries(request)
        episode = run.artifact

        result = await self.store.append_episode(episode)
        if not result.ok:
            raise ConcurrentModification(result.reason)
        logger.info(
            f"[service] Persisted episode {episode_number} of {story_id} "
            f"({episode.engine_report.quality_indicator})"
        )

        if self.lock_machine.on_episode_persisted(len(episodes), len(episodes) + 1):
            await self.versions.snapshot(
                context, "Story bible locked: first episode created", auto_save=False
            )

        if self.settings.reflect_episodes:
            await self._reflect(story_id, episode)

        return episode

    async def _reflect(self, story_id: str, episode: Episode) -> ReflectionData:
        context = await self.store.get(story_id)
        reflection = await self.reflector.reflect(context, episode)
        if reflection.is_empty:
            return reflection

        # Edits may land while reflection runs: re-read and re-apply once
        for attempt in range(2):
            updated, added = self.editor.absorb_reflection(context, reflection)
            if not added:
                return reflection
            result = await self.store.put(updated, expected_revision=context.revision)
            if result.ok:
                saved = updated.model_copy(update={"revision": result.revision})
                await self.versions.snapshot(
                    saved, f"Reflection after episode {episode.number}: {added} new elements"
                )
                return reflection
            logger.warning(f"[service] Reflection write conflicted on {story_id} (attempt {attempt + 1})")
            context = await self.store.get(story_id)

        logger.error(f"[service] Dropped reflection for episode {episode.number} of {story_id}")
        return reflection

    async def edit_scene(
        self,
        owner_id: str,
        story_id: str,
        episode_number: int,
        scene_index: int,
        content: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Episode:
        episode = await self.get_episode(owner_id, story_id, episode_number)
        if not 0 <= scene_index < len(episode.scenes):
            raise ElementNotFound(f"scene {scene_index} not found in episode {episode_number}")

        updates = {}
        if content is not None:
            updates["content"] = content
        if title is not None:
            updates["title"] = title
        scenes = list(episode.scenes)
        scenes[scene_index] = Scene.model_validate({**scenes[scene_index].model_dump(), **updates})
        updated = episode.model_copy(update={"scenes": scenes})

        result = await self.store.replace_episode(updated)
        if not result.ok:
            raise ConcurrentModification(result.reason)
        return updated

    async def choose_path(self, owner_id: str, story_id: str, episode_number: int, choice: str) -> Episode:
        """Record the viewer's branching choice; the next episode continues from it."""
        episode = await self.get_episode(owner_id, story_id, episode_number)
        wanted = choice.strip().casefold()
        option = next(
            (o for o in episode.branching_options if o.text.strip().casefold() == wanted),
            None,
        )
        if option is None:
            raise ValueError(f"'{choice}' is not one of the branching options of episode {episode_number}")

        updated = episode.model_copy(update={"chosen_path": option.text})
        result = await self.store.replace_episode(updated)
        if not result.ok:
            raise ConcurrentModification(result.reason)
        return updated

    # ------------------------------------------------------------------
    # Pre-production and assets
    # ------------------------------------------------------------------

    async def generate_preproduction(
        self,
        owner_id: str,
        story_id: str,
        episode_number: int,
        document_type: DocumentType,
    ) -> PreProductionDocument:
        context = await self._load(owner_id, story_id)
        episode = await self.store.get_episode(story_id, episode_number)
        if episode is None:
            raise EpisodeNotFound(f"episode {episode_number} of {story_id} not found")

        request = GenerationRequest.for_preproduction(context, episode, document_type)
        request.engine_ids = list(DOCUMENT_ENGINES[document_type])
        run = await self._run_with_retries(request)

        await self.store.save_document(run.artifact)
        return run.artifact

    async def list_documents(
        self, owner_id: str, story_id: str, episode_number: Optional[int] = None
    ) -> List[PreProductionDocument]:
        await self._load(owner_id, story_id)
        return await self.store.list_documents(story_id, episode_number)

    async def fill_missing_assets(
        self, owner_id: str, story_id: str, force: bool = False
    ) -> Tuple[StoryContext, AssetFillReport]:
        """Generate images only where they are missing (or everywhere when forced)."""
        if self.asset_generator is None:
            raise RuntimeError("No asset generator configured")
        context = await self._load(owner_id, story_id)
        updated, report = await fill_missing_assets(context, self.asset_generator, force=force)
        if not report.changed:
            return context, report
        saved = await self._save_edit(context, updated, f"Generated {len(report.generated)} images")
        return saved, report
