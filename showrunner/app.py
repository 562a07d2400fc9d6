"""
Showrunner HTTP API
FastAPI surface over ShowrunnerService, with cancellable generation runs.

Caller identity arrives in the `X-User-Id` header (authentication happens
upstream). Generation calls may carry an `X-Run-Id` header; the run can then
be cancelled with `POST /runs/{run_id}/cancel` while it is in flight.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Awaitable, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import create_default_config_from_env
from .core.errors import (
    ConcurrentModification,
    ContentLocked,
    DuplicateCharacter,
    ElementNotFound,
    EpisodeNotFound,
    EpisodeOutOfSequence,
    RegenerationLimitExceeded,
    ShowrunnerError,
    StoryNotFound,
)
from .core.service import ShowrunnerService
from .models import (
    Character,
    DocumentType,
    Episode,
    LockState,
    PreProductionDocument,
    StoryContext,
    Version,
)

logger = logging.getLogger("showrunner.api")

ERROR_STATUS = {
    StoryNotFound: 404,
    EpisodeNotFound: 404,
    ElementNotFound: 404,
    ContentLocked: 423,
    EpisodeOutOfSequence: 422,
    RegenerationLimitExceeded: 429,
    ConcurrentModification: 409,
    DuplicateCharacter: 409,
}


def status_for(error: ShowrunnerError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    # AuthFailure, DraftingFailed, SynthesisFailed: the upstream model let us down
    return 502


# ============================================================================
# Request Models
# ============================================================================

class CreateStoryBibleRequest(BaseModel):
    premise: str = Field(..., min_length=1, max_length=20000)
    genre: Optional[str] = Field(None, max_length=200)
    tone: Optional[str] = Field(None, max_length=200)


class UpdateSeriesRequest(BaseModel):
    series_title: Optional[str] = None
    synopsis: Optional[str] = None
    theme: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None


class AddCharacterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    archetype: str = ""
    description: str = ""
    arc: str = ""
    motivation: str = ""
    voice: str = ""
    relationships: List[str] = Field(default_factory=list)


class UpdateCharacterRequest(BaseModel):
    name: Optional[str] = None
    archetype: Optional[str] = None
    description: Optional[str] = None
    arc: Optional[str] = None
    motivation: Optional[str] = None
    voice: Optional[str] = None
    relationships: Optional[List[str]] = None


class GenerateEpisodeRequest(BaseModel):
    episode_number: int = Field(..., ge=1)
    previous_choice: Optional[str] = None


class ChoosePathRequest(BaseModel):
    choice: str = Field(..., min_length=1)


class PreProductionRequest(BaseModel):
    document_type: DocumentType


class CancelResponse(BaseModel):
    success: bool
    run_id: str
    message: str


# ============================================================================
# App Factory
# ============================================================================

def create_app(service: Optional[ShowrunnerService] = None) -> FastAPI:
    """Build the API. Without a service, one is configured from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is None:
            app.state.service = ShowrunnerService.from_config(create_default_config_from_env())
            logger.info("[api] Service configured from environment")
        yield
        for task in list(app.state.active_runs.values()):
            task.cancel()

    app = FastAPI(title="Showrunner Generation API", lifespan=lifespan)
    app.state.service = service
    app.state.active_runs = {}

    @app.exception_handler(ShowrunnerError)
    async def handle_domain_error(request: Request, exc: ShowrunnerError):
        status = status_for(exc)
        log = logger.error if status >= 500 else logger.info
        log(f"[api] {request.method} {request.url.path} -> {status}: {exc}")
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": exc.user_message},
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"error": "InvalidRequest", "detail": str(exc)})

    def get_service(request: Request) -> ShowrunnerService:
        if request.app.state.service is None:
            raise HTTPException(status_code=503, detail="Service not initialized")
        return request.app.state.service

    async def get_owner_id(x_user_id: Optional[str] = Header(None)) -> str:
        if not x_user_id:
            raise HTTPException(status_code=401, detail="Missing X-User-Id header")
        return x_user_id

    async def run_tracked(
        request: Request, owner_id: str, run_id: Optional[str], work: Awaitable[Any]
    ) -> Any:
        """Run a generation as a task registered for cancellation by its owner."""
        active_runs = request.app.state.active_runs
        run_id = run_id or str(uuid.uuid4())
        key = (owner_id, run_id)
        if key in active_runs:
            work.close()
            raise HTTPException(status_code=409, detail=f"Run {run_id} is already active")

        task = asyncio.create_task(work)
        active_runs[key] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            active_runs.pop(key, None)

        if task.cancelled():
            logger.info(f"[api] Run {run_id} was cancelled")
            raise HTTPException(status_code=409, detail=f"Run {run_id} was cancelled")
        return task.result()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "showrunner"}

    @app.post("/story-bibles", response_model=StoryContext, status_code=201)
    async def create_story_bible(
        body: CreateStoryBibleRequest,
        request: Request,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
        x_run_id: Optional[str] = Header(None),
    ):
        return await run_tracked(
            request, owner_id, x_run_id,
            service.generate_story_bible(owner_id, body.premise, body.genre, body.tone),
        )

    @app.get("/story-bibles/{story_id}", response_model=StoryContext)
    async def get_story_bible(
        story_id: str,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.get_story_bible(owner_id, story_id)

    @app.patch("/story-bibles/{story_id}", response_model=StoryContext)
    async def update_series(
        story_id: str,
        body: UpdateSeriesRequest,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.update_series_fields(owner_id, story_id, body.model_dump(exclude_unset=True))

    @app.post("/story-bibles/{story_id}/regenerate", response_model=StoryContext)
    async def regenerate_story_bible(
        story_id: str,
        request: Request,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
        x_run_id: Optional[str] = Header(None),
    ):
        return await run_tracked(request, owner_id, x_run_id, service.regenerate_story_bible(owner_id, story_id))

    @app.get("/story-bibles/{story_id}/lock", response_model=LockState)
    async def get_lock_state(
        story_id: str,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.get_lock_state(owner_id, story_id)

    @app.get("/story-bibles/{story_id}/versions", response_model=List[Version])
    async def list_versions(
        story_id: str,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.list_versions(owner_id, story_id)

    @app.post("/story-bibles/{story_id}/characters", response_model=StoryContext, status_code=201)
    async def add_character(
        story_id: str,
        body: AddCharacterRequest,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.add_character(owner_id, story_id, Character(**body.model_dump()))

    @app.patch("/story-bibles/{story_id}/characters/{name}", response_model=StoryContext)
    async def update_character(
        story_id: str,
        name: str,
        body: UpdateCharacterRequest,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.update_character(owner_id, story_id, name, body.model_dump(exclude_unset=True))

    @app.post("/story-bibles/{story_id}/episodes", response_model=Episode, status_code=201)
    async def generate_episode(
        story_id: str,
        body: GenerateEpisodeRequest,
        request: Request,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
        x_run_id: Optional[str] = Header(None),
    ):
        return await run_tracked(
            request, owner_id, x_run_id,
            service.generate_episode(owner_id, story_id, body.episode_number, body.previous_choice),
        )

    @app.get("/story-bibles/{story_id}/episodes", response_model=List[Episode])
    async def list_episodes(
        story_id: str,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.list_episodes(owner_id, story_id)

    @app.post("/story-bibles/{story_id}/episodes/{episode_number}/choice", response_model=Episode)
    async def choose_path(
        story_id: str,
        episode_number: int,
        body: ChoosePathRequest,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
    ):
        return await service.choose_path(owner_id, story_id, episode_number, body.choice)

    @app.post(
        "/story-bibles/{story_id}/episodes/{episode_number}/preproduction",
        response_model=PreProductionDocument,
        status_code=201,
    )
    async def generate_preproduction(
        story_id: str,
        episode_number: int,
        body: PreProductionRequest,
        request: Request,
        owner_id: str = Depends(get_owner_id),
        service: ShowrunnerService = Depends(get_service),
        x_run_id: Optional[str] = Header(None),
    ):
        return await run_tracked(
            request, owner_id, x_run_id,
            service.generate_preproduction(owner_id, story_id, episode_number, body.document_type),
        )

    @app.post("/runs/{run_id}/cancel", response_model=CancelResponse)
    async def cancel_run(run_id: str, request: Request, owner_id: str = Depends(get_owner_id)):
        """Cancel an in-flight generation run. Nothing from a cancelled run is persisted."""
        task = request.app.state.active_runs.get((owner_id, run_id))
        if task is None or task.done():
            raise HTTPException(status_code=404, detail="Run not found or not active")
        task.cancel()
        logger.info(f"[api] Cancellation requested for run {run_id} by {owner_id}")
        return CancelResponse(success=True, run_id=run_id, message="Generation cancelled")

    return app


def app_from_env() -> FastAPI:
    """uvicorn factory; the service is configured from the environment at startup."""
    return create_app()
