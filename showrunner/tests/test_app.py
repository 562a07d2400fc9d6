"""
Tests for the FastAPI surface: routing, error mapping and run cancellation.
"""

import asyncio
import pytest
import httpx
from fastapi.testclient import TestClient

from showrunner.app import create_app, status_for
from showrunner.config import PipelineSettings
from showrunner.core.errors import AuthFailure, ContentLocked, StoryNotFound
from showrunner.core.service import ShowrunnerService
from showrunner.services import InMemoryStoryStore
from showrunner.tests.fakes import StudioScript, make_gateway

HEADERS = {"X-User-Id": "user-1"}
PREMISE = {"premise": "A retired detective takes one last case", "genre": "Mystery thriller", "tone": "Dark"}


def _client(studio, **settings):
    gateway, _, _ = make_gateway(studio)
    service = ShowrunnerService(gateway, InMemoryStoryStore(), settings=PipelineSettings(**settings))
    return TestClient(create_app(service))


class TestStatusMapping:
    """Tests for status_for."""

    def test_mapping(self):
        assert status_for(StoryNotFound()) == 404
        assert status_for(ContentLocked()) == 423
        assert status_for(AuthFailure()) == 502


class TestRoutes:
    """Tests for the HTTP routes."""

    def setup_method(self):
        self.studio = StudioScript()
        self.client = _client(self.studio)

    def _create(self):
        response = self.client.post("/story-bibles", json=PREMISE, headers=HEADERS)
        assert response.status_code == 201
        return response.json()

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "showrunner"}

    def test_missing_user_header(self):
        response = self.client.post("/story-bibles", json=PREMISE)

        assert response.status_code == 401

    def test_create_and_read(self):
        bible = self._create()

        response = self.client.get(f"/story-bibles/{bible['id']}", headers=HEADERS)
        lock = self.client.get(f"/story-bibles/{bible['id']}/lock", headers=HEADERS)

        assert response.json()["series_title"] == "The Last Case"
        assert len(response.json()["characters"]) == 7
        assert lock.json()["is_locked"] is False
        assert lock.json()["can_add_character"] is True

    def test_other_owner_gets_404(self):
        bible = self._create()

        response = self.client.get(f"/story-bibles/{bible['id']}", headers={"X-User-Id": "user-2"})

        assert response.status_code == 404
        assert response.json()["error"] == "StoryNotFound"
        assert response.json()["detail"] == StoryNotFound.user_message

    def test_locked_flow(self):
        bible = self._create()
        story_id = bible["id"]

        out_of_order = self.client.post(f"/story-bibles/{story_id}/episodes", json={"episode_number": 2}, headers=HEADERS)
        first = self.client.post(f"/story-bibles/{story_id}/episodes", json={"episode_number": 1}, headers=HEADERS)
        edit = self.client.patch(
            f"/story-bibles/{story_id}/characters/Walter Brennan",
            json={"description": "Changed"},
            headers=HEADERS,
        )
        regenerate = self.client.post(f"/story-bibles/{story_id}/regenerate", headers=HEADERS)
        added = self.client.post(
            f"/story-bibles/{story_id}/characters", json={"name": "Officer Dale Pruitt"}, headers=HEADERS
        )
        duplicate = self.client.post(
            f"/story-bibles/{story_id}/characters", json={"name": "Walter Brennan"}, headers=HEADERS
        )

        assert out_of_order.status_code == 422
        assert out_of_order.json()["error"] == "EpisodeOutOfSequence"
        assert first.status_code == 201
        assert sum(1 for o in first.json()["branching_options"] if o["canonical"]) == 1
        assert edit.status_code == 423
        assert regenerate.status_code == 423
        assert added.status_code == 201
        assert duplicate.status_code == 409
        assert self.client.get(f"/story-bibles/{story_id}/lock", headers=HEADERS).json()["is_locked"] is True

    def test_choice_and_preproduction(self):
        story_id = self._create()["id"]
        self.client.post(f"/story-bibles/{story_id}/episodes", json={"episode_number": 1}, headers=HEADERS)

        bad_choice = self.client.post(
            f"/story-bibles/{story_id}/episodes/1/choice", json={"choice": "Go fishing"}, headers=HEADERS
        )
        choice = self.client.post(
            f"/story-bibles/{story_id}/episodes/1/choice", json={"choice": "Walter burns the letter"}, headers=HEADERS
        )
        document = self.client.post(
            f"/story-bibles/{story_id}/episodes/1/preproduction", json={"document_type": "casting"}, headers=HEADERS
        )
        episodes = self.client.get(f"/story-bibles/{story_id}/episodes", headers=HEADERS)

        assert bad_choice.status_code == 422
        assert choice.json()["chosen_path"] == "Walter burns the letter"
        assert document.status_code == 201
        assert document.json()["document_type"] == "casting"
        assert [e["number"] for e in episodes.json()] == [1]

    def test_regeneration_limit(self):
        self.client = _client(self.studio, regeneration_limit=1)
        story_id = self._create()["id"]

        first = self.client.post(f"/story-bibles/{story_id}/regenerate", headers=HEADERS)
        second = self.client.post(f"/story-bibles/{story_id}/regenerate", headers=HEADERS)

        assert first.status_code == 200
        assert second.status_code == 429

    def test_pipeline_failure_is_502(self):
        self.studio.fail_stage = "draft"

        response = self.client.post("/story-bibles", json=PREMISE, headers=HEADERS)

        assert response.status_code == 502
        assert response.json()["error"] == "DraftingFailed"

    def test_series_edit_and_versions(self):
        story_id = self._create()["id"]

        edited = self.client.patch(f"/story-bibles/{story_id}", json={"theme": "Guilt"}, headers=HEADERS)
        versions = self.client.get(f"/story-bibles/{story_id}/versions", headers=HEADERS)

        assert edited.json()["theme"] == "Guilt"
        assert len(versions.json()) == 2

    def test_cancel_unknown_run(self):
        response = self.client.post("/runs/nope/cancel", headers=HEADERS)

        assert response.status_code == 404


class TestRunCancellation:
    """Tests for cancelling an in-flight generation over HTTP."""

    @pytest.mark.asyncio
    async def test_cancel_in_flight_episode(self):
        studio = StudioScript()
        started = asyncio.Event()
        release = asyncio.Event()
        armed = []

        async def handler(system, user, json_mode):
            if armed and StudioScript.stage_of(system) == "synthesis":
                started.set()
                await release.wait()
            return studio(system, user, json_mode)

        gateway, _, _ = make_gateway(lambda s, u, j: handler(s, u, j))
        service = ShowrunnerService(gateway, InMemoryStoryStore())
        app = create_app(service)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            created = await client.post("/story-bibles", json=PREMISE, headers=HEADERS)
            story_id = created.json()["id"]
            armed.append(True)

            generation = asyncio.create_task(client.post(
                f"/story-bibles/{story_id}/episodes",
                json={"episode_number": 1},
                headers={**HEADERS, "X-Run-Id": "run-42"},
            ))
            await asyncio.wait_for(started.wait(), timeout=5)

            cancelled = await client.post("/runs/run-42/cancel", headers=HEADERS)
            response = await generation
            episodes = await client.get(f"/story-bibles/{story_id}/episodes", headers=HEADERS)

        assert cancelled.status_code == 200
        assert cancelled.json() == {"success": True, "run_id": "run-42", "message": "Generation cancelled"}
        assert response.status_code == 409
        assert episodes.json() == []
        assert app.state.active_runs == {}

    @pytest.mark.asyncio
    async def test_other_user_cannot_cancel_run(self):
        studio = StudioScript()
        started = asyncio.Event()
        release = asyncio.Event()
        armed = []

        async def handler(system, user, json_mode):
            if armed and StudioScript.stage_of(system) == "synthesis":
                started.set()
                await release.wait()
            return studio(system, user, json_mode)

        gateway, _, _ = make_gateway(lambda s, u, j: handler(s, u, j))
        service = ShowrunnerService(gateway, InMemoryStoryStore())
        app = create_app(service)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            created = await client.post("/story-bibles", json=PREMISE, headers=HEADERS)
            story_id = created.json()["id"]
            armed.append(True)

            generation = asyncio.create_task(client.post(
                f"/story-bibles/{story_id}/episodes",
                json={"episode_number": 1},
                headers={**HEADERS, "X-Run-Id": "run-a"},
            ))
            await asyncio.wait_for(started.wait(), timeout=5)

            active = set(app.state.active_runs)
            intruder = await client.post("/runs/run-a/cancel", headers={"X-User-Id": "intruder"})
            release.set()
            response = await generation

        assert active == {("user-1", "run-a")}
        assert intruder.status_code == 404
        assert response.status_code == 201
        assert response.json()["number"] == 1
