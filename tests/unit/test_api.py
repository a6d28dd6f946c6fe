"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from reelsmith.api.deps import get_registry
from reelsmith.api.errors import status_code_for
from reelsmith.core.exceptions import (
    EntityNotFound,
    GenerationFailed,
    MediaProcessingError,
    PreconditionViolation,
    QuotaExceeded,
)
from reelsmith.main import app
from reelsmith.models.schemas import ScriptPlan
from reelsmith.pipelines.block_renderer import BlockRenderer
from reelsmith.pipelines.final_assembly import FinalAssembler
from reelsmith.services.script_generator import ScriptPlanner
from reelsmith.services.voice_library import VoiceLibrary

PLAN = {
    "blocks": [
        {"type": "NARRATOR", "duration_target": 4, "script": "Hola.", "user_instructions": "Habla"},
        {"type": "SHOWCASE", "duration_target": 6, "script": "", "user_instructions": "Graba"},
    ]
}


class PlanOnlyGenerator:
    async def generate(self, intent, draft=""):
        return ScriptPlan.model_validate(PLAN)


class CloneOnlyVoiceClient:
    async def clone_voice(self, name, sample_audio_paths):
        assert all(path.exists() for path in sample_audio_paths)
        return "cloned-1"

    async def synthesize_speech(self, text, voice_id):
        return b"PREVIEW"


@pytest.fixture
def client(settings, logger, repository, object_store, fakes):
    media = fakes.media()
    registry = {
        "settings": settings,
        "repository": repository,
        "object_store": object_store,
        "media_processor": media,
        "block_renderer": BlockRenderer(
            settings, logger, repository, object_store, fakes.clip_generator(), fakes.voice_client(), media
        ),
        "final_assembler": FinalAssembler(settings, logger, repository, object_store, media),
        "script_planner": ScriptPlanner(settings, logger, repository, PlanOnlyGenerator()),
        "voice_library": VoiceLibrary(settings, logger, repository, CloneOnlyVoiceClient(), object_store),
    }
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_status_codes():
    assert status_code_for(PreconditionViolation("x")) == 400
    assert status_code_for(EntityNotFound("x")) == 404
    assert status_code_for(GenerationFailed("x")) == 502
    assert status_code_for(QuotaExceeded("x")) == 502
    assert status_code_for(MediaProcessingError("x")) == 500


def test_item_script_upload_render_flow(client, seed_png):
    created = client.post("/v1/items", json={"title": "Café", "script": "borrador"})
    assert created.status_code == 200
    item_id = created.json()["data"]["id"]

    planned = client.post(f"/v1/items/{item_id}/script")
    assert planned.status_code == 200
    blocks = planned.json()["data"]
    assert [b["order"] for b in blocks] == [1, 2]

    for block in blocks:
        upload = client.post(
            f"/v1/blocks/{block['id']}/upload", files={"file": ("seed.png", seed_png, "image/png")}
        )
        assert upload.status_code == 200
        assert upload.json()["data"]["status"] == "READY"

        rendered = client.post(f"/v1/blocks/{block['id']}/generate", json={"voice_id": None})
        assert rendered.status_code == 200
        assert rendered.json()["data"]["block"]["status"] == "COMPLETED"

    final = client.post(f"/v1/items/{item_id}/render")
    assert final.status_code == 200
    assert final.json()["data"]["item"]["final_video_path"] == f"renders/{item_id}.mp4"

    fetched = client.get(f"/v1/items/{item_id}").json()["data"]
    assert fetched["item"]["status"] == "COMPLETED"
    assert len(fetched["blocks"]) == 2


def test_render_without_ready_blocks_is_400(client):
    item_id = client.post("/v1/items", json={"title": "Café"}).json()["data"]["id"]
    client.post(f"/v1/items/{item_id}/script")

    response = client.post(f"/v1/items/{item_id}/render")

    assert response.status_code == 400
    assert "not ready" in response.json()["detail"]


def test_unsupported_seed_image_is_400(client, fakes):
    item_id = client.post("/v1/items", json={"title": "Café"}).json()["data"]["id"]
    block_id = client.post(f"/v1/items/{item_id}/script").json()["data"][0]["id"]

    response = client.post(
        f"/v1/blocks/{block_id}/upload", files={"file": ("seed.gif", fakes.encode_image("GIF"), "image/gif")}
    )

    assert response.status_code == 400
    assert "image/gif" in response.json()["detail"]


def test_unknown_block_is_404(client):
    response = client.post("/v1/blocks/missing/generate")

    assert response.status_code == 404


def test_empty_title_is_rejected(client):
    assert client.post("/v1/items", json={"title": ""}).status_code == 422


def test_clone_and_list_voices(client):
    response = client.post(
        "/v1/voices/clone",
        data={"name": "Ana", "organization_id": "org-1"},
        files=[("audio", ("a.mp3", b"ONE", "audio/mpeg")), ("audio", ("b.wav", b"TWO", "audio/wav"))],
    )
    assert response.status_code == 200
    assert response.json()["data"]["elevenlabs_voice_id"] == "cloned-1"

    listed = client.get("/v1/voices", params={"organization_id": "org-1"}).json()["data"]
    assert [v["name"] for v in listed] == ["Ana"]
    assert client.get("/v1/voices", params={"organization_id": "org-2"}).json()["data"] == []


def test_health_reports_degradations(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["degradations"] == {}
