"""Pytest configuration and fixtures."""
from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from studio.core.tracing import clear_trace_context
from studio.models.project import (
    Aesthetic,
    AestheticStyle,
    AssetStatus,
    Character,
    CharacterAttire,
    Location,
    Overview,
    Project,
    Scene,
    SceneScript,
    SceneType,
)
from studio.services.generation import GenerationClient


def pytest_configure(config):
    """Ensure asyncio_mode is auto so async fixtures work when pyproject is not in cwd."""
    if hasattr(config.option, "asyncio_mode") and config.option.asyncio_mode is None:
        config.option.asyncio_mode = "auto"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop per-process singletons and trace context between tests."""
    clear_trace_context()
    yield
    clear_trace_context()
    from studio.core.session_guard import reset_session_guard
    from studio.services.asset_store import reset_asset_store
    reset_session_guard()
    reset_asset_store()


@pytest_asyncio.fixture
async def client():
    """Async test client over the ASGI app."""
    from studio.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# -----------------------------------------------------------------------------
# Project builders
# -----------------------------------------------------------------------------


def _make_character(name: str = "Ava", *, complete: bool = True, **overrides: Any) -> Character:
    fields: dict[str, Any] = {
        "name": name,
        "reference_photos": [f"https://cdn.test/{name.lower()}-photo.jpg"],
        "voice_sample_url": f"https://cdn.test/{name.lower()}-voice.mp3",
    }
    if complete:
        fields["generated_angles"] = [f"https://cdn.test/{name.lower()}-angle-{i}.png" for i in range(4)]
        fields["voice_clone_id"] = f"voice-{name.lower()}"
    fields.update(overrides)
    return Character(**fields)


def _make_project(**overrides: Any) -> Project:
    """Overview, aesthetic and one complete character; no scenes."""
    fields: dict[str, Any] = {
        "overview": Overview(prompt="A coffee shop launch teaser", aspect_ratio="16:9", target_duration_seconds=30),
        "aesthetic": Aesthetic(title="Warm film", description="Warm 35mm film look", style=AestheticStyle.REALISTIC),
        "characters": [_make_character()],
    }
    fields.update(overrides)
    return Project(**fields)


def _make_scenes(project: Project, count: int, **overrides: Any) -> list[Scene]:
    speaker = project.characters[0].id if project.characters else None
    scenes = []
    for i in range(count):
        fields: dict[str, Any] = {
            "index": i,
            "type": SceneType.DIALOGUE if speaker else SceneType.AMBIENT,
            "description": f"Scene {i + 1} description",
            "script": SceneScript(speaker_character_id=speaker, dialogue=f"Line {i + 1}") if speaker else None,
        }
        fields.update(overrides)
        scenes.append(Scene(**fields))
    return scenes


def _make_ready_project(scene_count: int = 3, *, clips: bool = False) -> Project:
    """A project through preprocessing with thumbnails (and optionally clips) ready."""
    project = _make_project()
    project.locations = [Location(name="Cafe", description="Sunny cafe", reference_image_url="https://cdn.test/cafe.png",
                                  status=AssetStatus.READY)]
    project.character_attires = [CharacterAttire(
        character_id=project.characters[0].id,
        name="Apron",
        reference_angles=["https://cdn.test/apron-0.png"],
        status=AssetStatus.READY,
    )]
    scenes = _make_scenes(
        project,
        scene_count,
        location_id=project.locations[0].id,
        visual_character_ids=[project.characters[0].id],
    )
    for i, scene in enumerate(scenes):
        scene.thumbnail_url = f"https://cdn.test/thumb-{i}.png"
        scene.thumbnail_status = AssetStatus.READY
        if clips:
            scene.clip_url = f"https://cdn.test/clip-{i}.mp4"
            scene.clip_status = AssetStatus.READY
    project.scenes = scenes
    return project


@pytest.fixture
def project() -> Project:
    return _make_project()


@pytest.fixture
def make_character():
    return _make_character


@pytest.fixture
def make_project():
    return _make_project


@pytest.fixture
def make_scenes():
    return _make_scenes


@pytest.fixture
def make_ready_project():
    return _make_ready_project


@pytest.fixture
def generation() -> MagicMock:
    """GenerationClient double; every endpoint is an AsyncMock."""
    mock = MagicMock(spec=GenerationClient)
    for name in (
        "generate_angles",
        "create_voice_clone",
        "generate_script",
        "preprocess_script",
        "generate_location_image",
        "generate_thumbnail",
        "generate_video",
        "health_check",
        "warmup",
        "close",
    ):
        setattr(mock, name, AsyncMock())
    return mock
