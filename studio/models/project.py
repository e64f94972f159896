"""Project aggregate and its entities.

The Project is the single source of truth a session works against. Tool
handlers read it; only the mutation applier (``studio.core.mutations``)
writes it.
"""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from studio.config import CLIP_DURATION_SECONDS, DEFAULT_SCENE_DURATION
from studio.models.base import CamelModel


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    """Server-generated entity id."""
    return str(uuid.uuid4())


AspectRatio = Literal["9:16", "16:9"]


class AestheticStyle(str, Enum):
    REALISTIC = "realistic"
    CARTOONISH = "cartoonish"
    ANIME = "anime"
    PAINTERLY = "painterly"
    OTHER = "other"


class CharacterStatus(str, Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class AssetStatus(str, Enum):
    """Lifecycle of a generated-or-pending visual asset."""
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


class SceneType(str, Enum):
    DIALOGUE = "dialogue"
    AMBIENT = "ambient"
    INFOGRAPHIC = "infographic"


class ChecklistStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class ChecklistItemId(str, Enum):
    OVERVIEW = "overview"
    AESTHETIC = "aesthetic"
    BRAND = "brand"
    CHARACTERS = "characters"
    SCRIPT = "script"
    PREPROCESSING = "preprocessing"
    THUMBNAILS = "thumbnails"
    VIDEOS = "videos"
    FINAL_VIDEO = "final_video"


class ArtifactType(str, Enum):
    OVERVIEW = "overview"
    AESTHETIC = "aesthetic"
    BRAND = "brand"
    CHARACTER = "character"
    SCRIPT = "script"
    LOCATION = "location"
    ATTIRE = "attire"
    PREPROCESSING = "preprocessing"
    THUMBNAILS = "thumbnails"
    VIDEOS = "videos"
    FINAL_VIDEO = "final_video"


class ProjectStage(str, Enum):
    """Ordered production phases. Derived from state, never set by tools."""
    OVERVIEW = "overview"
    AESTHETIC = "aesthetic"
    BRAND = "brand"
    CHARACTERS = "characters"
    SCRIPT = "script"
    PREPROCESSING = "preprocessing"
    THUMBNAILS = "thumbnails"
    CLIPS = "clips"
    ASSEMBLY = "assembly"
    COMPLETE = "complete"


# =============================================================================
# Entities
# =============================================================================


class Overview(CamelModel):
    prompt: str
    aspect_ratio: AspectRatio = "16:9"
    target_duration_seconds: int = 60
    supporting_documents: list[str] = Field(default_factory=list)
    additional_notes: str = ""


class Aesthetic(CamelModel):
    id: str = Field(default_factory=new_id)
    title: str = ""
    description: str = ""
    style: AestheticStyle = AestheticStyle.OTHER
    reference_images: list[str] = Field(default_factory=list)


class BrandColor(CamelModel):
    name: str
    hex: str


class Brand(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    description: str = ""
    logo_url: Optional[str] = None
    colors: list[BrandColor] = Field(default_factory=list)


class Character(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    created_at: int = Field(default_factory=_now_ms)
    reference_photos: list[str] = Field(default_factory=list, max_length=5)
    voice_sample_url: Optional[str] = None
    generated_angles: list[str] = Field(default_factory=list, max_length=4)
    voice_clone_id: Optional[str] = None
    status: CharacterStatus = CharacterStatus.DRAFT
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Angles generated and a voice clone attached."""
        return bool(self.generated_angles) and bool(self.voice_clone_id)

    def missing_parts(self) -> list[str]:
        missing: list[str] = []
        if not self.generated_angles:
            missing.append("reference angles")
        if not self.voice_clone_id:
            missing.append("voice clone")
        return missing


class SceneScript(CamelModel):
    speaker_character_id: str
    dialogue: str = ""


class Scene(CamelModel):
    id: str = Field(default_factory=new_id)
    index: int = 0
    type: SceneType = SceneType.DIALOGUE
    duration: int = Field(default=DEFAULT_SCENE_DURATION, ge=1, le=CLIP_DURATION_SECONDS)
    description: str = ""
    script: Optional[SceneScript] = None
    include_brand_logo: bool = False
    location_id: Optional[str] = None
    visual_character_ids: list[str] = Field(default_factory=list)
    character_attire_ids: dict[str, str] = Field(default_factory=dict)
    thumbnail_url: Optional[str] = None
    thumbnail_status: AssetStatus = AssetStatus.PENDING
    clip_url: Optional[str] = None
    clip_status: AssetStatus = AssetStatus.PENDING

    @property
    def has_ready_thumbnail(self) -> bool:
        return bool(self.thumbnail_url) and self.thumbnail_status == AssetStatus.READY

    @property
    def has_ready_clip(self) -> bool:
        return bool(self.clip_url) and self.clip_status == AssetStatus.READY


class Location(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    reference_image_url: Optional[str] = None
    status: AssetStatus = AssetStatus.PENDING


class CharacterAttire(CamelModel):
    id: str = Field(default_factory=new_id)
    character_id: str
    name: str
    description: str = ""
    reference_angles: list[str] = Field(default_factory=list, max_length=4)
    status: AssetStatus = AssetStatus.PENDING


class Artifact(CamelModel):
    """What the preview panel should focus on."""
    type: ArtifactType
    id: Optional[str] = None


def default_checklist() -> dict[ChecklistItemId, ChecklistStatus]:
    return {item: ChecklistStatus.NOT_STARTED for item in ChecklistItemId}


class Project(CamelModel):
    """Aggregate root for one production session."""

    id: str = Field(default_factory=new_id)
    name: str = "Untitled project"
    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)
    overview: Optional[Overview] = None
    aesthetic: Optional[Aesthetic] = None
    brand: Optional[Brand] = None
    characters: list[Character] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    character_attires: list[CharacterAttire] = Field(default_factory=list)
    final_output_url: Optional[str] = None
    stage: ProjectStage = ProjectStage.OVERVIEW
    checklist: dict[ChecklistItemId, ChecklistStatus] = Field(default_factory=default_checklist)
    current_artifact: Optional[Artifact] = None

    # ── Lookups ──

    def get_character(self, character_id: str) -> Optional[Character]:
        return next((c for c in self.characters if c.id == character_id), None)

    def get_scene(self, scene_id: str) -> Optional[Scene]:
        return next((s for s in self.scenes if s.id == scene_id), None)

    def get_location(self, location_id: str) -> Optional[Location]:
        return next((loc for loc in self.locations if loc.id == location_id), None)

    def get_attire(self, attire_id: str) -> Optional[CharacterAttire]:
        return next((a for a in self.character_attires if a.id == attire_id), None)

    def scene_number(self, scene: Scene) -> int:
        """1-based position of ``scene`` in the current scene list."""
        return self.scenes.index(scene) + 1

    def scenes_in_order(self) -> list[Scene]:
        """Scenes sorted by their explicit sequence index, stable on ties."""
        return sorted(self.scenes, key=lambda s: s.index)

    def character_name(self, character_id: Optional[str]) -> Optional[str]:
        if not character_id:
            return None
        character = self.get_character(character_id)
        return character.name if character else None

    @property
    def has_aesthetic_description(self) -> bool:
        return bool(self.aesthetic and self.aesthetic.description)

    @property
    def aspect_ratio(self) -> AspectRatio:
        return self.overview.aspect_ratio if self.overview else "16:9"
