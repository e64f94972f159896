"""Per-tool argument models.

Each tool's ``args`` object is parsed into exactly one of these before its
handler runs. ``TOOL_ARGS`` maps every ``ToolName`` to its model, and is
checked at import time to cover the whole enum.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from studio.config import CLIP_DURATION_SECONDS
from studio.core.tool_names import ToolName
from studio.models.base import CamelModel
from studio.models.project import (
    AestheticStyle,
    ArtifactType,
    AspectRatio,
    BrandColor,
    ChecklistItemId,
    ChecklistStatus,
    SceneType,
)

MAX_REFERENCE_PHOTOS = 5


# ── Setup ──


class SaveOverviewArgs(CamelModel):
    prompt: str = Field(..., min_length=1, description="What the video is about")
    aspect_ratio: AspectRatio = Field(..., description="9:16 portrait or 16:9 landscape")
    target_duration_seconds: int = Field(..., ge=1, description="Target length in seconds")
    additional_notes: str = ""


class SaveAestheticArgs(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    style: AestheticStyle
    reference_image_urls: list[str] = Field(default_factory=list)


class SaveBrandArgs(CamelModel):
    skip_brand: bool = False
    name: str = ""
    description: str = ""
    logo_url: Optional[str] = None
    colors: list[BrandColor] = Field(default_factory=list)


# ── Characters ──


class AddCharacterArgs(CamelModel):
    name: str = Field(..., min_length=1)
    reference_photo_urls: list[str] = Field(..., min_length=1, max_length=MAX_REFERENCE_PHOTOS)
    voice_sample_url: Optional[str] = None


class UpdateCharacterArgs(CamelModel):
    character_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    reference_photo_urls: Optional[list[str]] = Field(default=None, max_length=MAX_REFERENCE_PHOTOS)
    voice_sample_url: Optional[str] = None


class CharacterRefArgs(CamelModel):
    """``characterId`` may be an id, a name, or a placeholder; see entity_resolution."""
    character_id: str = ""


# ── Script ──


class GenerateScriptArgs(CamelModel):
    additional_guidance: Optional[str] = None


class EditSceneArgs(CamelModel):
    scene_number: Optional[int] = Field(default=None, description="1-based scene number")
    scene_id: Optional[str] = None
    field: str = Field(..., description="description, dialogue, type, speaker or includeBrandLogo")
    new_value: str
    reason: Optional[str] = None


class ScriptUpdate(CamelModel):
    scene_id: str
    type: Optional[SceneType] = None
    description: Optional[str] = None
    dialogue: Optional[str] = None
    speaking_character_id: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=1, le=CLIP_DURATION_SECONDS)
    include_brand_logo: Optional[bool] = None


class UpdateScriptArgs(CamelModel):
    updates: list[ScriptUpdate] = Field(..., min_length=1)


class AddSceneArgs(CamelModel):
    insert_after_scene_id: Optional[str] = None
    type: SceneType
    description: str
    dialogue: Optional[str] = None
    speaking_character_id: Optional[str] = None
    visual_character_ids: list[str] = Field(default_factory=list)
    duration: Optional[int] = Field(default=None, ge=1, le=CLIP_DURATION_SECONDS)
    include_brand_logo: bool = False


class RemoveSceneArgs(CamelModel):
    scene_id: str = Field(..., min_length=1)


# ── Preprocessing and assets ──


class PreprocessScriptArgs(CamelModel):
    confirm_finalized: bool = False


class ConfirmGenerateArgs(CamelModel):
    confirm_generate: bool = False


class GenerateLocationImageArgs(CamelModel):
    location_id: str = Field(..., min_length=1, description="Location id or name")


class EditLocationImageArgs(CamelModel):
    location_id: str = Field(..., min_length=1, description="Location id or name")
    instructions: str = Field(..., min_length=1)
    reference_location_id: Optional[str] = None


class EditAttireAnglesArgs(CamelModel):
    attire_id: str = Field(..., min_length=1)
    instructions: str = Field(..., min_length=1)
    reference_location_id: Optional[str] = None


class EditThumbnailArgs(CamelModel):
    scene_number: int = Field(..., description="1-based scene number")
    instructions: str = Field(..., min_length=1)


class AssembleFinalOutputArgs(CamelModel):
    confirm_stitch: bool = False
    confirm_reassemble: bool = False


# ── Session / UI ──


class UpdateChecklistItemArgs(CamelModel):
    item_id: ChecklistItemId
    status: ChecklistStatus


class ShowArtifactArgs(CamelModel):
    artifact_type: ArtifactType
    artifact_id: Optional[str] = None


class RequestUploadArgs(CamelModel):
    upload_type: Literal["image", "audio", "document"]
    purpose: str = Field(..., min_length=1)
    multiple: bool = False
    target_id: Optional[str] = None


TOOL_ARGS: dict[ToolName, type[CamelModel]] = {
    ToolName.SAVE_OVERVIEW: SaveOverviewArgs,
    ToolName.SAVE_AESTHETIC: SaveAestheticArgs,
    ToolName.SAVE_BRAND: SaveBrandArgs,
    ToolName.ADD_CHARACTER: AddCharacterArgs,
    ToolName.UPDATE_CHARACTER: UpdateCharacterArgs,
    ToolName.GENERATE_SCRIPT: GenerateScriptArgs,
    ToolName.EDIT_SCENE: EditSceneArgs,
    ToolName.UPDATE_SCRIPT: UpdateScriptArgs,
    ToolName.ADD_SCENE: AddSceneArgs,
    ToolName.REMOVE_SCENE: RemoveSceneArgs,
    ToolName.PREPROCESS_SCRIPT: PreprocessScriptArgs,
    ToolName.GENERATE_PREPROCESSING_ASSETS: ConfirmGenerateArgs,
    ToolName.GENERATE_LOCATION_IMAGE: GenerateLocationImageArgs,
    ToolName.EDIT_LOCATION_IMAGE: EditLocationImageArgs,
    ToolName.EDIT_ATTIRE_ANGLES: EditAttireAnglesArgs,
    ToolName.GENERATE_ALL_THUMBNAILS: ConfirmGenerateArgs,
    ToolName.EDIT_THUMBNAIL: EditThumbnailArgs,
    ToolName.GENERATE_ALL_CLIPS: ConfirmGenerateArgs,
    ToolName.ASSEMBLE_FINAL_OUTPUT: AssembleFinalOutputArgs,
    ToolName.UPDATE_CHECKLIST_ITEM: UpdateChecklistItemArgs,
    ToolName.SHOW_ARTIFACT: ShowArtifactArgs,
    ToolName.REQUEST_UPLOAD: RequestUploadArgs,
    ToolName.GENERATE_CHARACTER_ANGLES: CharacterRefArgs,
    ToolName.CREATE_VOICE_CLONE: CharacterRefArgs,
}

_missing = set(ToolName) - set(TOOL_ARGS)
if _missing:
    raise RuntimeError(f"Tools without an argument model: {sorted(t.value for t in _missing)}")
