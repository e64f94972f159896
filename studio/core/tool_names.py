"""Canonical tool name enum: replace scattered string comparisons."""

from __future__ import annotations

from enum import Enum


class ToolName(str, Enum):
    """Agent tool names, in catalog order. Values are the wire names."""

    SAVE_OVERVIEW = "save-overview"
    SAVE_AESTHETIC = "save-aesthetic"
    SAVE_BRAND = "save-brand"
    ADD_CHARACTER = "add-character"
    UPDATE_CHARACTER = "update-character"
    GENERATE_SCRIPT = "generate-script"
    EDIT_SCENE = "edit-scene"
    UPDATE_SCRIPT = "update-script"
    ADD_SCENE = "add-scene"
    REMOVE_SCENE = "remove-scene"
    PREPROCESS_SCRIPT = "preprocess-script"
    GENERATE_PREPROCESSING_ASSETS = "generate-preprocessing-assets"
    GENERATE_LOCATION_IMAGE = "generate-location-image"
    EDIT_LOCATION_IMAGE = "edit-location-image"
    EDIT_ATTIRE_ANGLES = "edit-attire-angles"
    GENERATE_ALL_THUMBNAILS = "generate-all-thumbnails"
    EDIT_THUMBNAIL = "edit-thumbnail"
    GENERATE_ALL_CLIPS = "generate-all-clips"
    ASSEMBLE_FINAL_OUTPUT = "assemble-final-output"
    UPDATE_CHECKLIST_ITEM = "update-checklist-item"
    SHOW_ARTIFACT = "show-artifact"
    REQUEST_UPLOAD = "request-upload"
    GENERATE_CHARACTER_ANGLES = "generate-character-angles"
    CREATE_VOICE_CLONE = "create-voice-clone"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "ToolName | None":
        """Wire name to enum; snake_case spellings are accepted too."""
        try:
            return cls(name.strip().replace("_", "-"))
        except ValueError:
            return None
