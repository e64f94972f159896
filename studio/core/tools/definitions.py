"""
Tool definitions in OpenAI tool schema format.

Tools are grouped by what they touch:
  * SETUP      overview, aesthetic, brand, characters
  * SCRIPT     scene list edits (no provider calls except generate-script)
  * GENERATOR  slow provider calls, often fanned out over many entities
  * ASSEMBLY   the terminal stitch step
  * SESSION    checklist, preview focus, upload requests
"""

from __future__ import annotations

from typing import Any


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_STR = {"type": "string"}
_URLS = {"type": "array", "items": {"type": "string"}}
_SCENE_TYPES = ["dialogue", "ambient", "infographic"]


# ---- Setup -------------------------------------------------------------------

SETUP_TOOLS: list[dict[str, Any]] = [
    _tool(
        "save-overview",
        "Save or update the project overview: concept, aspect ratio and target duration. "
        "Call once the user has described what they want to make.",
        {
            "prompt": {"type": "string", "description": "Detailed description of the video: message, tone, requirements."},
            "aspectRatio": {"type": "string", "enum": ["9:16", "16:9"], "description": "9:16 portrait, 16:9 landscape."},
            "targetDurationSeconds": {"type": "integer", "description": "Target duration in seconds (typically 15-120)."},
            "additionalNotes": {"type": "string", "description": "Anything else worth keeping."},
        },
        ["prompt", "aspectRatio", "targetDurationSeconds"],
    ),
    _tool(
        "save-aesthetic",
        "Save or update the visual style. Must be set before character angles can be generated.",
        {
            "title": {"type": "string", "description": "Short title, e.g. 'Warm Corporate'."},
            "description": {"type": "string", "description": "Colors, mood, lighting, influences."},
            "style": {"type": "string", "enum": ["realistic", "cartoonish", "anime", "painterly", "other"]},
            "referenceImageUrls": {**_URLS, "description": "URLs of uploaded reference images."},
        },
        ["title", "description", "style"],
    ),
    _tool(
        "save-brand",
        "Save brand guidelines, or call with skipBrand=true when the user wants no branding.",
        {
            "skipBrand": {"type": "boolean", "description": "True if the video should carry no branding."},
            "name": _STR,
            "description": _STR,
            "logoUrl": {"type": "string", "description": "URL of the uploaded logo."},
            "colors": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"name": _STR, "hex": {"type": "string", "description": "e.g. '#1a73e8'"}},
                    "required": ["name", "hex"],
                },
            },
        },
        [],
    ),
    _tool(
        "add-character",
        "Add a character with reference photos (1-5) and optionally a voice sample.",
        {
            "name": _STR,
            "referencePhotoUrls": {**_URLS, "description": "Uploaded reference photo URLs, 1 to 5."},
            "voiceSampleUrl": {"type": "string", "description": "Uploaded audio sample URL (10s+ of clear speech)."},
        },
        ["name", "referencePhotoUrls"],
    ),
    _tool(
        "update-character",
        "Update an existing character's name, reference photos (replaces) or voice sample.",
        {
            "characterId": {"type": "string", "description": "Exact character id."},
            "name": _STR,
            "referencePhotoUrls": _URLS,
            "voiceSampleUrl": _STR,
        },
        ["characterId"],
    ),
    _tool(
        "generate-character-angles",
        "Generate 4 reference angle images for a character in the project's art style. "
        "A character name is accepted if the id is unknown.",
        {"characterId": {"type": "string", "description": "Character id, or name if unsure."}},
        ["characterId"],
    ),
    _tool(
        "create-voice-clone",
        "Create a voice clone from the character's voice sample. Requires generated angles first.",
        {"characterId": {"type": "string", "description": "Character id, or name if unsure."}},
        ["characterId"],
    ),
]


# ---- Script --------------------------------------------------------------------

SCRIPT_TOOLS: list[dict[str, Any]] = [
    _tool(
        "generate-script",
        "Generate the scene-by-scene script. Requires overview, aesthetic and every character "
        "complete (angles + voice clone). Long running.",
        {"additionalGuidance": {"type": "string", "description": "Hooks, pacing, tone or CTA notes."}},
        [],
    ),
    _tool(
        "edit-scene",
        "Change one field of one scene and show a before/after diff. Reference the scene by "
        "1-based sceneNumber or by sceneId.",
        {
            "sceneNumber": {"type": "integer", "description": "1-based scene number."},
            "sceneId": _STR,
            "field": {"type": "string", "enum": ["description", "dialogue", "type", "speaker", "includeBrandLogo"]},
            "newValue": {
                "type": "string",
                "description": "type: dialogue|ambient|infographic. speaker: id, name or 'none'. "
                "includeBrandLogo: 'true'|'false'.",
            },
            "reason": {"type": "string", "description": "Why, shown to the user."},
        },
        ["field", "newValue"],
    ),
    _tool(
        "update-script",
        "Update several scenes at once. Only changed fields are reported back.",
        {
            "updates": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "sceneId": _STR,
                        "type": {"type": "string", "enum": _SCENE_TYPES},
                        "description": _STR,
                        "dialogue": _STR,
                        "speakingCharacterId": _STR,
                        "duration": {"type": "integer", "description": "Seconds, max 8."},
                        "includeBrandLogo": {"type": "boolean"},
                    },
                    "required": ["sceneId"],
                },
            },
        },
        ["updates"],
    ),
    _tool(
        "add-scene",
        "Insert a new scene after insertAfterSceneId, or at the start when omitted.",
        {
            "insertAfterSceneId": _STR,
            "type": {"type": "string", "enum": _SCENE_TYPES},
            "description": _STR,
            "dialogue": _STR,
            "speakingCharacterId": _STR,
            "visualCharacterIds": _URLS,
            "duration": {"type": "integer", "description": "Seconds, max 8. Defaults to 5."},
            "includeBrandLogo": {"type": "boolean"},
        },
        ["type", "description"],
    ),
    _tool(
        "remove-scene",
        "Remove a scene from the script.",
        {"sceneId": _STR},
        ["sceneId"],
    ),
]


# ---- Generators ------------------------------------------------------------------

GENERATOR_TOOLS: list[dict[str, Any]] = [
    _tool(
        "preprocess-script",
        "Extract locations and character attires from the finalized script and tag each scene. "
        "Only after the user confirms the script is final.",
        {"confirmFinalized": {"type": "boolean", "description": "Must be true."}},
        ["confirmFinalized"],
    ),
    _tool(
        "generate-preprocessing-assets",
        "Generate images for every location and 4 angles for every attire that does not have them yet, in parallel.",
        {"confirmGenerate": {"type": "boolean", "description": "Must be true."}},
        ["confirmGenerate"],
    ),
    _tool(
        "generate-location-image",
        "Generate the image for one location that is missing or failed. Use edit-location-image to change an existing one.",
        {"locationId": {"type": "string", "description": "Location id or name."}},
        ["locationId"],
    ),
    _tool(
        "edit-location-image",
        "Regenerate an existing location image with instructions, optionally matching another location's style.",
        {
            "locationId": {"type": "string", "description": "Location id or name."},
            "instructions": _STR,
            "referenceLocationId": {"type": "string", "description": "Location whose style to match."},
        },
        ["locationId", "instructions"],
    ),
    _tool(
        "edit-attire-angles",
        "Regenerate an attire's 4 reference angles with instructions.",
        {
            "attireId": _STR,
            "instructions": _STR,
            "referenceLocationId": {"type": "string", "description": "Location whose palette to match."},
        },
        ["attireId", "instructions"],
    ),
    _tool(
        "generate-all-thumbnails",
        "Generate a thumbnail for every scene from its location, characters and attires. Requires preprocessing.",
        {"confirmGenerate": {"type": "boolean", "description": "Must be true."}},
        ["confirmGenerate"],
    ),
    _tool(
        "edit-thumbnail",
        "Regenerate one scene's thumbnail with instructions.",
        {
            "sceneNumber": {"type": "integer", "description": "1-based scene number."},
            "instructions": _STR,
        },
        ["sceneNumber", "instructions"],
    ),
    _tool(
        "generate-all-clips",
        "Generate an 8-second clip for every scene from its thumbnail. Requires every thumbnail ready.",
        {"confirmGenerate": {"type": "boolean", "description": "Must be true."}},
        ["confirmGenerate"],
    ),
]


# ---- Assembly ----------------------------------------------------------------------

ASSEMBLY_TOOLS: list[dict[str, Any]] = [
    _tool(
        "assemble-final-output",
        "Concatenate every scene clip, in order, into the final video. Requires every clip ready. "
        "Set confirmReassemble to replace an existing final video.",
        {
            "confirmStitch": {"type": "boolean", "description": "Must be true."},
            "confirmReassemble": {"type": "boolean", "description": "Required when a final video already exists."},
        },
        ["confirmStitch"],
    ),
]


# ---- Session -----------------------------------------------------------------------

SESSION_TOOLS: list[dict[str, Any]] = [
    _tool(
        "update-checklist-item",
        "Set a checklist item's status.",
        {
            "itemId": {
                "type": "string",
                "enum": [
                    "overview", "aesthetic", "brand", "characters", "script",
                    "preprocessing", "thumbnails", "videos", "final_video",
                ],
            },
            "status": {"type": "string", "enum": ["not_started", "in_progress", "completed", "skipped"]},
        },
        ["itemId", "status"],
    ),
    _tool(
        "show-artifact",
        "Focus the preview panel on part of the project.",
        {
            "artifactType": {
                "type": "string",
                "enum": [
                    "overview", "aesthetic", "brand", "character", "script", "location",
                    "attire", "preprocessing", "thumbnails", "videos", "final_video",
                ],
            },
            "artifactId": {"type": "string", "description": "For character, location or attire."},
        },
        ["artifactType"],
    ),
    _tool(
        "request-upload",
        "Ask the user to upload files. The conversation pauses until they do.",
        {
            "uploadType": {"type": "string", "enum": ["image", "audio", "document"]},
            "purpose": {"type": "string", "description": "e.g. 'character reference', 'voice sample', 'brand logo'."},
            "multiple": {"type": "boolean"},
            "targetId": {"type": "string", "description": "Entity the upload is for."},
        },
        ["uploadType", "purpose"],
    ),
]


_BY_NAME: dict[str, dict[str, Any]] = {
    t["function"]["name"]: t
    for t in SETUP_TOOLS + SCRIPT_TOOLS + GENERATOR_TOOLS + ASSEMBLY_TOOLS + SESSION_TOOLS
}

# Catalog order, as presented to the model.
CATALOG_ORDER: tuple[str, ...] = (
    "save-overview", "save-aesthetic", "save-brand", "add-character", "update-character",
    "generate-script", "edit-scene", "update-script", "add-scene", "remove-scene",
    "preprocess-script", "generate-preprocessing-assets", "generate-location-image",
    "edit-location-image", "edit-attire-angles", "generate-all-thumbnails", "edit-thumbnail",
    "generate-all-clips", "assemble-final-output", "update-checklist-item", "show-artifact",
    "request-upload", "generate-character-angles", "create-voice-clone",
)

ALL_TOOLS: list[dict[str, Any]] = [_BY_NAME[name] for name in CATALOG_ORDER]
