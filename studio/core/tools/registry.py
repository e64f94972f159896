"""Tool metadata registry: build, query, and look up ToolMeta entries."""

from __future__ import annotations

from typing import Any, Optional, cast

from studio.core.tool_names import ToolName
from studio.core.tools.metadata import ToolKind, ToolMeta
from studio.core.tools.definitions import ALL_TOOLS

_TOOL_META: dict[str, ToolMeta] = {}


def _register(meta: ToolMeta) -> None:
    _TOOL_META[meta.name] = meta


def build_tool_registry() -> dict[str, ToolMeta]:
    if _TOOL_META:
        return _TOOL_META

    # Setup
    _register(ToolMeta(ToolName.SAVE_OVERVIEW.value, ToolKind.SETUP))
    _register(ToolMeta(ToolName.SAVE_AESTHETIC.value, ToolKind.SETUP))
    _register(ToolMeta(ToolName.SAVE_BRAND.value, ToolKind.SETUP))
    _register(ToolMeta(ToolName.ADD_CHARACTER.value, ToolKind.SETUP, creates_entity="character"))
    _register(ToolMeta(ToolName.UPDATE_CHARACTER.value, ToolKind.SETUP, id_fields=("characterId",)))
    _register(ToolMeta(ToolName.GENERATE_CHARACTER_ANGLES.value, ToolKind.GENERATOR, id_fields=("characterId",)))
    _register(ToolMeta(ToolName.CREATE_VOICE_CLONE.value, ToolKind.GENERATOR, id_fields=("characterId",)))

    # Script
    _register(ToolMeta(ToolName.GENERATE_SCRIPT.value, ToolKind.GENERATOR))
    _register(ToolMeta(ToolName.EDIT_SCENE.value, ToolKind.SETUP, id_fields=("sceneId",)))
    _register(ToolMeta(ToolName.UPDATE_SCRIPT.value, ToolKind.SETUP))
    _register(ToolMeta(ToolName.ADD_SCENE.value, ToolKind.SETUP, creates_entity="scene"))
    _register(ToolMeta(ToolName.REMOVE_SCENE.value, ToolKind.SETUP, id_fields=("sceneId",)))

    # Generators
    _register(ToolMeta(ToolName.PREPROCESS_SCRIPT.value, ToolKind.GENERATOR))
    _register(ToolMeta(ToolName.GENERATE_PREPROCESSING_ASSETS.value, ToolKind.GENERATOR, fans_out=True))
    _register(ToolMeta(ToolName.GENERATE_LOCATION_IMAGE.value, ToolKind.GENERATOR, id_fields=("locationId",)))
    _register(ToolMeta(ToolName.EDIT_LOCATION_IMAGE.value, ToolKind.GENERATOR, id_fields=("locationId",)))
    _register(ToolMeta(ToolName.EDIT_ATTIRE_ANGLES.value, ToolKind.GENERATOR, id_fields=("attireId",)))
    _register(ToolMeta(ToolName.GENERATE_ALL_THUMBNAILS.value, ToolKind.GENERATOR, fans_out=True))
    _register(ToolMeta(ToolName.EDIT_THUMBNAIL.value, ToolKind.GENERATOR))
    _register(ToolMeta(ToolName.GENERATE_ALL_CLIPS.value, ToolKind.GENERATOR, fans_out=True))

    # Assembly
    _register(ToolMeta(ToolName.ASSEMBLE_FINAL_OUTPUT.value, ToolKind.ASSEMBLY))

    # UI
    _register(ToolMeta(ToolName.UPDATE_CHECKLIST_ITEM.value, ToolKind.UI))
    _register(ToolMeta(ToolName.SHOW_ARTIFACT.value, ToolKind.UI))
    _register(ToolMeta(ToolName.REQUEST_UPLOAD.value, ToolKind.UI, pauses_loop=True))

    return _TOOL_META


def get_tool_meta(name: str) -> Optional[ToolMeta]:
    build_tool_registry()
    return _TOOL_META.get(name)


def tools_by_kind(kind: ToolKind) -> list[dict[str, Any]]:
    build_tool_registry()
    allowed = {k for k, v in _TOOL_META.items() if v.kind == kind}
    return [t for t in ALL_TOOLS if t["function"]["name"] in allowed]


def tool_schema_by_name(name: str) -> Optional[dict[str, Any]]:
    for t in ALL_TOOLS:
        if t["function"]["name"] == name:
            return cast(dict[str, Any], t)
    return None


def pauses_loop(name: str) -> bool:
    meta = get_tool_meta(name)
    return bool(meta and meta.pauses_loop)
