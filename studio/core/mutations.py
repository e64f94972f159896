"""Mutation applier: the only code that writes to a Project.

Tool handlers and fan-out workers describe changes as ``StateMutation``
values; this module interprets them. Appliers mutate the Project in place
and raise ``MutationError`` for anything they cannot apply, so the caller
(``ProjectStore``) can roll the whole ToolResult back.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from studio.models.base import CamelModel, to_camel
from studio.models.project import (
    Aesthetic,
    Artifact,
    Brand,
    Character,
    CharacterAttire,
    ChecklistItemId,
    ChecklistStatus,
    Location,
    Overview,
    Project,
    Scene,
    SceneScript,
)
from studio.models.tools import MutationType, StateMutation

logger = logging.getLogger(__name__)


class MutationError(Exception):
    """A mutation could not be applied (unknown entity, invalid payload)."""

    def __init__(self, mutation_type: MutationType, message: str):
        self.mutation_type = mutation_type
        super().__init__(f"{mutation_type.value}: {message}")


_Applier = Callable[[Project, Any], None]


# =============================================================================
# Helpers
# =============================================================================


def _entity_update(mutation_type: MutationType, payload: Any) -> tuple[str, dict[str, Any]]:
    if not isinstance(payload, dict) or "id" not in payload:
        raise MutationError(mutation_type, "payload must be {id, updates}")
    updates = payload.get("updates") or {}
    if not isinstance(updates, dict):
        raise MutationError(mutation_type, "updates must be an object")
    return str(payload["id"]), {to_camel(k): v for k, v in updates.items()}


def _merged(mutation_type: MutationType, current: CamelModel, updates: dict[str, Any]) -> Any:
    """Validate ``current`` with ``updates`` overlaid; returns a new model of the same type."""
    try:
        return type(current).model_validate({**current.to_wire(), **updates})
    except PydanticValidationError as e:
        raise MutationError(mutation_type, f"invalid update: {e.errors()[0]['msg']}") from e


def _parse(mutation_type: MutationType, model: type[CamelModel], payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise MutationError(mutation_type, f"invalid payload: {e.errors()[0]['msg']}") from e


def _parse_list(mutation_type: MutationType, model: type[CamelModel], payload: Any) -> list[Any]:
    if not isinstance(payload, list):
        raise MutationError(mutation_type, "payload must be a list")
    return [_parse(mutation_type, model, item) for item in payload]


def _replace(items: list[Any], new_item: Any) -> None:
    for i, existing in enumerate(items):
        if existing.id == new_item.id:
            items[i] = new_item
            return


# =============================================================================
# Appliers
# =============================================================================


def _set_overview(project: Project, payload: Any) -> None:
    project.overview = _parse(MutationType.SET_OVERVIEW, Overview, payload)


def _set_aesthetic(project: Project, payload: Any) -> None:
    project.aesthetic = _parse(MutationType.SET_AESTHETIC, Aesthetic, payload)


def _set_brand(project: Project, payload: Any) -> None:
    if payload is None:
        project.brand = None
        project.checklist[ChecklistItemId.BRAND] = ChecklistStatus.SKIPPED
        return
    project.brand = _parse(MutationType.SET_BRAND, Brand, payload)


def _add_character(project: Project, payload: Any) -> None:
    character = _parse(MutationType.ADD_CHARACTER, Character, payload)
    if project.get_character(character.id):
        raise MutationError(MutationType.ADD_CHARACTER, f"character {character.id} already exists")
    project.characters.append(character)


def _update_character(project: Project, payload: Any) -> None:
    entity_id, updates = _entity_update(MutationType.UPDATE_CHARACTER, payload)
    current = project.get_character(entity_id)
    if current is None:
        raise MutationError(MutationType.UPDATE_CHARACTER, f"character {entity_id} not found")
    _replace(project.characters, _merged(MutationType.UPDATE_CHARACTER, current, updates))


def _set_scenes(project: Project, payload: Any) -> None:
    project.scenes = _parse_list(MutationType.SET_SCENES, Scene, payload)


def _update_scene(project: Project, payload: Any) -> None:
    entity_id, updates = _entity_update(MutationType.UPDATE_SCENE, payload)
    current = project.get_scene(entity_id)
    if current is None:
        raise MutationError(MutationType.UPDATE_SCENE, f"scene {entity_id} not found")
    _replace(project.scenes, _merged(MutationType.UPDATE_SCENE, current, updates))


def _update_scenes(project: Project, payload: Any) -> None:
    """Batch script edit: ``[{sceneId, type?, description?, dialogue?, speakingCharacterId?, ...}]``."""
    if not isinstance(payload, list):
        raise MutationError(MutationType.UPDATE_SCENES, "payload must be a list")

    for raw in payload:
        scene_id = raw.get("sceneId") if isinstance(raw, dict) else None
        scene = project.get_scene(scene_id) if scene_id else None
        if scene is None:
            logger.warning(f"⚠️ updateScenes: skipping unknown scene {scene_id!r}")
            continue

        updates: dict[str, Any] = {}
        for key in ("type", "description", "duration", "includeBrandLogo"):
            if raw.get(key) is not None:
                updates[key] = raw[key]

        dialogue = raw.get("dialogue")
        speaker = raw.get("speakingCharacterId")
        if dialogue is not None or speaker is not None:
            existing = scene.script
            speaker_id = speaker or (existing.speaker_character_id if existing else "")
            if not speaker_id:
                raise MutationError(
                    MutationType.UPDATE_SCENES,
                    f"scene {scene.id}: dialogue needs a speaker",
                )
            updates["script"] = SceneScript(
                speaker_character_id=speaker_id,
                dialogue=dialogue if dialogue is not None else (existing.dialogue if existing else ""),
            ).to_wire()

        if updates:
            _replace(project.scenes, _merged(MutationType.UPDATE_SCENES, scene, updates))


def _add_scene(project: Project, payload: Any) -> None:
    scene = _parse(MutationType.ADD_SCENE, Scene, payload)
    if project.get_scene(scene.id):
        raise MutationError(MutationType.ADD_SCENE, f"scene {scene.id} already exists")
    project.scenes.append(scene)


def _remove_scene(project: Project, payload: Any) -> None:
    scene_id = payload.get("id") if isinstance(payload, dict) else payload
    scene = project.get_scene(str(scene_id)) if scene_id else None
    if scene is None:
        raise MutationError(MutationType.REMOVE_SCENE, f"scene {scene_id!r} not found")
    project.scenes.remove(scene)


def _reorder_scenes(project: Project, payload: Any) -> None:
    """Reorder by id list and rewrite ``index`` to match; unlisted scenes keep relative order at the end."""
    if not isinstance(payload, list):
        raise MutationError(MutationType.REORDER_SCENES, "payload must be a list of scene ids")
    by_id = {s.id: s for s in project.scenes}
    unknown = [sid for sid in payload if sid not in by_id]
    if unknown:
        raise MutationError(MutationType.REORDER_SCENES, f"unknown scene ids: {unknown}")

    listed = set(payload)
    ordered = [by_id[sid] for sid in payload]
    ordered += [s for s in project.scenes if s.id not in listed]
    for i, scene in enumerate(ordered):
        scene.index = i
    project.scenes = ordered


def _set_locations(project: Project, payload: Any) -> None:
    project.locations = _parse_list(MutationType.SET_LOCATIONS, Location, payload)


def _update_location(project: Project, payload: Any) -> None:
    entity_id, updates = _entity_update(MutationType.UPDATE_LOCATION, payload)
    current = project.get_location(entity_id)
    if current is None:
        raise MutationError(MutationType.UPDATE_LOCATION, f"location {entity_id} not found")
    _replace(project.locations, _merged(MutationType.UPDATE_LOCATION, current, updates))


def _set_character_attires(project: Project, payload: Any) -> None:
    project.character_attires = _parse_list(MutationType.SET_CHARACTER_ATTIRES, CharacterAttire, payload)


def _update_character_attire(project: Project, payload: Any) -> None:
    entity_id, updates = _entity_update(MutationType.UPDATE_CHARACTER_ATTIRE, payload)
    current = project.get_attire(entity_id)
    if current is None:
        raise MutationError(MutationType.UPDATE_CHARACTER_ATTIRE, f"attire {entity_id} not found")
    _replace(project.character_attires, _merged(MutationType.UPDATE_CHARACTER_ATTIRE, current, updates))


def _update_checklist_item(project: Project, payload: Any) -> None:
    entity_id, updates = _entity_update(MutationType.UPDATE_CHECKLIST_ITEM, payload)
    try:
        item = ChecklistItemId(entity_id)
        status = ChecklistStatus(updates.get("status"))
    except ValueError as e:
        raise MutationError(MutationType.UPDATE_CHECKLIST_ITEM, str(e)) from e
    project.checklist[item] = status


def _set_current_artifact(project: Project, payload: Any) -> None:
    project.current_artifact = (
        None if payload is None else _parse(MutationType.SET_CURRENT_ARTIFACT, Artifact, payload)
    )


def _set_final_output_url(project: Project, payload: Any) -> None:
    if not isinstance(payload, str) or not payload:
        raise MutationError(MutationType.SET_FINAL_OUTPUT_URL, "payload must be a non-empty URL")
    if project.final_output_url and project.final_output_url != payload:
        logger.info(f"🎬 Replacing final output {project.final_output_url} → {payload}")
    project.final_output_url = payload


def _reset_project(project: Project, payload: Any) -> None:
    fresh = Project(id=project.id, name=project.name)
    for field_name in Project.model_fields:
        setattr(project, field_name, getattr(fresh, field_name))


_APPLIERS: dict[MutationType, _Applier] = {
    MutationType.SET_OVERVIEW: _set_overview,
    MutationType.SET_AESTHETIC: _set_aesthetic,
    MutationType.SET_BRAND: _set_brand,
    MutationType.ADD_CHARACTER: _add_character,
    MutationType.UPDATE_CHARACTER: _update_character,
    MutationType.SET_SCENES: _set_scenes,
    MutationType.UPDATE_SCENE: _update_scene,
    MutationType.UPDATE_SCENES: _update_scenes,
    MutationType.ADD_SCENE: _add_scene,
    MutationType.REMOVE_SCENE: _remove_scene,
    MutationType.REORDER_SCENES: _reorder_scenes,
    MutationType.SET_LOCATIONS: _set_locations,
    MutationType.UPDATE_LOCATION: _update_location,
    MutationType.SET_CHARACTER_ATTIRES: _set_character_attires,
    MutationType.UPDATE_CHARACTER_ATTIRE: _update_character_attire,
    MutationType.UPDATE_CHECKLIST_ITEM: _update_checklist_item,
    MutationType.SET_CURRENT_ARTIFACT: _set_current_artifact,
    MutationType.SET_FINAL_OUTPUT_URL: _set_final_output_url,
    MutationType.RESET_PROJECT: _reset_project,
}

_missing = set(MutationType) - set(_APPLIERS)
if _missing:
    raise RuntimeError(f"Mutation types without an applier: {sorted(m.value for m in _missing)}")


def apply_mutation(project: Project, mutation: StateMutation) -> None:
    """Apply one mutation to ``project`` in place."""
    _APPLIERS[mutation.type](project, mutation.payload)
    project.updated_at = int(time.time() * 1000)


def mutation_entity_id(mutation: StateMutation) -> Optional[str]:
    """Best-effort entity id for event-log indexing."""
    payload = mutation.payload
    if isinstance(payload, dict):
        value = payload.get("id")
        return str(value) if value is not None else None
    if isinstance(payload, str) and mutation.type == MutationType.REMOVE_SCENE:
        return payload
    return None


__all__ = [
    "MutationError",
    "apply_mutation",
    "mutation_entity_id",
]
