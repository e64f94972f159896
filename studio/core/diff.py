"""
Field-level diff engine for scene edits.

Two entry points:
- ``compute_diff``: one field on one scene (the ``edit-scene`` tool). Returns
  the before/after record and the update dict to put in an ``updateScene``
  mutation, or raises ``DiffError`` with a message fit for the agent.
- ``compute_script_diffs``: many fields across many scenes (``update-script``).
  Reports only fields whose value actually changes.

Pure functions: no I/O, no Project writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from studio.models.project import Character, Scene, SceneScript, SceneType

VALID_FIELDS: tuple[str, ...] = ("description", "dialogue", "type", "speaker", "includeBrandLogo")

NO_SPEAKER = "(none)"


class DiffError(ValueError):
    """An edit that cannot be expressed against the scene as it stands."""


@dataclass(frozen=True)
class FieldDiff:
    field: str
    old_value: str
    new_value: str


@dataclass(frozen=True)
class SceneDiff:
    """One changed field on one scene; ``scene_number`` is 1-based."""
    scene_number: int
    field: str
    old_value: str
    new_value: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sceneNumber": self.scene_number,
            "field": self.field,
            "oldValue": self.old_value,
            "newValue": self.new_value,
        }


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def _speaker_id_from(value: str, characters: Iterable[Character]) -> str:
    """A bare name resolves to the character's id; anything with a dash is taken as an id."""
    if value and "-" not in value:
        lowered = value.lower()
        for character in characters:
            if character.name.lower() == lowered:
                return character.id
    return value


def _speaker_name(character_id: Optional[str], characters: Iterable[Character]) -> str:
    if not character_id:
        return NO_SPEAKER
    for character in characters:
        if character.id == character_id:
            return character.name
    return NO_SPEAKER


def compute_diff(
    scene: Scene,
    field: str,
    new_value: str,
    characters: Iterable[Character],
) -> tuple[FieldDiff, dict[str, Any]]:
    """Diff a single-field edit and build the scene update for it.

    Raises:
        DiffError: unknown field, invalid type, or dialogue on a scene with no speaker.
    """
    characters = list(characters)
    updates: dict[str, Any] = {}

    if field == "description":
        old_value = scene.description
        updates["description"] = new_value

    elif field == "dialogue":
        if scene.script is None:
            raise DiffError("Cannot set dialogue without a speaker. Set the speaker first.")
        old_value = scene.script.dialogue
        updates["script"] = SceneScript(
            speaker_character_id=scene.script.speaker_character_id,
            dialogue=new_value,
        ).to_wire()

    elif field == "type":
        old_value = scene.type.value
        try:
            updates["type"] = SceneType(new_value).value
        except ValueError as e:
            valid = ", ".join(f"'{t.value}'" for t in SceneType)
            raise DiffError(f"Invalid scene type. Must be one of {valid}.") from e

    elif field == "speaker":
        old_id = scene.script.speaker_character_id if scene.script else None
        old_value = _speaker_name(old_id, characters)
        speaker_id = _speaker_id_from(new_value.strip(), characters)
        if not speaker_id or speaker_id.lower() == "none":
            updates["script"] = None
            new_value = NO_SPEAKER
        else:
            updates["script"] = SceneScript(
                speaker_character_id=speaker_id,
                dialogue=scene.script.dialogue if scene.script else "",
            ).to_wire()
            new_value = _speaker_name(speaker_id, characters)

    elif field == "includeBrandLogo":
        old_value = _bool_text(scene.include_brand_logo)
        flag = new_value.strip().lower() == "true"
        updates["include_brand_logo"] = flag
        new_value = _bool_text(flag)

    else:
        raise DiffError(f"Unknown field: {field}. Valid fields: {', '.join(VALID_FIELDS)}")

    return FieldDiff(field=field, old_value=old_value, new_value=new_value), updates


def compute_script_diffs(
    updates: Iterable[dict[str, Any]],
    scenes: list[Scene],
    characters: Iterable[Character],
) -> list[SceneDiff]:
    """Diff a batch of ``{sceneId, type?, description?, dialogue?, speakingCharacterId?, includeBrandLogo?}``.

    Unknown scene ids are skipped. Values equal to the current ones produce no diff.
    """
    characters = list(characters)
    by_id = {scene.id: scene for scene in scenes}
    diffs: list[SceneDiff] = []

    for update in updates:
        scene = by_id.get(update.get("sceneId", ""))
        if scene is None:
            continue
        number = scenes.index(scene) + 1

        def record(field: str, old: str, new: str) -> None:
            if old != new:
                diffs.append(SceneDiff(scene_number=number, field=field, old_value=old, new_value=new))

        if update.get("type") is not None:
            record("type", scene.type.value, str(update["type"]))

        if update.get("description") is not None:
            record("description", scene.description, update["description"])

        if update.get("dialogue") is not None:
            old_dialogue = scene.script.dialogue if scene.script else ""
            record("dialogue", old_dialogue, update["dialogue"])

        if update.get("speakingCharacterId") is not None:
            old_id = scene.script.speaker_character_id if scene.script else ""
            new_id = update["speakingCharacterId"]
            if new_id != old_id:
                diffs.append(SceneDiff(
                    scene_number=number,
                    field="speaker",
                    old_value=_speaker_name(old_id, characters),
                    new_value=_speaker_name(new_id, characters),
                ))

        if update.get("includeBrandLogo") is not None:
            record(
                "includeBrandLogo",
                _bool_text(scene.include_brand_logo),
                _bool_text(bool(update["includeBrandLogo"])),
            )

    return diffs
