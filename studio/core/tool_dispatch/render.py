"""Render-context payloads for scene thumbnails and clips."""

from __future__ import annotations

from typing import Any, Optional

from studio.models.project import Project, Scene

DEFAULT_ATTIRE_NAME = "default"


def characters_in_scene(project: Project, scene: Scene) -> list[dict[str, Any]]:
    """Visual characters with the attire they wear in ``scene``.

    A character without an assigned attire (or whose attire has no angles
    yet) falls back to its own generated angles. Unknown ids are skipped.
    """
    entries: list[dict[str, Any]] = []
    for character_id in scene.visual_character_ids:
        character = project.get_character(character_id)
        if character is None:
            continue
        attire_id = scene.character_attire_ids.get(character_id)
        attire = project.get_attire(attire_id) if attire_id else None
        entries.append({
            "name": character.name,
            "attireName": attire.name if attire else DEFAULT_ATTIRE_NAME,
            "attireAngles": list(attire.reference_angles) if attire and attire.reference_angles
            else list(character.generated_angles),
        })
    return entries


def speaker_name(project: Project, scene: Scene) -> Optional[str]:
    if scene.script is None:
        return None
    return project.character_name(scene.script.speaker_character_id)


def location_image_url(project: Project, scene: Scene) -> Optional[str]:
    if not scene.location_id:
        return None
    location = project.get_location(scene.location_id)
    return location.reference_image_url if location else None


def scene_render_context(project: Project, scene: Scene) -> dict[str, Any]:
    """Everything the provider needs to render one scene, in wire shape."""
    return {
        "sceneId": scene.id,
        "sceneIndex": scene.index,
        "sceneType": scene.type.value,
        "sceneDescription": scene.description,
        "dialogue": scene.script.dialogue if scene.script and scene.script.dialogue else None,
        "speakerName": speaker_name(project, scene),
        "aspectRatio": project.aspect_ratio,
        "aestheticDescription": project.aesthetic.description if project.aesthetic else None,
        "locationImageUrl": location_image_url(project, scene),
        "charactersInScene": characters_in_scene(project, scene),
        "includeBrandLogo": scene.include_brand_logo,
        "brandName": project.brand.name if project.brand and project.brand.name else None,
    }


def thumbnail_payload(
    project: Project,
    scene: Scene,
    *,
    edit_instructions: Optional[str] = None,
) -> dict[str, Any]:
    payload = scene_render_context(project, scene)
    if edit_instructions is not None:
        payload["existingThumbnailUrl"] = scene.thumbnail_url
        payload["editInstructions"] = edit_instructions
    return payload


def clip_payload(project: Project, scene: Scene) -> dict[str, Any]:
    payload = scene_render_context(project, scene)
    payload.pop("locationImageUrl")
    payload["thumbnailUrl"] = scene.thumbnail_url
    return payload
