"""Handlers for the scene script: generation and edits."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from studio.config import DEFAULT_SCENE_DURATION
from studio.core.diff import DiffError, compute_diff, compute_script_diffs
from studio.core.stage_validator import Operation, check
from studio.core.tool_dispatch.context import ToolContext
from studio.models.project import Scene, SceneScript
from studio.models.tool_args import (
    AddSceneArgs,
    EditSceneArgs,
    GenerateScriptArgs,
    RemoveSceneArgs,
    UpdateScriptArgs,
)
from studio.models.tools import MutationType, StateMutation, ToolResult
from studio.services.generation import GenerationProviderError

logger = logging.getLogger(__name__)


def _normalize_scenes(raw_scenes: list[Any]) -> list[dict[str, Any]]:
    """Validate provider scenes and give each a sequence index if it lacks one."""
    scenes: list[dict[str, Any]] = []
    for position, raw in enumerate(raw_scenes):
        if not isinstance(raw, dict):
            raise ValueError(f"scene {position + 1} is not an object")
        scene = Scene.model_validate({"index": position, **raw})
        scenes.append(scene.to_wire())
    return scenes


async def generate_script(args: GenerateScriptArgs, ctx: ToolContext) -> ToolResult:
    project = ctx.project
    violation = check(Operation.GENERATE_SCRIPT, project)
    if violation:
        return ToolResult.fail(violation.message)
    overview, aesthetic = project.overview, project.aesthetic
    if overview is None or aesthetic is None:
        return ToolResult.fail("Cannot generate script without a project overview and art style.")

    try:
        raw_scenes = await ctx.generation.generate_script(
            overview=overview.to_wire(),
            aesthetic=aesthetic.to_wire(),
            brand=project.brand.to_wire() if project.brand else None,
            characters=[c.to_wire() for c in project.characters],
            additional_guidance=args.additional_guidance,
        )
        scenes = _normalize_scenes(raw_scenes)
    except (GenerationProviderError, PydanticValidationError, ValueError) as e:
        logger.error(f"{ctx.log_prefix} ❌ Script generation failed: {e}")
        return ToolResult.fail("Failed to generate script. Please try again.")

    return ToolResult.ok(
        data={
            "scenes": scenes,
            "message": (
                f"Generated {len(scenes)} scenes. Review the script and make any edits. Once finalized, "
                "we'll run preprocessing to extract locations and character attires."
            ),
        },
        state_update=StateMutation(type=MutationType.SET_SCENES, payload=scenes),
    )


def _find_scene(ctx: ToolContext, scene_number: Optional[int], scene_id: Optional[str]) -> Optional[Scene]:
    scenes = ctx.project.scenes
    if scene_number is not None and scene_number > 0:
        return scenes[scene_number - 1] if scene_number <= len(scenes) else None
    if scene_id:
        return ctx.project.get_scene(scene_id)
    return None


async def edit_scene(args: EditSceneArgs, ctx: ToolContext) -> ToolResult:
    scene = _find_scene(ctx, args.scene_number, args.scene_id)
    if scene is None:
        detail = f"Scene {args.scene_number} does not exist." if args.scene_number else "Invalid scene ID."
        return ToolResult.fail(f"Scene not found. {detail}")

    try:
        diff, updates = compute_diff(scene, args.field, args.new_value, ctx.project.characters)
    except DiffError as e:
        return ToolResult.fail(str(e))

    number = args.scene_number or ctx.project.scene_number(scene)
    return ToolResult.ok(
        data={
            "sceneId": scene.id,
            "sceneNumber": number,
            "field": diff.field,
            "oldValue": diff.old_value,
            "newValue": diff.new_value,
            "reason": args.reason,
            "message": f"Updated Scene {number}: {diff.field}",
        },
        state_update=StateMutation.entity_update(MutationType.UPDATE_SCENE, scene.id, **updates),
    )


async def update_script(args: UpdateScriptArgs, ctx: ToolContext) -> ToolResult:
    project = ctx.project
    known = [u for u in args.updates if project.get_scene(u.scene_id) is not None]
    unknown_ids = [u.scene_id for u in args.updates if project.get_scene(u.scene_id) is None]
    if not known:
        return ToolResult.fail(f"No matching scenes. Unknown scene IDs: {', '.join(unknown_ids)}")

    for update in known:
        scene = project.get_scene(update.scene_id)
        if scene is None or update.dialogue is None:
            continue
        if scene.script is None and not update.speaking_character_id:
            return ToolResult.fail(
                f"Scene {project.scene_number(scene)} has no speaker. "
                "Set speakingCharacterId together with dialogue."
            )

    updates = [u.model_dump(by_alias=True, exclude_none=True, mode="json") for u in known]
    diffs = compute_script_diffs(updates, project.scenes, project.characters)
    message = f"Updated {len(diffs)} field(s) across {len(known)} scene(s)"
    data: dict[str, Any] = {"updates": updates, "diffs": [d.to_dict() for d in diffs]}
    if unknown_ids:
        message += f"; skipped unknown scene IDs: {', '.join(unknown_ids)}"
        data["unknownSceneIds"] = unknown_ids
    data["message"] = message
    return ToolResult.ok(
        data=data,
        state_update=StateMutation(type=MutationType.UPDATE_SCENES, payload=updates),
    )


async def add_scene(args: AddSceneArgs, ctx: ToolContext) -> ToolResult:
    index = 0
    if args.insert_after_scene_id:
        after = ctx.project.get_scene(args.insert_after_scene_id)
        if after is not None:
            index = after.index + 1

    script: Optional[SceneScript] = None
    if args.dialogue:
        if not args.speaking_character_id:
            return ToolResult.fail("A scene with dialogue needs a speakingCharacterId.")
        script = SceneScript(speaker_character_id=args.speaking_character_id, dialogue=args.dialogue)

    scene = Scene(
        index=index,
        type=args.type,
        duration=args.duration or DEFAULT_SCENE_DURATION,
        description=args.description,
        script=script,
        include_brand_logo=args.include_brand_logo,
        visual_character_ids=args.visual_character_ids,
    ).to_wire()
    return ToolResult.ok(
        data=scene,
        state_update=StateMutation(type=MutationType.ADD_SCENE, payload=scene),
    )


async def remove_scene(args: RemoveSceneArgs, ctx: ToolContext) -> ToolResult:
    if ctx.project.get_scene(args.scene_id) is None:
        return ToolResult.fail(f"Scene with ID {args.scene_id} not found")
    return ToolResult.ok(
        data={"sceneId": args.scene_id},
        state_update=StateMutation(type=MutationType.REMOVE_SCENE, payload=args.scene_id),
    )
