"""Handlers for per-scene media (thumbnails, clips) and final assembly."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from studio.core.fanout import BatchResult, run_batch
from studio.core.stage_validator import Operation, check
from studio.core.tool_dispatch.assets import CONFIRM_GENERATE
from studio.core.tool_dispatch.context import ToolContext
from studio.core.tool_dispatch.render import clip_payload, thumbnail_payload
from studio.models.project import AssetStatus, Scene
from studio.models.tool_args import AssembleFinalOutputArgs, ConfirmGenerateArgs, EditThumbnailArgs
from studio.models.tools import MutationType, StateMutation, ToolResult
from studio.services.assembly import DEFAULT_PROJECT_NAME, AssemblyError
from studio.services.generation import GenerationProviderError

logger = logging.getLogger(__name__)

PROJECT_NAME_MAX_CHARS = 50


async def _render_all_scenes(
    ctx: ToolContext,
    render: Callable[[Scene], Awaitable[str]],
    *,
    label: str,
) -> BatchResult[str]:
    return await run_batch(
        ctx.project.scenes,
        render,
        key=lambda s: s.id,
        sequence=lambda s: s.index,
        label=label,
        trace=ctx.trace,
    )


def _scene_media_updates(
    batch: BatchResult[str],
    *,
    url_field: str,
    status_field: str,
) -> list[StateMutation]:
    """``ready`` with the url for each success, ``error`` status only for each failure."""
    mutations: list[StateMutation] = []
    for item in batch.results:
        if item.success:
            updates: dict[str, Any] = {url_field: item.payload, status_field: AssetStatus.READY.value}
        else:
            updates = {status_field: AssetStatus.ERROR.value}
        mutations.append(StateMutation.entity_update(MutationType.UPDATE_SCENE, item.id, **updates))
    return mutations


def _generated(ctx: ToolContext, batch: BatchResult[str], url_key: str) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for item in batch.successes:
        scene = ctx.project.get_scene(item.id)
        out.append({
            "sceneId": item.id,
            "sceneIndex": item.sequence,
            url_key: item.payload,
            "description": scene.description if scene else "",
        })
    return out


async def generate_all_thumbnails(args: ConfirmGenerateArgs, ctx: ToolContext) -> ToolResult:
    if not args.confirm_generate:
        return ToolResult.fail(CONFIRM_GENERATE)
    violation = check(Operation.GENERATE_THUMBNAILS, ctx.project)
    if violation:
        return ToolResult.fail(violation.message)

    project = ctx.project

    async def _render(scene: Scene) -> str:
        return await ctx.generation.generate_thumbnail(thumbnail_payload(project, scene))

    batch = await _render_all_scenes(ctx, _render, label="thumbnails")
    generated = _generated(ctx, batch, "thumbnailUrl")
    total = len(project.scenes)
    return ToolResult.ok(
        data={
            "generatedThumbnails": generated,
            "totalGenerated": len(generated),
            "totalScenes": total,
            "aspectRatio": project.aspect_ratio,
            "message": f"Generated {len(generated)} of {total} thumbnails.",
            **batch.summary(),
        },
        additional_updates=_scene_media_updates(batch, url_field="thumbnail_url", status_field="thumbnail_status"),
    )


async def edit_thumbnail(args: EditThumbnailArgs, ctx: ToolContext) -> ToolResult:
    project = ctx.project
    number = args.scene_number
    if number < 1:
        return ToolResult.fail("Invalid scene number. Must be 1 or greater.")
    if number > len(project.scenes):
        return ToolResult.fail(f"Scene {number} not found. There are only {len(project.scenes)} scenes.")

    scene = project.scenes[number - 1]
    if not scene.thumbnail_url:
        return ToolResult.fail(f"Scene {number} doesn't have a thumbnail yet. Generate thumbnails first.")

    logger.info(f"{ctx.log_prefix} 🖼️ Editing thumbnail for scene {number}: {args.instructions[:80]}")
    try:
        thumbnail_url = await ctx.generation.generate_thumbnail(
            thumbnail_payload(project, scene, edit_instructions=args.instructions)
        )
    except GenerationProviderError as e:
        logger.error(f"{ctx.log_prefix} ❌ Thumbnail edit for scene {number} failed: {e}")
        return ToolResult.fail(f"Failed to edit thumbnail for Scene {number}")

    return ToolResult.ok(
        data={
            "sceneId": scene.id,
            "sceneNumber": number,
            "thumbnailUrl": thumbnail_url,
            "instructions": args.instructions,
            "message": f"Edited thumbnail for Scene {number}",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_SCENE,
            scene.id,
            thumbnail_url=thumbnail_url,
            thumbnail_status=AssetStatus.READY.value,
        ),
    )


async def generate_all_clips(args: ConfirmGenerateArgs, ctx: ToolContext) -> ToolResult:
    if not args.confirm_generate:
        return ToolResult.fail(CONFIRM_GENERATE)
    violation = check(Operation.GENERATE_CLIPS, ctx.project)
    if violation:
        return ToolResult.fail(violation.message)

    project = ctx.project

    async def _render(scene: Scene) -> str:
        return await ctx.generation.generate_video(clip_payload(project, scene))

    batch = await _render_all_scenes(ctx, _render, label="clips")
    generated = _generated(ctx, batch, "videoUrl")
    total = len(project.scenes)
    return ToolResult.ok(
        data={
            "generatedVideos": generated,
            "totalGenerated": len(generated),
            "totalScenes": total,
            "aspectRatio": project.aspect_ratio,
            "message": f"Generated {len(generated)} of {total} videos.",
            **batch.summary(),
        },
        additional_updates=_scene_media_updates(batch, url_field="clip_url", status_field="clip_status"),
    )


async def assemble_final_output(args: AssembleFinalOutputArgs, ctx: ToolContext) -> ToolResult:
    """Stitch every clip, in scene order, into the final video.

    Terminal and not retried: an AssemblyError becomes a failed result and
    the project keeps whatever final output it had before.
    """
    if not args.confirm_stitch:
        return ToolResult.fail("Must confirm by setting confirmStitch to true.")

    project = ctx.project
    violation = check(Operation.ASSEMBLE, project)
    if violation:
        return ToolResult.fail(violation.message)

    if project.final_output_url and not args.confirm_reassemble:
        return ToolResult.fail(
            "A final video already exists. Set confirmReassemble to true to replace it."
        )

    ordered_urls = [s.clip_url for s in project.scenes_in_order() if s.clip_url]
    prompt = project.overview.prompt if project.overview else ""
    project_name = prompt[:PROJECT_NAME_MAX_CHARS] or DEFAULT_PROJECT_NAME

    try:
        result = await ctx.assembler.assemble(
            ordered_urls,
            project_name=project_name,
            aspect_ratio=project.aspect_ratio,
        )
    except AssemblyError as e:
        logger.error(f"{ctx.log_prefix} ❌ Assembly failed: {e}")
        return ToolResult.fail(str(e) or "Failed to stitch videos")

    return ToolResult.ok(
        data={"finalOutput": result.to_dict(), "message": result.message},
        state_update=StateMutation(type=MutationType.SET_FINAL_OUTPUT_URL, payload=result.url),
    )
