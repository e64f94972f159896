"""
Tool dispatch: name → argument model → handler → ToolResult.

Dispatch never raises for bad input. An unknown name and an argument that
fails its model both come back as ``success=False`` results; only genuinely
unexpected exceptions inside a handler propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from studio.core.tool_dispatch import assets, media, script, session, setup
from studio.core.tool_dispatch.context import ToolContext
from studio.core.tool_names import ToolName
from studio.core.tracing import TraceContext, log_tool_call, log_validation_error, trace_span
from studio.models.base import CamelModel
from studio.models.project import Project
from studio.models.tool_args import TOOL_ARGS
from studio.models.tools import ToolResult
from studio.services.assembly import Stitcher
from studio.services.generation import GenerationClient

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, ToolContext], Awaitable[ToolResult]]

HANDLERS: dict[ToolName, ToolHandler] = {
    ToolName.SAVE_OVERVIEW: setup.save_overview,
    ToolName.SAVE_AESTHETIC: setup.save_aesthetic,
    ToolName.SAVE_BRAND: setup.save_brand,
    ToolName.ADD_CHARACTER: setup.add_character,
    ToolName.UPDATE_CHARACTER: setup.update_character,
    ToolName.GENERATE_SCRIPT: script.generate_script,
    ToolName.EDIT_SCENE: script.edit_scene,
    ToolName.UPDATE_SCRIPT: script.update_script,
    ToolName.ADD_SCENE: script.add_scene,
    ToolName.REMOVE_SCENE: script.remove_scene,
    ToolName.PREPROCESS_SCRIPT: assets.preprocess_script,
    ToolName.GENERATE_PREPROCESSING_ASSETS: assets.generate_preprocessing_assets,
    ToolName.GENERATE_LOCATION_IMAGE: assets.generate_location_image,
    ToolName.EDIT_LOCATION_IMAGE: assets.edit_location_image,
    ToolName.EDIT_ATTIRE_ANGLES: assets.edit_attire_angles,
    ToolName.GENERATE_ALL_THUMBNAILS: media.generate_all_thumbnails,
    ToolName.EDIT_THUMBNAIL: media.edit_thumbnail,
    ToolName.GENERATE_ALL_CLIPS: media.generate_all_clips,
    ToolName.ASSEMBLE_FINAL_OUTPUT: media.assemble_final_output,
    ToolName.UPDATE_CHECKLIST_ITEM: session.update_checklist_item,
    ToolName.SHOW_ARTIFACT: session.show_artifact,
    ToolName.REQUEST_UPLOAD: session.request_upload,
    ToolName.GENERATE_CHARACTER_ANGLES: setup.generate_character_angles,
    ToolName.CREATE_VOICE_CLONE: setup.create_voice_clone,
}

_missing = set(ToolName) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"Tools without a handler: {sorted(t.value for t in _missing)}")


def format_validation_errors(error: PydanticValidationError) -> list[str]:
    """``["referencePhotoUrls: List should have at least 1 item ...", ...]``."""
    messages: list[str] = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "args"
        messages.append(f"{field}: {detail['msg']}")
    return messages


def parse_args(tool: ToolName, args: Optional[dict[str, Any]]) -> CamelModel:
    """Parse raw args into the tool's model. Raises pydantic ValidationError."""
    return TOOL_ARGS[tool].model_validate(args or {})


async def execute(
    tool_name: str,
    args: Optional[dict[str, Any]],
    project: Project,
    *,
    trace: Optional[TraceContext] = None,
    generation_client: Optional[GenerationClient] = None,
    stitcher: Optional[Stitcher] = None,
) -> ToolResult:
    """Run one tool against ``project`` and return its result.

    ``project`` is only read. Applying the returned mutations is the
    caller's job (``ProjectStore.apply_result``, or the client for the
    stateless execute-tool route).
    """
    ctx = ToolContext.for_project(
        project,
        trace=trace,
        generation_client=generation_client,
        stitcher=stitcher,
    )
    raw_args = args or {}

    tool = ToolName.parse(tool_name)
    if tool is None:
        error = f"Unknown tool: {tool_name}"
        log_tool_call(ctx.trace.trace_id, tool_name, raw_args, False, error)
        return ToolResult.fail(error)

    try:
        parsed = parse_args(tool, raw_args)
    except PydanticValidationError as e:
        errors = format_validation_errors(e)
        log_validation_error(ctx.trace.trace_id, tool.value, errors)
        return ToolResult.fail(f"Invalid arguments for {tool.value}: {'; '.join(errors)}")

    with trace_span(ctx.trace, f"tool:{tool.value}", {"tool": tool.value}) as span:
        result = await HANDLERS[tool](parsed, ctx)
        span.set_attribute("success", result.success)
        span.set_attribute("mutations", len(result.mutations))

    log_tool_call(ctx.trace.trace_id, tool.value, raw_args, result.success, result.error)
    return result
