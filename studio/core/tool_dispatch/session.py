"""Handlers for session UI: checklist, preview focus and upload requests."""

from __future__ import annotations

from studio.core.tool_dispatch.context import ToolContext
from studio.models.project import Artifact
from studio.models.tool_args import RequestUploadArgs, ShowArtifactArgs, UpdateChecklistItemArgs
from studio.models.tools import MutationType, StateMutation, ToolResult


async def update_checklist_item(args: UpdateChecklistItemArgs, ctx: ToolContext) -> ToolResult:
    return ToolResult.ok(
        data={"itemId": args.item_id.value, "status": args.status.value},
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_CHECKLIST_ITEM, args.item_id.value, status=args.status.value,
        ),
    )


async def show_artifact(args: ShowArtifactArgs, ctx: ToolContext) -> ToolResult:
    artifact = Artifact(type=args.artifact_type, id=args.artifact_id or None).to_wire()
    return ToolResult.ok(
        data={"artifactType": args.artifact_type.value, "artifactId": args.artifact_id},
        state_update=StateMutation(type=MutationType.SET_CURRENT_ARTIFACT, payload=artifact),
    )


async def request_upload(args: RequestUploadArgs, ctx: ToolContext) -> ToolResult:
    """Echo the request; the agent loop pauses on it until the user uploads."""
    return ToolResult.ok(data={
        "uploadType": args.upload_type,
        "purpose": args.purpose,
        "multiple": args.multiple,
        "targetId": args.target_id,
    })
