"""
Conversational endpoint: one user message through the agent loop.

The request carries the whole conversation and project snapshot; the
response carries both back updated. A turn that parks on an upload request
returns ``phase: "awaiting_upload"`` with ``pendingUpload`` set, and the
client resumes by sending the upload as the next message.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from studio.config import settings
from studio.core.llm_client import LLMClientError, get_llm_client
from studio.core.orchestrator import run_turn
from studio.core.session_guard import ConversationBusy, get_session_guard
from studio.models.requests import ChatRequest
from studio.models.responses import ChatResponse, PendingUploadResponse

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True, response_model_exclude_none=True)
@limiter.limit(settings.chat_rate_limit)
async def chat(request: Request, body: ChatRequest) -> ChatResponse:
    if not body.message and not body.attachments:
        raise HTTPException(status_code=400, detail="A message or at least one attachment is required")

    try:
        llm = get_llm_client()
    except LLMClientError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        async with get_session_guard().acquire(body.conversation_id):
            result = await run_turn(
                body.message,
                body.attachments,
                body.history,
                body.project,
                llm=llm,
                conversation_id=body.conversation_id,
            )
    except ConversationBusy as e:
        logger.warning(f"⚠️ {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except LLMClientError as e:
        logger.error(f"❌ Conversational provider failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    pending = None
    if result.pending_upload is not None:
        pending = PendingUploadResponse(
            tool_call_id=result.pending_upload.tool_call_id,
            upload_type=result.pending_upload.upload_type,
            purpose=result.pending_upload.purpose,
            target_id=result.pending_upload.target_id,
        )

    return ChatResponse(
        message=result.final_text,
        history=result.history,
        project=result.project,
        phase=result.phase.value,
        iterations=result.iterations,
        capped=result.capped,
        pending_upload=pending,
        continuation_token=result.continuation_token,
        tools_called=[name for name, _ in result.tool_results],
    )
