"""
Stateless tool execution.

The client holds the project; each call sends the snapshot and gets back a
ToolResult whose mutations the client applies itself. Business failures
(bad arguments, unmet stage prerequisites, provider errors) are
``success: false`` with status 200. Only an uncaught exception is a 500.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from studio.config import settings
from studio.core.tool_dispatch import execute
from studio.core.tracing import create_trace_context
from studio.models.requests import ExecuteToolRequest

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.post("/execute-tool")
@limiter.limit(settings.execute_tool_rate_limit)
async def execute_tool(request: Request, body: ExecuteToolRequest) -> JSONResponse:
    trace = create_trace_context(project_id=body.project_state.id)
    logger.info(f"[{trace.short_id}] 🔧 execute-tool: {body.tool_name}")

    try:
        result = await execute(body.tool_name, body.args, body.project_state, trace=trace)
    except Exception as e:
        logger.exception(f"[{trace.short_id}] ❌ {body.tool_name} failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e) or "Tool execution failed"},
        )

    return JSONResponse(content=result.to_wire(), headers={"X-Trace-Id": trace.trace_id})
