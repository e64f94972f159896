"""
Agent loop for one user message.

The loop is a small finite-state machine:

    IDLE ──▶ AWAITING_PROVIDER ──▶ EXECUTING_TOOLS ──▶ AWAITING_PROVIDER ...
                    │                     │
                    ▼                     ▼
                  DONE             AWAITING_UPLOAD

- AWAITING_PROVIDER sends the full history plus the live project snapshot.
  A reply without tool calls ends the turn (DONE).
- EXECUTING_TOOLS runs the reply's tool calls one at a time against the
  current project; each result's mutations are applied before the next
  call reads the project. All responses go back as one user turn.
- A request-upload call stops the loop (AWAITING_UPLOAD). There is no
  resume inside this module: the caller starts a new turn when the user
  sends the files.
- ``settings.agent_max_iterations`` provider round-trips cap a turn. Hitting
  the cap ends it as DONE with ``capped=True``; it is not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from studio.config import settings
from studio.contracts.conversation import (
    Attachment,
    InlineMedia,
    Part,
    ToolCallRequest,
    ToolCallResponse,
    Turn,
)
from studio.core.llm_client import LLMClient, LLMResponse, response_to_turn
from studio.core.mutations import MutationError
from studio.core.prompts import build_system_prompt
from studio.core.state_store import ProjectStore
from studio.core.tool_dispatch import execute
from studio.core.tool_names import ToolName
from studio.core.tools import ALL_TOOLS, pauses_loop
from studio.core.tracing import TraceContext, create_trace_context, trace_span
from studio.models.project import Project
from studio.models.tools import ToolResult
from studio.services.assembly import Stitcher
from studio.services.generation import GenerationClient

logger = logging.getLogger(__name__)

TOOL_EXECUTION_FAILED = {"error": "Tool execution failed"}
SKIPPED_FOR_UPLOAD = {"error": "Not executed: waiting for the user's upload"}


class AgentPhase(str, Enum):
    IDLE = "idle"
    AWAITING_PROVIDER = "awaiting_provider"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_UPLOAD = "awaiting_upload"
    DONE = "done"


@dataclass
class PendingUpload:
    """An upload the model asked for; the turn is parked until it arrives."""
    tool_call_id: str
    upload_type: str
    purpose: str
    target_id: Optional[str] = None

    @classmethod
    def from_call(cls, call: ToolCallRequest) -> "PendingUpload":
        return cls(
            tool_call_id=call.id,
            upload_type=str(call.args.get("uploadType", "")),
            purpose=str(call.args.get("purpose", "")),
            target_id=call.args.get("targetId"),
        )

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "toolCallId": self.tool_call_id,
            "uploadType": self.upload_type,
            "purpose": self.purpose,
        }
        if self.target_id:
            body["targetId"] = self.target_id
        return body


@dataclass
class TurnResult:
    final_text: str
    history: list[Turn]
    project: Project
    phase: AgentPhase
    iterations: int
    pending_upload: Optional[PendingUpload] = None
    continuation_token: Optional[Any] = None
    capped: bool = False
    tool_results: list[tuple[str, ToolResult]] = field(default_factory=list)


def attachment_lines(attachments: list[Attachment]) -> str:
    return "\n".join(f'[Uploaded {a.type}: "{a.name}" - URL: {a.url}]' for a in attachments)


def build_user_turn(message: str, attachments: Optional[list[Attachment]] = None) -> Turn:
    """The user turn for ``message``: text with upload lines, then inline media.

    Audio is never sent inline; its URL is already in the text.
    """
    attachments = attachments or []
    text = message
    if attachments:
        info = attachment_lines(attachments)
        text = f"{message}\n\n{info}" if message else info

    parts: list[Part] = []
    if text:
        parts.append(Part(text=text))
    for a in attachments:
        if a.type == "audio" or not a.data or not a.mime_type:
            continue
        parts.append(Part(inline_media=InlineMedia(mime_type=a.mime_type, data=a.data)))
    return Turn(role="user", parts=parts)


class AgentLoop:
    """Drives one user message to completion, pause or the iteration cap.

    ``step()`` performs exactly one phase transition so the FSM can be
    exercised directly; ``run()`` steps until a terminal phase.
    """

    def __init__(
        self,
        store: ProjectStore,
        llm: LLMClient,
        history: list[Turn],
        *,
        trace: Optional[TraceContext] = None,
        generation_client: Optional[GenerationClient] = None,
        stitcher: Optional[Stitcher] = None,
        max_iterations: Optional[int] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ):
        self.store = store
        self.llm = llm
        self.history = history
        self.trace = trace or create_trace_context(
            conversation_id=store.conversation_id,
            project_id=store.project.id,
        )
        self.generation_client = generation_client
        self.stitcher = stitcher
        self.max_iterations = max_iterations if max_iterations is not None else settings.agent_max_iterations
        self.tools = tools if tools is not None else ALL_TOOLS

        self.phase = AgentPhase.IDLE
        self.iterations = 0
        self.final_text = ""
        self.capped = False
        self.pending_upload: Optional[PendingUpload] = None
        self.continuation_token: Optional[Any] = None
        self.tool_results: list[tuple[str, ToolResult]] = []
        self._pending_calls: list[ToolCallRequest] = []
        self._parse_errors: dict[str, str] = {}

    @property
    def is_terminal(self) -> bool:
        return self.phase in (AgentPhase.DONE, AgentPhase.AWAITING_UPLOAD)

    async def step(self) -> AgentPhase:
        if self.phase == AgentPhase.IDLE:
            self.phase = AgentPhase.AWAITING_PROVIDER
        elif self.phase == AgentPhase.AWAITING_PROVIDER:
            await self._call_provider()
        elif self.phase == AgentPhase.EXECUTING_TOOLS:
            await self._execute_pending()
        return self.phase

    async def run(self) -> TurnResult:
        while not self.is_terminal:
            await self.step()
        return self.result()

    def result(self) -> TurnResult:
        return TurnResult(
            final_text=self.final_text,
            history=self.history,
            project=self.store.project,
            phase=self.phase,
            iterations=self.iterations,
            pending_upload=self.pending_upload,
            continuation_token=self.continuation_token,
            capped=self.capped,
            tool_results=self.tool_results,
        )

    # ── AWAITING_PROVIDER ─────────────────────────────────────────────────

    async def _call_provider(self) -> None:
        if self.iterations >= self.max_iterations:
            self.capped = True
            self.phase = AgentPhase.DONE
            logger.warning(
                f"[{self.trace.short_id}] ⚠️ Iteration cap reached ({self.max_iterations}); returning partial turn"
            )
            return

        self.iterations += 1
        with trace_span(self.trace, f"llm_iteration_{self.iterations}") as span:
            response: LLMResponse = await self.llm.generate(
                build_system_prompt(self.store.project),
                self.history,
                self.tools,
                temperature=settings.orchestration_temperature,
                trace_id=self.trace.trace_id,
            )
            span.set_attribute("tool_calls", len(response.tool_calls))

        model_turn = response_to_turn(response)
        if model_turn.parts:
            self.history.append(model_turn)
        if response.content:
            self.final_text = response.content
        if response.continuation_token is not None:
            self.continuation_token = response.continuation_token

        if response.has_tool_calls:
            self._pending_calls = model_turn.tool_call_requests
            self._parse_errors = {tc.id: tc.parse_error for tc in response.tool_calls if tc.parse_error}
            self.phase = AgentPhase.EXECUTING_TOOLS
        else:
            self.phase = AgentPhase.DONE

    # ── EXECUTING_TOOLS ───────────────────────────────────────────────────

    async def _execute_pending(self) -> None:
        calls, self._pending_calls = self._pending_calls, []
        parse_errors, self._parse_errors = self._parse_errors, {}
        responses: list[Part] = []

        for index, call in enumerate(calls):
            parse_error = parse_errors.get(call.id)
            if parse_error is not None:
                logger.warning(f"[{self.trace.short_id}] ⚠️ {call.name}: {parse_error}")
                responses.append(_response_part(call, {
                    "success": False,
                    "error": f"Invalid arguments for {call.name}: {parse_error}",
                }))
                continue

            tool = ToolName.parse(call.name)
            if tool is not None and pauses_loop(tool.value):
                self.pending_upload = PendingUpload.from_call(call)
                responses.append(_response_part(call, {"success": True, "data": dict(call.args)}))
                for skipped in calls[index + 1:]:
                    responses.append(_response_part(skipped, SKIPPED_FOR_UPLOAD))
                self.history.append(Turn(role="user", parts=responses))
                self.phase = AgentPhase.AWAITING_UPLOAD
                logger.info(
                    f"[{self.trace.short_id}] ⏸️ Waiting for upload: {self.pending_upload.upload_type} "
                    f"({self.pending_upload.purpose})"
                )
                return

            responses.append(_response_part(call, await self._run_tool(call)))

        self.history.append(Turn(role="user", parts=responses))
        self.phase = AgentPhase.AWAITING_PROVIDER

    async def _run_tool(self, call: ToolCallRequest) -> dict[str, Any]:
        try:
            result = await execute(
                call.name,
                call.args,
                self.store.project,
                trace=self.trace,
                generation_client=self.generation_client,
                stitcher=self.stitcher,
            )
            self.store.apply_result(result, source=call.name)
        except MutationError as e:
            logger.error(f"[{self.trace.short_id}] ❌ {call.name} produced an invalid mutation: {e}")
            return TOOL_EXECUTION_FAILED
        except Exception:
            logger.exception(f"[{self.trace.short_id}] ❌ {call.name} raised")
            return TOOL_EXECUTION_FAILED

        self.tool_results.append((call.name, result))
        return result.to_wire()


def _response_part(call: ToolCallRequest, response: dict[str, Any]) -> Part:
    return Part(tool_call_response=ToolCallResponse(id=call.id, name=call.name, response=response))


async def run_turn(
    user_message: str,
    attachments: Optional[list[Attachment]],
    history: list[Turn],
    project: Project,
    *,
    llm: LLMClient,
    conversation_id: Optional[str] = None,
    generation_client: Optional[GenerationClient] = None,
    stitcher: Optional[Stitcher] = None,
    max_iterations: Optional[int] = None,
) -> TurnResult:
    """Run one user message through the agent loop.

    ``history`` and ``project`` are copied; the updated versions come back
    on the result.
    """
    store = ProjectStore(project.model_copy(deep=True), conversation_id=conversation_id)
    turns = list(history)
    user_turn = build_user_turn(user_message, attachments)
    if user_turn.parts:
        turns.append(user_turn)

    trace = create_trace_context(conversation_id=store.conversation_id, project_id=store.project.id)
    logger.info(
        f"[{trace.short_id}] 💬 Turn start: {len(turns)} turns of history, "
        f"{len(attachments or [])} attachment(s), stage={store.project.stage.value}"
    )

    loop = AgentLoop(
        store,
        llm,
        turns,
        trace=trace,
        generation_client=generation_client,
        stitcher=stitcher,
        max_iterations=max_iterations,
    )
    result = await loop.run()

    logger.info(
        f"[{trace.short_id}] ✅ Turn end: phase={result.phase.value}, iterations={result.iterations}, "
        f"tools={len(result.tool_results)}, v{store.version}"
    )
    return result
