"""Conversation history as the client holds it.

A turn is ``{role: "user" | "model", parts: [...]}``. Each part carries
exactly one of ``text``, ``inlineMedia``, ``toolCallRequest`` or
``toolCallResponse``. A tool-call request in a model turn is answered by
exactly one tool-call response (same id and name) in the next user turn.
"""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import Field, model_validator

from studio.models.base import CamelModel


class InlineMedia(CamelModel):
    mime_type: str
    data: str  # base64


class ToolCallRequest(CamelModel):
    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    # Opaque provider blob; echoed back verbatim, never inspected.
    continuation_token: Optional[Any] = None


class ToolCallResponse(CamelModel):
    id: str
    name: str
    response: dict[str, Any] = Field(default_factory=dict)


class Part(CamelModel):
    text: Optional[str] = None
    inline_media: Optional[InlineMedia] = None
    tool_call_request: Optional[ToolCallRequest] = None
    tool_call_response: Optional[ToolCallResponse] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "Part":
        present = [
            v for v in (self.text, self.inline_media, self.tool_call_request, self.tool_call_response)
            if v is not None
        ]
        if len(present) != 1:
            raise ValueError("a part carries exactly one of text, inlineMedia, toolCallRequest, toolCallResponse")
        return self

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Turn(CamelModel):
    role: Literal["user", "model"]
    parts: list[Part] = Field(default_factory=list)

    @classmethod
    def user_text(cls, text: str) -> "Turn":
        return cls(role="user", parts=[Part(text=text)])

    @property
    def tool_call_requests(self) -> list[ToolCallRequest]:
        return [p.tool_call_request for p in self.parts if p.tool_call_request is not None]

    @property
    def tool_call_responses(self) -> list[ToolCallResponse]:
        return [p.tool_call_response for p in self.parts if p.tool_call_response is not None]

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if p.text)

    def to_wire(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [p.to_wire() for p in self.parts]}


class Attachment(CamelModel):
    """A file the user uploaded alongside a message."""

    type: str  # "image" | "audio" | "document"
    name: str
    url: str
    mime_type: Optional[str] = None
    data: Optional[str] = None  # base64, when the client sends the bytes inline


__all__ = [
    "Attachment",
    "InlineMedia",
    "Part",
    "ToolCallRequest",
    "ToolCallResponse",
    "Turn",
]
