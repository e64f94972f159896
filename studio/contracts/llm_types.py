"""Typed structures for OpenAI-format chat messages and responses.

Every shape ``LLMClient`` sends or reads is a TypedDict here so field access
can be checked statically.

Organisation:
  Chat messages          → ``SystemMessage``, ``UserMessage``,
                           ``AssistantMessage``, ``ToolResultMessage``,
                           ``ChatMessage`` (union)
  Content parts          → ``TextContentPart``, ``ImageContentPart``
  Tool calls             → ``ToolCallFunction``, ``ToolCallEntry``
  Non-streaming response → ``ResponseMessage``, ``ResponseChoice``,
                           ``UsageStats``, ``OpenAIResponse``
"""
from __future__ import annotations

from typing import Any, Literal, Union

from typing_extensions import NotRequired, Required, TypedDict


# ── Tool calls ─────────────────────────────────────────────────────────────────


class ToolCallFunction(TypedDict):
    """``arguments`` is a JSON-encoded string; callers must ``json.loads`` it."""

    name: str
    arguments: str


class ToolCallEntry(TypedDict):
    id: str
    type: str
    function: ToolCallFunction


# ── Content parts (multimodal user messages) ───────────────────────────────────


class ImageURL(TypedDict):
    url: str


class TextContentPart(TypedDict):
    type: Literal["text"]
    text: str


class ImageContentPart(TypedDict):
    type: Literal["image_url"]
    image_url: ImageURL


ContentPart = Union[TextContentPart, ImageContentPart]


# ── Chat messages ──────────────────────────────────────────────────────────────


class SystemMessage(TypedDict):
    role: Literal["system"]
    content: str


class UserMessage(TypedDict):
    role: Literal["user"]
    content: str | list[ContentPart]


class AssistantMessage(TypedDict, total=False):
    """An assistant reply: text, tool calls, or both.

    ``reasoning_details`` is the provider's opaque continuation blob. It is
    echoed back unchanged on the next request.
    """

    role: Required[Literal["assistant"]]
    content: str | None
    tool_calls: list[ToolCallEntry]
    reasoning_details: list[dict[str, Any]]


class ToolResultMessage(TypedDict):
    role: Literal["tool"]
    tool_call_id: str
    content: str


ChatMessage = Union[SystemMessage, UserMessage, AssistantMessage, ToolResultMessage]


# ── Response ───────────────────────────────────────────────────────────────────


class UsageStats(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ResponseMessage(TypedDict, total=False):
    role: str
    content: str | None
    tool_calls: list[ToolCallEntry]
    reasoning_details: list[dict[str, Any]]


class ResponseChoice(TypedDict):
    message: ResponseMessage
    finish_reason: NotRequired[str | None]


class OpenAIResponse(TypedDict, total=False):
    id: str
    model: str
    choices: list[ResponseChoice]
    usage: UsageStats
