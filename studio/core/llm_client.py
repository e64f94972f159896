"""
LLM client for the Studio Director agent loop.

Speaks the OpenAI-compatible chat-completions protocol through OpenRouter.
Conversation history lives in the client's ``Turn``/``Part`` shape; this
module converts it to provider messages on the way out and converts the
provider's reply back into a model ``Turn`` on the way in.

The provider's ``reasoning_details`` blob is the continuation token. It is
attached to the first tool-call request of the model turn and sent back
unchanged on the assistant message of the next request.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, cast

import httpx

from studio.config import settings
from studio.contracts.conversation import Part, ToolCallRequest, Turn
from studio.contracts.llm_types import (
    AssistantMessage,
    ChatMessage,
    ContentPart,
    OpenAIResponse,
    SystemMessage,
    ToolCallEntry,
    ToolResultMessage,
    UserMessage,
)
from studio.core.tracing import log_llm_call

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class LLMProvider(str, Enum):
    """Supported LLM provider (OpenRouter only)."""
    OPENROUTER = "openrouter"


class LLMClientError(Exception):
    """The conversational provider could not produce a response."""


@dataclass
class ToolCall:
    """A tool call requested by the model."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    continuation_token: Optional[Any] = None
    parse_error: Optional[str] = None


@dataclass
class LLMResponse:
    """Response from the LLM."""
    content: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @property
    def continuation_token(self) -> Optional[Any]:
        return self.tool_calls[0].continuation_token if self.tool_calls else None


class LLMClient:
    """Thin async client over ``/v1/chat/completions``."""

    def __init__(
        self,
        provider: Optional[LLMProvider | str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
        base_url: Optional[str] = None,
    ):
        self.provider = LLMProvider(provider or settings.llm_provider)
        self.api_key = api_key or self._get_api_key()
        self.model = model or settings.llm_model
        self.timeout = timeout or settings.llm_timeout
        self.base_url = (base_url or self._get_base_url()).rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None

    def _get_api_key(self) -> str:
        if self.provider == LLMProvider.OPENROUTER:
            key = settings.openrouter_api_key
            if key is None:
                raise LLMClientError("OpenRouter API key not configured")
            return key
        raise LLMClientError(f"No API key configured for provider: {self.provider}")

    def _get_base_url(self) -> str:
        if self.provider == LLMProvider.OPENROUTER:
            return "https://openrouter.ai/api"
        raise LLMClientError(f"Unknown provider: {self.provider}")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"}
            if self.provider == LLMProvider.OPENROUTER:
                headers["HTTP-Referer"] = "https://studio-director.app"
                headers["X-Title"] = settings.app_name
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(
        self,
        system_prompt: str,
        history: list[Turn],
        tools: Optional[list[dict[str, Any]]] = None,
        *,
        temperature: Optional[float] = None,
        trace_id: str = "",
    ) -> LLMResponse:
        """One provider round-trip over the full conversation history."""
        messages = turns_to_messages(system_prompt, history)
        return await self.chat_completion(
            messages=messages,
            tools=tools,
            tool_choice="auto" if tools else None,
            temperature=temperature,
            trace_id=trace_id,
        )

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: Optional[str | dict] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_retries: int = 2,
        trace_id: str = "",
    ) -> LLMResponse:
        """Send a chat completion request with retry logic.

        429, 5xx and timeouts are retried with ``2 ** attempt`` second
        backoff. Any other HTTP error, or exhausting the retries, raises
        ``LLMClientError``.
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else settings.llm_temperature,
            "max_tokens": max_tokens or settings.llm_max_tokens,
            "stream": False,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice if tool_choice is not None else "auto"

        logger.debug(f"LLM request: {len(messages)} messages, {len(tools) if tools else 0} tools")

        last_error: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                backoff = 2 ** attempt
                logger.warning(f"Retry {attempt}/{max_retries} after {backoff}s")
                await asyncio.sleep(backoff)

            start = time.time()
            try:
                response = await self.client.post(
                    f"{self.base_url}/v1/chat/completions",
                    json=payload,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code == 400:
                    logger.error(f"400 Bad Request: {e.response.text}")
                if e.response.status_code in RETRYABLE_STATUS:
                    continue
                raise LLMClientError(
                    f"LLM request failed with status {e.response.status_code}"
                ) from e
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = e
                continue

            duration_ms = (time.time() - start) * 1000
            data = cast(OpenAIResponse, response.json())
            parsed = self._parse_response(data)
            usage = parsed.usage or {}
            log_llm_call(
                trace_id or "--------",
                self.model,
                int(usage.get("prompt_tokens", 0) or 0),
                int(usage.get("completion_tokens", 0) or 0),
                duration_ms,
                parsed.has_tool_calls,
            )
            return parsed

        raise LLMClientError(
            f"LLM request failed after {max_retries + 1} attempts: {last_error}"
        ) from last_error

    def _parse_response(self, data: OpenAIResponse) -> LLMResponse:
        """Parse OpenAI-compatible response."""
        choices = data.get("choices") or [{}]
        choice = choices[0]
        message = choice.get("message", {})

        response = LLMResponse(
            content=message.get("content"),
            finish_reason=choice.get("finish_reason"),
            usage=cast(Optional[dict[str, Any]], data.get("usage")),
        )

        for tc in message.get("tool_calls", []):
            function = tc.get("function", {})
            raw_args = function.get("arguments", "{}")
            parse_error: Optional[str] = None
            try:
                args = json.loads(raw_args) if isinstance(raw_args, str) and raw_args else raw_args or {}
            except json.JSONDecodeError as e:
                logger.error(f"Error parsing tool call arguments for {function.get('name')}: {e}")
                args, parse_error = {}, f"arguments are not valid JSON ({e.msg})"
            if not isinstance(args, dict):
                logger.error(f"Tool call arguments for {function.get('name')} are not an object")
                args, parse_error = {}, "arguments must be a JSON object"

            response.tool_calls.append(ToolCall(
                id=tc.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=function.get("name", ""),
                params=args,
                parse_error=parse_error,
            ))

        reasoning = message.get("reasoning_details")
        if reasoning and response.tool_calls:
            response.tool_calls[0].continuation_token = reasoning

        return response


# ---------------------------------------------------------------------------
# Turn <-> message conversion
# ---------------------------------------------------------------------------


def _user_content(parts: list[Part]) -> str | list[ContentPart] | None:
    texts = [p.text for p in parts if p.text]
    images: list[ContentPart] = []
    for p in parts:
        media = p.inline_media
        if media is None:
            continue
        if not media.mime_type.startswith("image/"):
            logger.debug(f"Skipping inline {media.mime_type} part; only images are sent inline")
            continue
        images.append({
            "type": "image_url",
            "image_url": {"url": f"data:{media.mime_type};base64,{media.data}"},
        })

    if not texts and not images:
        return None
    if not images:
        return "\n".join(texts)
    content: list[ContentPart] = [{"type": "text", "text": t} for t in texts]
    return content + images


def _assistant_message(turn: Turn) -> AssistantMessage:
    message: AssistantMessage = {"role": "assistant", "content": turn.text or None}
    requests = turn.tool_call_requests
    if requests:
        entries: list[ToolCallEntry] = [
            {
                "id": r.id,
                "type": "function",
                "function": {"name": r.name, "arguments": json.dumps(r.args)},
            }
            for r in requests
        ]
        message["tool_calls"] = entries
        token = next(
            (r.continuation_token for r in requests if r.continuation_token is not None),
            None,
        )
        if token is not None:
            message["reasoning_details"] = token
    return message


def turns_to_messages(system_prompt: str, history: list[Turn]) -> list[ChatMessage]:
    """Flatten client turns into provider chat messages.

    Tool-call responses become ``role: "tool"`` messages ahead of any user
    text in the same turn, so each follows the assistant message that
    requested it.
    """
    system: SystemMessage = {"role": "system", "content": system_prompt}
    messages: list[ChatMessage] = [system]

    for turn in history:
        if turn.role == "model":
            messages.append(_assistant_message(turn))
            continue

        for resp in turn.tool_call_responses:
            tool_msg: ToolResultMessage = {
                "role": "tool",
                "tool_call_id": resp.id,
                "content": json.dumps(resp.response),
            }
            messages.append(tool_msg)

        content = _user_content(turn.parts)
        if content is not None:
            user_msg: UserMessage = {"role": "user", "content": content}
            messages.append(user_msg)

    return messages


def response_to_turn(response: LLMResponse) -> Turn:
    """The model turn to append to history for ``response``."""
    parts: list[Part] = []
    if response.content:
        parts.append(Part(text=response.content))
    for tc in response.tool_calls:
        parts.append(Part(tool_call_request=ToolCallRequest(
            id=tc.id,
            name=tc.name,
            args=tc.params,
            continuation_token=tc.continuation_token,
        )))
    return Turn(role="model", parts=parts)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get a configured LLM client instance (created on first use)."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


async def close_llm_client() -> None:
    global _llm_client
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
