"""
Request tracing for Studio Director.

Every chat turn and tool execution gets a trace_id that propagates through:
- Provider round-trips in the agent loop
- Tool dispatch and stage validation
- Fan-out batches
- Final assembly

Usage:
    from studio.core.tracing import get_trace_context, trace_span

    ctx = get_trace_context()
    with trace_span(ctx, "tool:generate-all-clips") as span:
        span.set_attribute("scenes", len(project.scenes))
        result = await execute(...)
        span.set_attribute("success", result.success)
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generator, Optional

logger = logging.getLogger(__name__)


class SpanStatus(str, Enum):
    """Status of a trace span."""
    OK = "ok"
    ERROR = "error"


@dataclass
class Span:
    """A single traced operation."""
    name: str
    trace_id: str
    span_id: str
    parent_span_id: Optional[str]
    start_time: float
    end_time: Optional[float] = None
    status: SpanStatus = SpanStatus.OK
    attributes: dict[str, Any] = field(default_factory=dict)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def set_error(self, error: BaseException) -> None:
        """Mark span as error."""
        self.status = SpanStatus.ERROR
        self.set_attribute("error.type", type(error).__name__)
        self.set_attribute("error.message", str(error))

    @property
    def duration_ms(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "attributes": self.attributes,
        }


@dataclass
class TraceContext:
    """Context for a traced request."""
    trace_id: str
    conversation_id: Optional[str] = None
    project_id: Optional[str] = None
    spans: list[Span] = field(default_factory=list)
    current_span: Optional[Span] = None
    _span_stack: list[Span] = field(default_factory=list)

    @property
    def short_id(self) -> str:
        return self.trace_id[:8]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "conversation_id": self.conversation_id,
            "project_id": self.project_id,
            "spans": [s.to_dict() for s in self.spans],
        }


_trace_context: ContextVar[Optional[TraceContext]] = ContextVar("trace_context", default=None)


def create_trace_context(
    conversation_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> TraceContext:
    """Create a new trace context for a request."""
    ctx = TraceContext(
        trace_id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        project_id=project_id,
    )
    _trace_context.set(ctx)
    return ctx


def get_trace_context() -> TraceContext:
    """Get current trace context, creating one if needed."""
    ctx = _trace_context.get()
    if ctx is None:
        ctx = create_trace_context()
    return ctx


def clear_trace_context() -> None:
    """Clear trace context (for testing)."""
    _trace_context.set(None)


@contextmanager
def trace_span(
    ctx: TraceContext,
    name: str,
    attributes: Optional[dict[str, Any]] = None,
) -> Generator[Span, None, None]:
    """Context manager for tracing a span; nested spans record their parent."""
    parent_span = ctx.current_span
    span = Span(
        name=name,
        trace_id=ctx.trace_id,
        span_id=str(uuid.uuid4())[:8],
        parent_span_id=parent_span.span_id if parent_span else None,
        start_time=time.time(),
        attributes=attributes or {},
    )

    ctx._span_stack.append(span)
    ctx.current_span = span
    ctx.spans.append(span)

    try:
        yield span
    except Exception as e:
        span.set_error(e)
        raise
    finally:
        span.end_time = time.time()
        ctx._span_stack.pop()
        ctx.current_span = ctx._span_stack[-1] if ctx._span_stack else None
        log_span(span)


def log_span(span: Span) -> None:
    """Log a completed span with structured data."""
    log_data = {
        "trace_id": span.trace_id,
        "span_id": span.span_id,
        "span_name": span.name,
        "duration_ms": span.duration_ms,
        "status": span.status.value,
    }
    log_data.update({f"attr.{k}": v for k, v in span.attributes.items()})

    if span.status == SpanStatus.ERROR:
        logger.error(f"[{span.trace_id[:8]}] ✗ {span.name}", extra=log_data)
    else:
        logger.info(f"[{span.trace_id[:8]}] ✓ {span.name} ({span.duration_ms:.0f}ms)", extra=log_data)


# =============================================================================
# Structured Logging Helpers
# =============================================================================

def log_tool_call(
    trace_id: str,
    tool_name: str,
    params: dict[str, Any],
    success: bool,
    error: Optional[str] = None,
) -> None:
    """Log tool call execution."""
    level = logging.INFO if success else logging.WARNING
    status = "✓" if success else "✗"

    logger.log(
        level,
        f"[{trace_id[:8]}] {status} Tool: {tool_name}" + (f" ({error})" if error else ""),
        extra={
            "trace_id": trace_id,
            "event": "tool_call",
            "tool_name": tool_name,
            "success": success,
            "error": error,
            "params_keys": list(params.keys()),
        },
    )


def log_llm_call(
    trace_id: str,
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    duration_ms: float,
    has_tool_calls: bool,
) -> None:
    """Log a conversational provider round-trip."""
    logger.info(
        f"[{trace_id[:8]}] 🤖 LLM: {model} ({prompt_tokens}+{completion_tokens} tokens, {duration_ms:.0f}ms)",
        extra={
            "trace_id": trace_id,
            "event": "llm_call",
            "model": model,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "duration_ms": duration_ms,
            "has_tool_calls": has_tool_calls,
        },
    )


def log_batch_execution(
    trace_id: str,
    label: str,
    attempted: int,
    succeeded: int,
    duration_ms: float,
) -> None:
    """Log a fan-out batch summary."""
    failed = attempted - succeeded
    status = "✅" if failed == 0 else "⚠️"

    logger.info(
        f"[{trace_id[:8]}] {status} Batch {label}: {succeeded}/{attempted} items ({duration_ms:.0f}ms)",
        extra={
            "trace_id": trace_id,
            "event": "batch_execution",
            "label": label,
            "attempted": attempted,
            "succeeded": succeeded,
            "failed": failed,
            "duration_ms": duration_ms,
        },
    )


def log_validation_error(
    trace_id: str,
    tool_name: str,
    errors: list[str],
) -> None:
    """Log a tool rejected by argument or stage validation."""
    logger.warning(
        f"[{trace_id[:8]}] 🚫 Validation: {tool_name}: {'; '.join(errors)}",
        extra={
            "trace_id": trace_id,
            "event": "validation_error",
            "tool_name": tool_name,
            "errors": errors,
        },
    )
