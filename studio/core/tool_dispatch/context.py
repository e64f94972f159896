"""Per-call context handed to every tool handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from studio.core.tracing import TraceContext, get_trace_context
from studio.models.project import Project
from studio.services.assembly import Stitcher
from studio.services.generation import GenerationClient, get_generation_client


@dataclass
class ToolContext:
    """Read-only project view plus the collaborators a handler may call.

    Handlers must not write to ``project``; they describe changes as
    mutations on the returned ToolResult.
    """

    project: Project
    trace: TraceContext
    generation_client: Optional[GenerationClient] = None
    stitcher: Optional[Stitcher] = None

    @classmethod
    def for_project(
        cls,
        project: Project,
        *,
        trace: Optional[TraceContext] = None,
        generation_client: Optional[GenerationClient] = None,
        stitcher: Optional[Stitcher] = None,
    ) -> "ToolContext":
        return cls(
            project=project,
            trace=trace or get_trace_context(),
            generation_client=generation_client,
            stitcher=stitcher,
        )

    @property
    def generation(self) -> GenerationClient:
        if self.generation_client is None:
            self.generation_client = get_generation_client()
        return self.generation_client

    @property
    def assembler(self) -> Stitcher:
        if self.stitcher is None:
            self.stitcher = Stitcher()
        return self.stitcher

    @property
    def aesthetic_description(self) -> Optional[str]:
        return self.project.aesthetic.description if self.project.aesthetic else None

    @property
    def log_prefix(self) -> str:
        return f"[{self.trace.short_id}]"
