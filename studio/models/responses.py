"""Response models for the Studio Director API."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from studio.contracts.conversation import Turn
from studio.models.base import CamelModel
from studio.models.project import Project
from studio.models.tools import StateMutation


class PendingUploadResponse(CamelModel):
    tool_call_id: str
    upload_type: str
    purpose: str
    target_id: Optional[str] = None


class ChatResponse(CamelModel):
    """Outcome of one agent-loop turn."""

    message: str
    history: list[Turn]
    project: Project
    phase: str
    iterations: int
    capped: bool = False
    pending_upload: Optional[PendingUploadResponse] = None
    continuation_token: Optional[Any] = None
    tools_called: list[str] = Field(default_factory=list)


class ProjectUpdateResponse(CamelModel):
    """A direct project edit: the updated project plus the mutation for the client store."""

    success: bool
    project: Optional[Project] = None
    version: int = 0
    state_update: Optional[StateMutation] = Field(default=None, alias="stateUpdates")
    error: Optional[str] = None
