"""Request models for the Studio Director API."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from studio.contracts.conversation import Attachment, Turn
from studio.models.base import CamelModel
from studio.models.project import Project

_MAX_MESSAGE_CHARS = 32_768


class ExecuteToolRequest(CamelModel):
    """One tool call against a client-held project snapshot.

    The server applies nothing; the client folds ``stateUpdates`` and
    ``additionalUpdates`` from the result into its own copy.
    """

    tool_name: str = Field(..., min_length=1, description="Tool name, e.g. 'generate-script'")
    args: dict[str, Any] = Field(default_factory=dict)
    project_state: Project = Field(default_factory=Project)


class ChatRequest(CamelModel):
    """One user message for the agent loop."""

    message: str = Field(default="", max_length=_MAX_MESSAGE_CHARS)
    attachments: list[Attachment] = Field(default_factory=list)
    history: list[Turn] = Field(default_factory=list)
    project: Project = Field(default_factory=Project)
    conversation_id: Optional[str] = Field(
        default=None,
        description="Turns for the same conversation are serialized; a concurrent one gets 409",
    )


class ReorderScenesRequest(CamelModel):
    """New scene order for a client-held project; unlisted scenes keep their relative order at the end."""

    project_state: Project
    scene_ids: list[str] = Field(..., min_length=1)


class ResetProjectRequest(CamelModel):
    project_state: Project
