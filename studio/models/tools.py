"""Tool result and state mutation models for Studio Director."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from studio.models.base import CamelModel, to_camel


class MutationType(str, Enum):
    """Declarative state changes a tool handler may request.

    Values are the wire names the client store already understands.
    """
    SET_OVERVIEW = "setOverview"
    SET_AESTHETIC = "setAesthetic"
    SET_BRAND = "setBrand"

    ADD_CHARACTER = "addCharacter"
    UPDATE_CHARACTER = "updateCharacter"

    SET_SCENES = "setScenes"
    UPDATE_SCENE = "updateScene"
    UPDATE_SCENES = "updateScenes"
    ADD_SCENE = "addScene"
    REMOVE_SCENE = "removeScene"
    REORDER_SCENES = "reorderScenes"

    SET_LOCATIONS = "setLocations"
    UPDATE_LOCATION = "updateLocation"
    SET_CHARACTER_ATTIRES = "setCharacterAttires"
    UPDATE_CHARACTER_ATTIRE = "updateCharacterAttire"

    UPDATE_CHECKLIST_ITEM = "updateChecklistItem"
    SET_CURRENT_ARTIFACT = "setCurrentArtifact"

    SET_FINAL_OUTPUT_URL = "setFinalOutputUrl"
    RESET_PROJECT = "resetProject"


class StateMutation(CamelModel):
    """A ``{type, payload}`` pair interpreted by the mutation applier."""

    type: MutationType
    payload: Any = None

    @classmethod
    def entity_update(cls, mutation_type: MutationType, entity_id: str, **updates: Any) -> "StateMutation":
        """Shorthand for the ``{id, updates}`` payload shape used by update mutations."""
        return cls(
            type=mutation_type,
            payload={"id": entity_id, "updates": {to_camel(k): v for k, v in updates.items()}},
        )


class ToolResult(CamelModel):
    """Outcome of one tool call.

    ``success=False`` is a business failure (validation, provider error) and
    still travels with HTTP 200. Mutations are descriptions only; handlers
    never touch the Project directly.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    state_update: Optional[StateMutation] = Field(default=None, alias="stateUpdates")
    additional_updates: list[StateMutation] = Field(default_factory=list, alias="additionalUpdates")

    @classmethod
    def ok(
        cls,
        data: Any = None,
        state_update: Optional[StateMutation] = None,
        additional_updates: Optional[list[StateMutation]] = None,
    ) -> "ToolResult":
        return cls(
            success=True,
            data=data,
            state_update=state_update,
            additional_updates=additional_updates or [],
        )

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    @property
    def mutations(self) -> list[StateMutation]:
        """Primary mutation first, then additional ones, in application order."""
        out: list[StateMutation] = []
        if self.state_update is not None:
            out.append(self.state_update)
        out.extend(self.additional_updates)
        return out

    def to_wire(self) -> dict[str, Any]:
        body = self.model_dump(by_alias=True, mode="json")
        # Optional top-level keys are omitted rather than sent as null; a
        # null payload inside a mutation (setBrand on skip) is kept.
        for key in ("data", "error", "stateUpdates"):
            if body.get(key) is None:
                body.pop(key, None)
        if not self.additional_updates:
            body.pop("additionalUpdates", None)
        return body
