"""Tool metadata models and enums."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ToolKind(str, Enum):
    SETUP = "setup"          # deterministic project edits
    GENERATOR = "generator"  # provider calls, slow and stochastic
    ASSEMBLY = "assembly"    # terminal stitch
    UI = "ui"                # checklist / preview / upload prompts


@dataclass(frozen=True)
class ToolMeta:
    name: str
    kind: ToolKind
    # Routing hints:
    creates_entity: Optional[str] = None      # "character" | "scene" | None
    id_fields: tuple[str, ...] = ()           # e.g. ("characterId",)
    fans_out: bool = False                    # runs one provider call per entity
    pauses_loop: bool = False                 # agent loop stops until the user acts
