"""
Tool definitions and metadata for the studio director.

Tools are classified by kind:
  * SETUP     (deterministic project edits)            - no provider calls
  * GENERATOR (image / voice / script / video calls)   - slow, may fan out
  * ASSEMBLY  (final stitch)                           - terminal
  * UI        (checklist, preview focus, uploads)      - request-upload pauses the loop
"""
from __future__ import annotations

from studio.core.tools.metadata import ToolKind, ToolMeta
from studio.core.tools.definitions import ALL_TOOLS, CATALOG_ORDER
from studio.core.tools.registry import (
    build_tool_registry,
    get_tool_meta,
    pauses_loop,
    tools_by_kind,
    tool_schema_by_name,
)

__all__ = [
    "ToolKind",
    "ToolMeta",
    "ALL_TOOLS",
    "CATALOG_ORDER",
    "build_tool_registry",
    "get_tool_meta",
    "pauses_loop",
    "tools_by_kind",
    "tool_schema_by_name",
]
