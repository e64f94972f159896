"""Tool dispatch table.

One handler per ``ToolName``, grouped by what it touches:

- ``setup``    overview, aesthetic, brand, characters
- ``script``   script generation and scene edits
- ``assets``   preprocessing, locations, attires
- ``media``    thumbnails, clips, final assembly
- ``session``  checklist, preview focus, upload requests
"""

from studio.core.tool_dispatch.context import ToolContext
from studio.core.tool_dispatch.dispatcher import (
    HANDLERS,
    execute,
    format_validation_errors,
    parse_args,
)

__all__ = [
    "HANDLERS",
    "ToolContext",
    "execute",
    "format_validation_errors",
    "parse_args",
]
