"""API route modules."""
from __future__ import annotations

from studio.api.routes import chat, health, project, tools

__all__ = ["chat", "health", "project", "tools"]
