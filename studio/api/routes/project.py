"""
Direct project edits that are not agent tools.

Scene reordering and project reset come from the client UI, not from the
model. Each request carries the project snapshot; the change goes through
the same single writer the agent loop uses and comes back as a mutation the
client applies to its own store. A rejected mutation is ``success: false``
with status 200.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from studio.config import settings
from studio.core.mutations import MutationError
from studio.core.state_store import ProjectStore
from studio.models.project import Project
from studio.models.requests import ReorderScenesRequest, ResetProjectRequest
from studio.models.responses import ProjectUpdateResponse
from studio.models.tools import MutationType, StateMutation

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def _apply(project: Project, mutation: StateMutation, source: str) -> JSONResponse:
    store = ProjectStore(project)
    try:
        store.apply(mutation, source=source)
    except MutationError as e:
        logger.warning(f"⚠️ {source} rejected for project {project.id[:8]}: {e}")
        body = ProjectUpdateResponse(success=False, error=str(e))
    else:
        logger.info(f"✏️ {source} applied to project {project.id[:8]} → v{store.version}")
        body = ProjectUpdateResponse(
            success=True,
            project=store.project,
            version=store.version,
            state_update=mutation,
        )
    return JSONResponse(content=body.model_dump(by_alias=True, mode="json", exclude_none=True))


@router.post("/project/reorder-scenes")
@limiter.limit(settings.project_rate_limit)
async def reorder_scenes(request: Request, body: ReorderScenesRequest) -> JSONResponse:
    mutation = StateMutation(type=MutationType.REORDER_SCENES, payload=body.scene_ids)
    return _apply(body.project_state, mutation, "reorder-scenes")


@router.post("/project/reset")
@limiter.limit(settings.project_rate_limit)
async def reset_project(request: Request, body: ResetProjectRequest) -> JSONResponse:
    return _apply(body.project_state, StateMutation(type=MutationType.RESET_PROJECT), "reset-project")
