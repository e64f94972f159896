"""Health check endpoints."""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter

from studio.config import settings
from studio.core.session_guard import get_session_guard
from studio.services.asset_store import get_asset_store
from studio.services.generation import get_generation_client

router = APIRouter()


def _llm_configured() -> bool:
    """True if the configured LLM provider has an API key set (OpenRouter)."""
    return settings.llm_provider == "openrouter" and bool(settings.openrouter_api_key)


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/health/full")
async def full_health_check() -> dict[str, Any]:
    """
    Full health check including dependencies.

    Reports:
    - LLM: configured (OpenRouter API key present)
    - Generation provider (if reachable)
    - S3 asset store (if configured)
    """
    llm_ok = _llm_configured()
    generation_ok = await get_generation_client().health_check()

    deps: dict[str, Any] = {
        "llm": {
            "status": "ok" if llm_ok else "unconfigured",
            "provider": settings.llm_provider,
            "model": settings.llm_model,
        },
        "generation": {
            "status": "ok" if generation_ok else "unavailable",
            "url": settings.generation_base_url,
        },
    }
    store = get_asset_store()
    if store.configured:
        s3_ok = await asyncio.to_thread(store.check_reachable)
        deps["s3_assets"] = {
            "status": "ok" if s3_ok else "error",
            "bucket": settings.aws_s3_asset_bucket,
        }

    return {
        "status": "ok" if llm_ok and generation_ok else "degraded",
        "service": settings.app_name,
        "version": settings.app_version,
        "activeConversations": len(get_session_guard().snapshot()),
        "dependencies": deps,
    }
