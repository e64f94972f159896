"""
Studio Director Configuration

Environment-based configuration for the Studio Director service.
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _app_version_from_package() -> str:
    """Read version from installed package metadata; pyproject.toml is the source of truth."""
    try:
        from importlib.metadata import PackageNotFoundError, version
        return version("studio-director")
    except PackageNotFoundError:
        pass
    try:
        from pathlib import Path
        import re
        pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
        match = re.search(r'^version\s*=\s*"([^"]+)"', pyproject.read_text(), re.MULTILINE)
        if match:
            return match.group(1)
    except OSError:
        pass
    return "0.0.0-unknown"


# Per-clip length produced by the video model. The assembled duration is
# reported as clips * this value, and Scene.duration may not exceed it.
CLIP_DURATION_SECONDS: int = 8

# Default per-scene duration when the agent does not supply one.
DEFAULT_SCENE_DURATION: int = 5


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Info
    app_name: str = "Studio Director"
    app_version: str = _app_version_from_package()
    debug: bool = False

    # Server Configuration
    studio_host: str = "0.0.0.0"
    studio_port: int = 10010

    # Conversational LLM (OpenRouter, OpenAI-compatible)
    llm_provider: str = "openrouter"
    llm_model: str = "anthropic/claude-sonnet-4.6"
    llm_timeout: int = 120  # seconds
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.7
    openrouter_api_key: Optional[str] = None

    # Agent loop
    agent_max_iterations: int = 10      # provider round-trips per user message
    orchestration_temperature: float = 0.2

    # Generation provider (image / video / voice / script endpoints)
    generation_base_url: str = "http://localhost:10011/api"
    generation_timeout: int = 600  # seconds; clip renders are slow
    generation_api_key: Optional[str] = None
    generation_cb_threshold: int = 5    # consecutive failures before the circuit opens
    generation_cb_cooldown: int = 60    # seconds the circuit stays open

    # Fan-out worker budget. 0 launches every item at once.
    fanout_max_concurrent: int = 8

    # Assembly
    clip_duration_seconds: int = CLIP_DURATION_SECONDS
    scratch_dir: Optional[str] = None  # defaults to the system temp dir
    ffmpeg_binary: str = "ffmpeg"
    download_timeout: int = 120  # seconds per clip download

    # AWS S3 asset store (final renders)
    aws_region: str = "us-east-1"
    aws_s3_asset_bucket: Optional[str] = None
    aws_cloudfront_domain: Optional[str] = None
    asset_key_prefix: str = "renders/"
    presign_expiry_seconds: int = 86400

    # Rate limits (per client IP)
    chat_rate_limit: str = "30/minute"
    execute_tool_rate_limit: str = "120/minute"
    project_rate_limit: str = "60/minute"

    # CORS Settings (fail closed: no default origins)
    cors_origins: list[str] = []

    @model_validator(mode="after")
    def _warn_cors_wildcard_in_production(self) -> "Settings":
        """Warn when CORS allows all origins in non-debug (production) mode."""
        if not self.debug and self.cors_origins and "*" in self.cors_origins:
            logging.getLogger(__name__).warning(
                "CORS allows all origins (*) with STUDIO_DEBUG=false. "
                "Set STUDIO_CORS_ORIGINS to exact origins in production."
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="STUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
