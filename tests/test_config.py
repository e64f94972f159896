"""
Tests for application config (Settings).

Ensures required and optional settings load correctly and defaults are sane.
"""
from __future__ import annotations

import pytest


def test_settings_loads_with_env() -> None:
    """Settings load from environment (or defaults)."""
    from studio.config import settings

    assert settings.app_name is not None
    assert settings.app_version is not None
    assert hasattr(settings, "debug")


def test_clip_duration_constant_matches_settings_default() -> None:
    """The assembled duration is clips * 8 unless overridden."""
    from studio.config import CLIP_DURATION_SECONDS, DEFAULT_SCENE_DURATION, Settings

    assert CLIP_DURATION_SECONDS == 8
    assert DEFAULT_SCENE_DURATION <= CLIP_DURATION_SECONDS
    assert Settings().clip_duration_seconds == CLIP_DURATION_SECONDS


def test_env_prefix_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """STUDIO_-prefixed environment variables override defaults."""
    from studio.config import Settings

    monkeypatch.setenv("STUDIO_FANOUT_MAX_CONCURRENT", "3")
    monkeypatch.setenv("STUDIO_AGENT_MAX_ITERATIONS", "4")
    s = Settings()
    assert s.fanout_max_concurrent == 3
    assert s.agent_max_iterations == 4


def test_cors_fails_closed_by_default(monkeypatch: pytest.MonkeyPatch) -> None:

    from studio.config import Settings

    monkeypatch.delenv("STUDIO_CORS_ORIGINS", raising=False)
    assert Settings().cors_origins == []


def test_cors_wildcard_warns_outside_debug(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    """A wildcard origin with debug off logs a warning but still loads."""
    from studio.config import Settings

    monkeypatch.setenv("STUDIO_CORS_ORIGINS", '["*"]')
    monkeypatch.setenv("STUDIO_DEBUG", "false")
    with caplog.at_level("WARNING"):
        s = Settings()
    assert s.cors_origins == ["*"]
    assert "CORS allows all origins" in caplog.text
