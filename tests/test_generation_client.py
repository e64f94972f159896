"""Tests for the generation provider client: endpoint mapping, error mapping, circuit breaker."""
from __future__ import annotations

import time
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from studio.services.generation import (
    GenerationClient,
    GenerationProviderError,
    close_generation_client,
    get_generation_client,
)


def _client_with(*responses: object) -> tuple[GenerationClient, AsyncMock]:
    client = GenerationClient(base_url="http://gen.test/api", api_key="")
    mock_http = AsyncMock()
    mock_http.post.side_effect = list(responses)
    client._client = mock_http
    return client, mock_http


class TestEndpoints:

    async def test_location_image_posts_camel_payload(self) -> None:
        client, http = _client_with(httpx.Response(200, json={"imageUrl": "https://cdn.test/cafe.png"}))
        url = await client.generate_location_image(
            location_name="Cafe",
            location_description="Sunny",
            aesthetic_description="Warm film",
        )
        assert url == "https://cdn.test/cafe.png"
        call = http.post.call_args
        assert call.args[0] == "http://gen.test/api/generate-location-image"
        assert call.kwargs["json"] == {
            "locationName": "Cafe",
            "locationDescription": "Sunny",
            "aestheticDescription": "Warm film",
        }

    async def test_angles_accepts_either_key(self) -> None:
        client, _ = _client_with(
            httpx.Response(200, json={"generatedAngles": ["a", "b"]}),
            httpx.Response(200, json={"angles": ["c"]}),
            httpx.Response(200, json={}),
        )
        kwargs = {"character_name": "Ava", "reference_photos": ["p"], "aesthetic_description": None}
        assert await client.generate_angles(**kwargs) == ["a", "b"]
        assert await client.generate_angles(**kwargs) == ["c"]
        assert await client.generate_angles(**kwargs) == []

    async def test_voice_clone_processing_returns_none(self) -> None:
        client, _ = _client_with(httpx.Response(200, json={"status": "processing"}))
        result = await client.create_voice_clone(
            character_id="c1", character_name="Ava", voice_sample_url="https://cdn.test/v.mp3",
        )
        assert result is None

    async def test_preprocess_defaults_missing_lists(self) -> None:
        client, _ = _client_with(httpx.Response(200, json={"locations": [{"name": "Cafe"}]}))
        result = await client.preprocess_script(scenes=[], characters=[], aesthetic=None)
        assert result == {"locations": [{"name": "Cafe"}], "attires": [], "sceneUpdates": []}

    async def test_script_without_scenes_is_an_error(self) -> None:
        client, _ = _client_with(httpx.Response(200, json={"script": "..."}))
        with pytest.raises(GenerationProviderError, match="no scenes"):
            await client.generate_script(overview={}, aesthetic={}, brand=None, characters=[])


class TestErrorMapping:
    """Every failure shape surfaces as GenerationProviderError."""

    async def test_http_error_status(self) -> None:
        client, _ = _client_with(httpx.Response(502, json={"error": "upstream"}))
        with pytest.raises(GenerationProviderError) as exc:
            await client.generate_thumbnail({"sceneId": "s1"})
        assert exc.value.status_code == 502
        assert exc.value.endpoint == "/generate-thumbnail"

    async def test_error_key_in_200_body(self) -> None:
        client, _ = _client_with(httpx.Response(200, json={"error": "content policy"}))
        with pytest.raises(GenerationProviderError, match="content policy"):
            await client.generate_video({"sceneId": "s1"})

    async def test_missing_url(self) -> None:
        client, _ = _client_with(httpx.Response(200, json={"status": "ok"}))
        with pytest.raises(GenerationProviderError, match="missing videoUrl"):
            await client.generate_video({"sceneId": "s1"})

    async def test_invalid_json(self) -> None:
        client, _ = _client_with(httpx.Response(200, content=b"<html>"))
        with pytest.raises(GenerationProviderError, match="invalid JSON"):
            await client.generate_thumbnail({})

    async def test_non_object_body(self) -> None:
        client, _ = _client_with(httpx.Response(200, json=["a"]))
        with pytest.raises(GenerationProviderError, match="non-object"):
            await client.generate_thumbnail({})

    async def test_timeout(self) -> None:
        client, _ = _client_with(httpx.ReadTimeout("slow"))
        with pytest.raises(GenerationProviderError, match="timed out"):
            await client.generate_thumbnail({})

    async def test_transport_error(self) -> None:
        client, _ = _client_with(httpx.ConnectError("refused"))
        with pytest.raises(GenerationProviderError, match="unreachable"):
            await client.generate_thumbnail({})


class TestCircuitBreaker:

    async def test_opens_after_threshold_and_fails_fast(self) -> None:
        failures = [httpx.Response(500) for _ in range(5)]
        client, http = _client_with(*failures)
        for _ in range(5):
            with pytest.raises(GenerationProviderError):
                await client.generate_thumbnail({})
        assert client.circuit_breaker_open

        with pytest.raises(GenerationProviderError, match="circuit breaker open"):
            await client.generate_thumbnail({})
        assert http.post.call_count == 5

    async def test_probe_after_cooldown_closes_circuit(self) -> None:
        responses = [httpx.Response(500) for _ in range(5)]
        responses.append(httpx.Response(200, json={"thumbnailUrl": "https://cdn.test/t.png"}))
        client, _ = _client_with(*responses)
        for _ in range(5):
            with pytest.raises(GenerationProviderError):
                await client.generate_thumbnail({})

        client._cb._opened_at = time.monotonic() - client._cb.cooldown - 1
        assert not client.circuit_breaker_open
        assert await client.generate_thumbnail({}) == "https://cdn.test/t.png"
        assert not client.circuit_breaker_open

    async def test_success_resets_failure_count(self) -> None:
        responses: list[object] = [httpx.Response(500) for _ in range(4)]
        responses.append(httpx.Response(200, json={"thumbnailUrl": "u"}))
        responses.append(httpx.Response(500))
        client, _ = _client_with(*responses)
        for _ in range(4):
            with pytest.raises(GenerationProviderError):
                await client.generate_thumbnail({})
        await client.generate_thumbnail({})
        with pytest.raises(GenerationProviderError):
            await client.generate_thumbnail({})
        assert not client.circuit_breaker_open


class TestHealth:

    async def test_health_check_false_on_transport_error(self) -> None:
        client = GenerationClient(base_url="http://gen.test/api")
        mock_http = AsyncMock()
        mock_http.get.side_effect = httpx.ConnectError("refused")
        client._client = mock_http
        assert await client.health_check() is False

    async def test_health_check_true_on_200(self) -> None:
        client = GenerationClient(base_url="http://gen.test/api")
        mock_http = AsyncMock()
        mock_http.get.return_value = MagicMock(status_code=200)
        client._client = mock_http
        assert await client.health_check() is True

    async def test_singleton_lifecycle(self) -> None:
        first = get_generation_client()
        assert get_generation_client() is first
        await close_generation_client()
        assert get_generation_client() is not first
        await close_generation_client()
