"""Generation provider client.

Thin async client over the generation service's JSON endpoints (reference
angles, voice clones, scripts, preprocessing, location images, thumbnails,
video clips). Every endpoint is a POST relative to
``settings.generation_base_url``.

Failures of any kind surface as ``GenerationProviderError``; handlers decide
per operation whether that becomes an error result or a status mutation.
"""
from __future__ import annotations

import logging
import time as _time
from typing import Any, Optional

import httpx

from studio.config import settings

logger = logging.getLogger(__name__)


class GenerationProviderError(Exception):
    """A generation endpoint failed, timed out, or returned an unusable body."""

    def __init__(self, endpoint: str, message: str, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)


class _CircuitBreaker:
    """Fail fast while the provider is down.

    After ``threshold`` consecutive failures the circuit opens and calls fail
    immediately for ``cooldown`` seconds. After the cooldown one probe is let
    through; success closes the circuit.
    """

    def __init__(self, threshold: int = 5, cooldown: float = 60.0):
        self.threshold = threshold
        self.cooldown = cooldown
        self._failures = 0
        self._opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        if self._opened_at is None:
            return False
        return _time.monotonic() - self._opened_at < self.cooldown

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("🟢 Generation circuit breaker CLOSED (successful request)")
        self._failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self.threshold and (self._opened_at is None or not self.is_open):
            self._opened_at = _time.monotonic()
            logger.error(
                f"🔴 Generation circuit breaker OPEN after {self._failures} "
                f"consecutive failures, failing fast for {self.cooldown}s"
            )


# Fan-out sends many requests at once; the pool must cover the worker budget.
_CONNECTION_LIMITS = httpx.Limits(
    max_connections=32,
    max_keepalive_connections=16,
    keepalive_expiry=30.0,
)


class GenerationClient:
    """
    Async client for the generation provider.

    Uses a long-lived httpx.AsyncClient so connections are reused across the
    many concurrent calls a fan-out batch makes. Call warmup() from the
    FastAPI lifespan and close() on shutdown.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        api_key: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.generation_base_url).rstrip("/")
        self.timeout = timeout or settings.generation_timeout
        self.api_key = api_key if api_key is not None else settings.generation_api_key
        self._client: Optional[httpx.AsyncClient] = None
        self._cb = _CircuitBreaker(
            threshold=settings.generation_cb_threshold,
            cooldown=float(settings.generation_cb_cooldown),
        )

    @property
    def circuit_breaker_open(self) -> bool:
        return self._cb.is_open

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=5.0,
                    read=float(self.timeout),
                    write=30.0,
                    pool=10.0,
                ),
                limits=_CONNECTION_LIMITS,
                headers=headers,
            )
        return self._client

    async def warmup(self) -> None:
        """Open the keepalive connection before the first real request."""
        try:
            if await self.health_check():
                logger.info("Generation provider connection warmed up ✓")
            else:
                logger.warning("Generation provider warmup: health check failed")
        except httpx.HTTPError as exc:
            logger.warning(f"Generation provider warmup failed (service may not be running): {exc}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def health_check(self) -> bool:
        """Short probe, independent of the generation timeout."""
        probe_timeout = httpx.Timeout(connect=3.0, read=3.0, write=3.0, pool=3.0)
        try:
            response = await self.client.get(f"{self.base_url}/health", timeout=probe_timeout)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Generation provider health check failed: {e}")
            return False

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self._cb.is_open:
            raise GenerationProviderError(
                endpoint, "Generation service is unavailable (circuit breaker open)"
            )

        url = f"{self.base_url}{endpoint}"
        started = _time.perf_counter()
        try:
            response = await self.client.post(url, json=payload)
        except httpx.TimeoutException as e:
            self._cb.record_failure()
            raise GenerationProviderError(endpoint, f"{endpoint} timed out") from e
        except httpx.HTTPError as e:
            self._cb.record_failure()
            raise GenerationProviderError(endpoint, f"{endpoint} unreachable: {e}") from e

        if response.status_code >= 400:
            self._cb.record_failure()
            detail = _error_detail(response)
            logger.warning(f"⚠️ {endpoint} returned {response.status_code}: {detail[:200]}")
            raise GenerationProviderError(
                endpoint, f"Generation failed: {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            self._cb.record_failure()
            raise GenerationProviderError(endpoint, f"{endpoint} returned invalid JSON") from e

        if not isinstance(data, dict):
            self._cb.record_failure()
            raise GenerationProviderError(endpoint, f"{endpoint} returned a non-object body")
        if data.get("error"):
            self._cb.record_failure()
            raise GenerationProviderError(endpoint, str(data["error"]), status_code=response.status_code)

        self._cb.record_success()
        logger.debug(f"✅ {endpoint} ok ({(_time.perf_counter() - started) * 1000:.0f}ms)")
        return data

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def generate_angles(
        self,
        *,
        character_name: str,
        reference_photos: list[str],
        aesthetic_description: Optional[str],
        character_id: Optional[str] = None,
        attire_description: Optional[str] = None,
    ) -> list[str]:
        """Reference angles for a character (or a character in an attire). May be empty."""
        payload: dict[str, Any] = {
            "characterName": character_name,
            "referencePhotos": reference_photos,
            "aestheticDescription": aesthetic_description,
        }
        if character_id:
            payload["characterId"] = character_id
        if attire_description:
            payload["attireDescription"] = attire_description
        data = await self._post("/generate-angles", payload)
        return list(data.get("generatedAngles") or data.get("angles") or [])

    async def create_voice_clone(
        self,
        *,
        character_id: str,
        character_name: str,
        voice_sample_url: str,
    ) -> Optional[str]:
        """Voice clone id, or None while the provider is still processing."""
        data = await self._post("/create-voice-clone", {
            "characterId": character_id,
            "characterName": character_name,
            "voiceSampleUrl": voice_sample_url,
        })
        return data.get("voiceCloneId") or None

    async def generate_script(
        self,
        *,
        overview: dict[str, Any],
        aesthetic: dict[str, Any],
        brand: Optional[dict[str, Any]],
        characters: list[dict[str, Any]],
        additional_guidance: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        data = await self._post("/generate-script", {
            "overview": overview,
            "aesthetic": aesthetic,
            "brand": brand,
            "characters": characters,
            "additionalGuidance": additional_guidance,
        })
        scenes = data.get("scenes")
        if not isinstance(scenes, list):
            raise GenerationProviderError("/generate-script", "Script response has no scenes")
        return scenes

    async def preprocess_script(
        self,
        *,
        scenes: list[dict[str, Any]],
        characters: list[dict[str, Any]],
        aesthetic: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        """``{locations, attires, sceneUpdates}``; missing keys come back as empty lists."""
        data = await self._post("/preprocess-script", {
            "scenes": scenes,
            "characters": characters,
            "aesthetic": aesthetic,
        })
        return {
            "locations": data.get("locations") or [],
            "attires": data.get("attires") or [],
            "sceneUpdates": data.get("sceneUpdates") or [],
        }

    async def generate_location_image(
        self,
        *,
        location_name: str,
        location_description: str,
        aesthetic_description: Optional[str],
        additional_instructions: Optional[str] = None,
        existing_image_url: Optional[str] = None,
    ) -> str:
        payload: dict[str, Any] = {
            "locationName": location_name,
            "locationDescription": location_description,
            "aestheticDescription": aesthetic_description,
        }
        if additional_instructions:
            payload["additionalInstructions"] = additional_instructions
        if existing_image_url:
            payload["existingImageUrl"] = existing_image_url
        data = await self._post("/generate-location-image", payload)
        return _required_url(data, "imageUrl", "/generate-location-image")

    async def generate_thumbnail(self, payload: dict[str, Any]) -> str:
        """Render a scene thumbnail from a render-context payload."""
        data = await self._post("/generate-thumbnail", payload)
        return _required_url(data, "thumbnailUrl", "/generate-thumbnail")

    async def generate_video(self, payload: dict[str, Any]) -> str:
        """Render a scene clip from a render-context payload (includes the thumbnail url)."""
        data = await self._post("/generate-video", payload)
        return _required_url(data, "videoUrl", "/generate-video")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


def _required_url(data: dict[str, Any], field: str, endpoint: str) -> str:
    url = data.get(field)
    if not isinstance(url, str) or not url:
        raise GenerationProviderError(endpoint, f"{endpoint} response missing {field}")
    return url


# ---------------------------------------------------------------------------
# Module-level singleton: one connection pool per worker process.
# ---------------------------------------------------------------------------

_shared_client: Optional[GenerationClient] = None


def get_generation_client() -> GenerationClient:
    """Return the process-wide GenerationClient singleton."""
    global _shared_client
    if _shared_client is None:
        _shared_client = GenerationClient()
    return _shared_client


async def close_generation_client() -> None:
    """Close the singleton client (call from FastAPI lifespan shutdown)."""
    global _shared_client
    if _shared_client is not None:
        await _shared_client.close()
        _shared_client = None
