"""
Final assembly: ordered clip URLs in, one uploaded video out.

Steps:
1. Download every clip (httpx streaming) into the scratch dir under a
   job-unique name.
2. Write an ffmpeg concat list and run the concat demuxer with ``-c copy``
   (lossless, no re-encode) in a worker thread.
3. Upload the result to the asset store.
4. Delete every scratch file, the list and the output on every exit path.

Assembly is terminal: nothing here retries.
"""
from __future__ import annotations

import asyncio
import logging
import re
import shutil
import subprocess
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from studio.config import settings
from studio.services.asset_store import AssetStore, AssetStoreError, get_asset_store

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "video-project"


class AssemblyError(Exception):
    """Download, concat or upload failed; the message is safe to show the agent."""
    pass


@dataclass(frozen=True)
class AssemblyResult:
    url: str
    file_name: str
    total_scenes: int
    total_duration: int
    aspect_ratio: str

    @property
    def message(self) -> str:
        return f"Successfully stitched {self.total_scenes} videos into final video"

    def to_dict(self) -> dict[str, object]:
        return {
            "videoUrl": self.url,
            "totalScenes": self.total_scenes,
            "totalDuration": self.total_duration,
            "aspectRatio": self.aspect_ratio,
            "fileName": self.file_name,
        }


def sanitize_name(name: str) -> str:
    """Every non-alphanumeric character becomes ``-``."""
    return re.sub(r"[^a-zA-Z0-9]", "-", name)


def concat_list_line(path: Path) -> str:
    """One concat-demuxer entry with single quotes escaped for ffmpeg."""
    escaped = str(path).replace("'", "'\\''")
    return f"file '{escaped}'"


def _run_ffmpeg(cmd: list[str]) -> None:
    """Blocking ffmpeg runner. Raises AssemblyError on a missing binary or non-zero exit."""
    if not shutil.which(cmd[0]):
        raise AssemblyError(f"ffmpeg not found ({cmd[0]})")
    t0 = time.perf_counter()
    proc = subprocess.run(cmd, capture_output=True, text=True)
    elapsed_ms = int((time.perf_counter() - t0) * 1000)
    if proc.returncode != 0:
        tail = (proc.stderr or "").strip()[-500:]
        logger.error(f"❌ ffmpeg exited {proc.returncode} after {elapsed_ms}ms: {tail}")
        raise AssemblyError(f"ffmpeg failed (exit {proc.returncode}): {tail}")
    logger.info(f"🎞️ ffmpeg ok ({elapsed_ms}ms)")


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"⚠️ Could not remove scratch file {path}: {e}")


class Stitcher:
    """Concatenate ordered clips into one video and publish it."""

    def __init__(
        self,
        asset_store: Optional[AssetStore] = None,
        scratch_dir: Optional[str] = None,
        ffmpeg_binary: Optional[str] = None,
        clip_duration_seconds: Optional[int] = None,
    ):
        self.asset_store = asset_store or get_asset_store()
        self.scratch_dir = Path(scratch_dir or settings.scratch_dir or tempfile.gettempdir())
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary
        self.clip_duration_seconds = clip_duration_seconds or settings.clip_duration_seconds

    async def _download(self, client: httpx.AsyncClient, url: str, dest: Path, position: int) -> None:
        try:
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise AssemblyError(f"Failed to fetch video {position + 1}: {response.status_code}")
                with dest.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.HTTPError as e:
            raise AssemblyError(f"Failed to fetch video {position + 1}: {e}") from e
        logger.debug(f"✓ Downloaded scene {position + 1}")

    async def _concat(self, list_path: Path, output_path: Path) -> None:
        cmd = [
            self.ffmpeg_binary,
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_path),
            "-c", "copy",
            str(output_path),
        ]
        await asyncio.to_thread(_run_ffmpeg, cmd)

    async def _upload(self, output_path: Path, key: str) -> str:
        data = await asyncio.to_thread(output_path.read_bytes)
        try:
            return await asyncio.to_thread(self.asset_store.upload, data, key=key, content_type="video/mp4")
        except AssetStoreError as e:
            raise AssemblyError(f"Failed to upload final video: {e}") from e

    async def assemble(
        self,
        ordered_media_urls: list[str],
        *,
        project_name: str = DEFAULT_PROJECT_NAME,
        aspect_ratio: str = "16:9",
    ) -> AssemblyResult:
        """Download, concatenate and upload ``ordered_media_urls`` in the given order.

        Raises:
            AssemblyError: any step failed. Scratch files are gone either way.
        """
        if not ordered_media_urls:
            raise AssemblyError("No video URLs provided")

        safe_name = sanitize_name(project_name or DEFAULT_PROJECT_NAME)
        job = uuid.uuid4().hex[:12]
        self.scratch_dir.mkdir(parents=True, exist_ok=True)

        clip_paths = [self.scratch_dir / f"scene-{i}-{job}.mp4" for i in range(len(ordered_media_urls))]
        list_path = self.scratch_dir / f"concat-{job}.txt"
        output_path = self.scratch_dir / f"final-{safe_name}-{job}.mp4"
        file_name = f"{safe_name}-final.mp4"

        logger.info(f"🎬 Stitching {len(ordered_media_urls)} clips for {project_name!r} (job {job})")
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(float(settings.download_timeout), connect=10.0),
                follow_redirects=True,
            ) as client:
                # Wait for every download before cleanup can run, so no late write recreates a file.
                outcomes = await asyncio.gather(
                    *[
                        self._download(client, url, path, i)
                        for i, (url, path) in enumerate(zip(ordered_media_urls, clip_paths))
                    ],
                    return_exceptions=True,
                )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            list_path.write_text("\n".join(concat_list_line(p) for p in clip_paths), encoding="utf-8")
            await self._concat(list_path, output_path)
            url = await self._upload(output_path, key=f"{job}/{file_name}")
        finally:
            for path in (*clip_paths, list_path, output_path):
                _remove(path)

        logger.info(f"✅ Final video uploaded: {url}")
        return AssemblyResult(
            url=url,
            file_name=file_name,
            total_scenes=len(ordered_media_urls),
            total_duration=len(ordered_media_urls) * self.clip_duration_seconds,
            aspect_ratio=aspect_ratio,
        )
