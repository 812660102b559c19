from __future__ import annotations

import logging
import math
import tempfile
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Optional, Protocol
from uuid import uuid4

import httpx
from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.errors import TempFileCleanupError
from mediaflow.app.domain.models import TranscriptResult
from mediaflow.services.errors import NetworkTimeoutError, TranscriptionServiceError

logger = logging.getLogger(__name__)

DEFAULT_COST_PER_MINUTE = 0.006
DEFAULT_DOWNLOAD_TIMEOUT = 300.0
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class SpeechEngine(Protocol):
    def transcribe(self, media_path: Path, verbose: bool = False) -> TranscriptResult:
        ...


def estimate_cost(duration_seconds: float, rate_per_minute: float = DEFAULT_COST_PER_MINUTE) -> float:
    """Transcription cost in dollars, rounded up to the cent."""
    minutes = duration_seconds / 60
    cents = round(minutes * rate_per_minute * 100, 6)
    return math.ceil(cents) / 100


def _remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        raise TempFileCleanupError(str(path), str(error)) from error


def _remove_dir(path: Path) -> None:
    try:
        path.rmdir()
    except FileNotFoundError:
        pass
    except OSError as error:
        raise TempFileCleanupError(str(path), str(error)) from error


@contextmanager
def scratch_file(base_dir: Optional[Path] = None, suffix: str = ".mp4") -> Iterator[Path]:
    """Yield a unique scratch path that is removed on every exit path.

    The directory is removed too when it was created here.
    """
    if base_dir is None:
        work_dir = Path(tempfile.mkdtemp(prefix="transcribe-"))
        created_dir = True
    else:
        created_dir = not base_dir.exists()
        base_dir.mkdir(parents=True, exist_ok=True)
        work_dir = base_dir

    path = work_dir / f"{uuid4().hex}{suffix}"
    try:
        yield path
    finally:
        try:
            _remove_file(path)
            if created_dir:
                _remove_dir(work_dir)
        except TempFileCleanupError as error:
            logger.warning("%s", error)


class Transcriber:
    """Transcribes hosted media by staging it in a private scratch file."""

    def __init__(
        self,
        engine: SpeechEngine,
        scratch_dir: Optional[Path] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        cost_per_minute: float = DEFAULT_COST_PER_MINUTE,
    ) -> None:
        self._engine = engine
        self._scratch_dir = scratch_dir
        self._client = client
        self._timeout = timeout
        self._cost_per_minute = cost_per_minute

    async def _stream_to(self, client: httpx.AsyncClient, url: str, target: Path) -> None:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise TranscriptionServiceError(
                    f"Failed to download video: {response.status_code} {response.reason_phrase}"
                )
            with target.open("wb") as handle:
                async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                    handle.write(chunk)

    async def _download(self, url: str, target: Path) -> None:
        try:
            if self._client is not None:
                await self._stream_to(self._client, url, target)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    await self._stream_to(client, url, target)
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(url, self._timeout) from error
        except httpx.HTTPError as error:
            raise TranscriptionServiceError(f"Failed to download video: {error}") from error

    async def _run(self, video_url: str, verbose: bool) -> TranscriptResult:
        with scratch_file(self._scratch_dir) as path:
            logger.info("Downloading video for transcription: %s", video_url)
            await self._download(video_url, path)
            logger.info("Transcribing %s (%d bytes)", path.name, path.stat().st_size)
            result = await run_in_threadpool(self._engine.transcribe, path, verbose)

        logger.info(
            "Transcribed %s: duration=%.1fs, estimated cost=$%.2f",
            video_url,
            result.duration_seconds,
            estimate_cost(result.duration_seconds, self._cost_per_minute),
        )
        return result

    async def transcribe_from_url(self, video_url: str) -> str:
        result = await self._run(video_url, verbose=False)
        return result.text

    async def transcribe_from_url_verbose(self, video_url: str) -> TranscriptResult:
        """Like ``transcribe_from_url`` but keeps segment timestamps."""
        result = await self._run(video_url, verbose=True)
        return replace(result, segments=tuple(result.segments or ()))
