# mediaflow/app/services/extraction.py
"""
Extraction orchestrator: turns a raw video URL into a described, rehosted
and deduplicated media payload that the admin layer can persist.

Steps always run in order (extract, upload, transcribe, resolve creator).
Upload and transcription failures degrade the result instead of failing it;
extraction failures and invalid input propagate to the caller.
"""
from __future__ import annotations

import logging
from functools import partial
from typing import Optional, Protocol, Union

from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.models import (
    CreatorCandidate,
    CreatorInfo,
    CreatorResolution,
    ExtractedMetadata,
    ExtractionMode,
    ExtractionRequest,
    ExtractionStage,
    FullExtraction,
    LongFormExtraction,
    Platform,
    QuickExtraction,
)
from mediaflow.app.infra.db.base import MediaRepository, video_table_for
from mediaflow.services.assets import SHORT_VIDEO_FOLDER, AssetUploader
from mediaflow.services.errors import (
    AlreadyIngestedError,
    ExtractionFailedError,
    InvalidURLError,
    ServiceError,
    UnsupportedPlatformError,
)
from mediaflow.services.ids import (
    detect_platform,
    is_short_form,
    parse_source_id,
    parse_youtube_id,
    profile_url_for,
    youtube_watch_url,
)
from mediaflow.services.slugify import ensure_unique_slug, normalize_slug

logger = logging.getLogger(__name__)

LONG_FORM_SLUG_MAX_LENGTH = 100

WARN_VIDEO_NOT_REHOSTED = "Video could not be rehosted; the original source URL must stay reachable"
WARN_COVER_NOT_REHOSTED = "Thumbnail could not be rehosted; using the original thumbnail URL"
WARN_TRANSCRIPT_FAILED = "Transcript generation failed"
WARN_TRANSCRIPT_SKIPPED = "Transcript skipped because no rehosted video is available"


class Extractor(Protocol):
    async def extract_metadata(self, url: str) -> ExtractedMetadata:
        ...

    async def quick_extract_metadata(self, url: str) -> ExtractedMetadata:
        ...

    async def fetch_captions(self, youtube_id: str) -> Optional[str]:
        ...


class TranscriptionAdapter(Protocol):
    async def transcribe_from_url(self, video_url: str) -> str:
        ...


class ExtractionOrchestrator:
    def __init__(
        self,
        repository: MediaRepository,
        extractor: Extractor,
        uploader: AssetUploader,
        transcriber: Optional[TranscriptionAdapter] = None,
    ) -> None:
        self._repo = repository
        self._extractor = extractor
        self._uploader = uploader
        self._transcriber = transcriber

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def extract(self, request: ExtractionRequest) -> Union[QuickExtraction, FullExtraction]:
        if request.mode is ExtractionMode.QUICK:
            return await self.quick_extract(request.source_url)
        return await self.full_extract(request.source_url, request.generate_transcript)

    async def quick_extract(self, url: str) -> QuickExtraction:
        """Metadata plus a thumbnail rehost. No video download."""
        _stage(url, ExtractionStage.VALIDATING)
        platform = _validate(url)

        _stage(url, ExtractionStage.EXTRACTING)
        metadata = await self._extract(url, quick=True)

        thumbnail = metadata.thumbnail_url
        if thumbnail and metadata.source_id:
            _stage(url, ExtractionStage.REHOSTING_THUMBNAIL)
            thumbnail = await self._uploader.rehost_thumbnail(thumbnail, platform.value, metadata.source_id)

        _stage(url, ExtractionStage.DONE)
        return QuickExtraction(
            platform=metadata.platform,
            source_id=metadata.source_id,
            title=metadata.title,
            description=metadata.description,
            duration_seconds=metadata.duration_seconds,
            thumbnail_url=thumbnail,
            creator=metadata.creator,
            published_at=metadata.published_at,
        )

    async def full_extract(self, url: str, generate_transcript: bool = True) -> FullExtraction:
        """
        Extract, rehost video and cover, optionally transcribe, and resolve
        the creator of a short-form video.

        Raises:
            InvalidURLError: missing URL or a platform other than Instagram/TikTok
            AlreadyIngestedError: the (platform, source_id) pair is already stored
            ExtractionFailedError: upstream metadata extraction failed
        """
        _stage(url, ExtractionStage.VALIDATING)
        platform = _validate(url)

        source_id = parse_source_id(url, platform)
        if source_id:
            await self._ensure_not_ingested(platform, source_id)

        _stage(url, ExtractionStage.EXTRACTING)
        metadata = await self._extract(url)
        if not source_id:
            if not metadata.source_id:
                raise ExtractionFailedError("Upstream metadata has no source id")
            source_id = metadata.source_id
            await self._ensure_not_ingested(platform, source_id)

        warnings: list[str] = []
        _stage(url, ExtractionStage.UPLOADING)
        video_url = None
        if metadata.media_url:
            video_url = await self._uploader.upload_from_url(
                metadata.media_url,
                f"{platform.value}_{source_id}.mp4",
                SHORT_VIDEO_FOLDER,
                headers=metadata.media_headers,
            )
        if video_url is None:
            warnings.append(WARN_VIDEO_NOT_REHOSTED)

        cover_url = None
        if metadata.thumbnail_url:
            cover_url = await self._uploader.rehost_thumbnail(metadata.thumbnail_url, platform.value, source_id)
            if cover_url == metadata.thumbnail_url and not self._uploader.is_hosted(cover_url):
                warnings.append(WARN_COVER_NOT_REHOSTED)

        transcript = None
        if generate_transcript:
            if video_url:
                _stage(url, ExtractionStage.TRANSCRIBING)
                transcript = await self._transcribe(video_url, warnings)
            else:
                warnings.append(WARN_TRANSCRIPT_SKIPPED)

        _stage(url, ExtractionStage.RESOLVING_CREATOR)
        resolution = await self._resolve_creator(platform, metadata.creator)
        slug = await self._suggest_slug(platform, metadata.title, source_id)

        _stage(url, ExtractionStage.PARTIAL_FAILURE if warnings else ExtractionStage.DONE)
        return FullExtraction(
            platform=platform,
            source_id=source_id,
            source_url=url,
            title=metadata.title,
            slug=slug,
            description=metadata.description,
            duration_seconds=metadata.duration_seconds,
            video_url=video_url,
            cover_url=cover_url,
            transcript=transcript,
            creator=metadata.creator,
            creator_resolution=resolution,
            published_at=metadata.published_at,
            warnings=warnings,
        )

    async def extract_long_form(self, url: str) -> LongFormExtraction:
        """YouTube import: metadata, captions, thumbnail rehost, slug and channel."""
        if not url or not url.strip():
            raise InvalidURLError("YouTube URL is required")
        youtube_id = parse_youtube_id(url.strip())
        if not youtube_id:
            raise InvalidURLError("Invalid YouTube URL")

        await self._ensure_not_ingested(Platform.YOUTUBE, youtube_id)

        _stage(url, ExtractionStage.EXTRACTING)
        metadata = await self._extract(youtube_watch_url(youtube_id))
        transcript = await self._extractor.fetch_captions(youtube_id)

        warnings: list[str] = []
        thumbnail = metadata.thumbnail_url
        if thumbnail:
            _stage(url, ExtractionStage.REHOSTING_THUMBNAIL)
            thumbnail = await self._uploader.rehost_youtube_thumbnail(thumbnail, youtube_id)
            if thumbnail == metadata.thumbnail_url and not self._uploader.is_hosted(thumbnail):
                warnings.append(WARN_COVER_NOT_REHOSTED)

        _stage(url, ExtractionStage.RESOLVING_CREATOR)
        resolution = await self._resolve_creator(Platform.YOUTUBE, metadata.creator)
        slug = await self._suggest_slug(Platform.YOUTUBE, metadata.title, youtube_id, LONG_FORM_SLUG_MAX_LENGTH)

        _stage(url, ExtractionStage.DONE)
        return LongFormExtraction(
            youtube_id=youtube_id,
            title=metadata.title,
            slug=slug,
            description=metadata.description,
            duration_seconds=metadata.duration_seconds,
            thumbnail_url=thumbnail,
            published_at=metadata.published_at,
            view_count=metadata.view_count,
            transcript=transcript,
            creator_resolution=resolution,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _extract(self, url: str, quick: bool = False) -> ExtractedMetadata:
        try:
            if quick:
                return await self._extractor.quick_extract_metadata(url)
            return await self._extractor.extract_metadata(url)
        except ServiceError:
            _stage(url, ExtractionStage.FAILED)
            raise

    async def _ensure_not_ingested(self, platform: Platform, source_id: str) -> None:
        existing = await run_in_threadpool(self._repo.find_video_by_source, platform, source_id)
        if existing is not None:
            logger.info(
                "Source already ingested: platform=%s, source_id=%s, id=%s",
                platform.value,
                source_id,
                existing.id,
            )
            raise AlreadyIngestedError(existing)

    async def _transcribe(self, video_url: str, warnings: list[str]) -> Optional[str]:
        if self._transcriber is None:
            return None
        try:
            transcript = await self._transcriber.transcribe_from_url(video_url)
        except Exception as error:  # noqa: BLE001 - a transcript is optional
            logger.error("Failed to generate transcript for %s: %s", video_url, error)
            warnings.append(WARN_TRANSCRIPT_FAILED)
            return None
        return transcript.strip() or None

    async def _resolve_creator(
        self,
        platform: Platform,
        creator: Optional[CreatorInfo],
    ) -> Optional[CreatorResolution]:
        if creator is None or not creator.handle:
            return None

        existing = await run_in_threadpool(self._repo.find_creator, platform, creator.handle)
        if existing is not None:
            return existing

        return CreatorCandidate(
            platform=platform,
            handle=creator.handle,
            display_name=creator.display_name,
            avatar_url=creator.avatar_url,
            profile_url=profile_url_for(platform, creator.handle),
        )

    async def _suggest_slug(
        self,
        platform: Platform,
        title: str,
        source_id: str,
        max_length: Optional[int] = None,
    ) -> str:
        base = normalize_slug(title, max_length) or normalize_slug(f"{platform.value} {source_id}")
        exists = partial(self._repo.slug_exists, video_table_for(platform))
        return await run_in_threadpool(ensure_unique_slug, base, exists)


def _validate(url: str) -> Platform:
    """Short-form URLs only; YouTube goes through ``extract_long_form``."""
    if not url or not url.strip():
        raise InvalidURLError("URL is required")

    platform = detect_platform(url)
    if platform is None:
        raise UnsupportedPlatformError(f"Unsupported platform for URL: {url}")
    if not is_short_form(platform):
        raise UnsupportedPlatformError("Only instagram and tiktok URLs are supported")
    return platform


def _stage(url: str, stage: ExtractionStage) -> None:
    logger.info("extract[%s] %s", stage.value, url)
