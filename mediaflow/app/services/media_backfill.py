# mediaflow/app/services/media_backfill.py
"""
Backfills for rows stored before their media was rehosted: short videos
imported without a video file or transcript, YouTube thumbnails still
served by YouTube, and long-form creator images on third-party hosts.

Rows are processed one at a time with an optional pause in between, so
upstream platforms are not hammered. A failing row is counted and the
batch moves on.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.errors import RepositoryError, StorageUploadError
from mediaflow.app.domain.models import BackfillSummary, ShortVideoRecord, StoredImage
from mediaflow.app.infra.db.base import MediaRepository
from mediaflow.app.services.extraction import Extractor, TranscriptionAdapter
from mediaflow.services.assets import (
    SHORT_VIDEO_COVER_FOLDER,
    SHORT_VIDEO_FOLDER,
    VIDEO_CREATOR_FOLDER,
    YOUTUBE_THUMBNAIL_FOLDER,
    AssetUploader,
)
from mediaflow.services.errors import ExtractionFailedError, TranscriptionServiceError

logger = logging.getLogger(__name__)

_YOUTUBE_THUMB_ID_RE = re.compile(r"/vi/([^/]+)/")


def youtube_thumbnail_file_name(image: StoredImage) -> str:
    match = _YOUTUBE_THUMB_ID_RE.search(image.url or "")
    stem = match.group(1) if match else (image.slug or image.id)
    return f"{stem}.jpg"


def creator_image_file_name(image: StoredImage) -> str:
    clean = re.sub(r"[^a-z0-9]", "_", (image.name or "creator").lower())
    clean = re.sub(r"_+", "_", clean).strip("_")[:50]
    return f"{clean}_{image.id[:8]}.jpg"


class MediaBackfill:
    def __init__(
        self,
        repository: MediaRepository,
        uploader: AssetUploader,
        extractor: Optional[Extractor] = None,
        transcriber: Optional[TranscriptionAdapter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._repo = repository
        self._uploader = uploader
        self._extractor = extractor
        self._transcriber = transcriber
        self._sleep = sleep

    async def process_short_videos(
        self,
        limit: int = 10,
        delay_seconds: float = 0.0,
        skip_media: bool = False,
        dry_run: bool = False,
    ) -> BackfillSummary:
        """
        Rehost video and cover, then transcribe, for short videos that
        lack them. ``skip_media`` only fills missing transcripts of videos
        that are already rehosted.
        """
        missing = "transcript" if skip_media else "video_url"
        # Fetch extra rows; carousel image posts are dropped below
        rows = await run_in_threadpool(self._repo.list_short_videos_for_backfill, limit * 2, missing)
        videos = [v for v in rows if not v.is_image_post][:limit]
        image_posts = sum(1 for v in rows if v.is_image_post)
        if image_posts:
            logger.info("Skipping %d image carousel posts", image_posts)

        summary = BackfillSummary()
        for index, video in enumerate(videos):
            summary.processed += 1
            logger.info("[%d/%d] %s (%s)", index + 1, len(videos), video.name[:50], video.source_url)
            try:
                changed = await self._process_short_video(video, skip_media, dry_run)
            except Exception as error:  # noqa: BLE001 - one video must not stop the batch
                logger.error("Failed to process short video %s: %s", video.id, error)
                summary.failed += 1
            else:
                if changed:
                    summary.succeeded += 1
                else:
                    summary.skipped += 1
            await self._pause(index, len(videos), delay_seconds)

        logger.info("Short video backfill: %s", summary.message)
        return summary

    async def sync_youtube_thumbnails(
        self,
        limit: Optional[int] = None,
        delay_seconds: float = 0.0,
        dry_run: bool = False,
    ) -> BackfillSummary:
        images = await run_in_threadpool(self._repo.list_youtube_thumbnails, limit)
        summary = await self._sync_images(
            images,
            youtube_thumbnail_file_name,
            YOUTUBE_THUMBNAIL_FOLDER,
            self._repo.update_youtube_thumbnail,
            delay_seconds,
            dry_run,
        )
        logger.info("YouTube thumbnail sync: %s", summary.message)
        return summary

    async def sync_creator_images(
        self,
        limit: Optional[int] = None,
        delay_seconds: float = 0.0,
        dry_run: bool = False,
    ) -> BackfillSummary:
        images = await run_in_threadpool(self._repo.list_creator_images, limit)
        summary = await self._sync_images(
            images,
            creator_image_file_name,
            VIDEO_CREATOR_FOLDER,
            self._repo.update_creator_image,
            delay_seconds,
            dry_run,
        )
        logger.info("Creator image sync: %s", summary.message)
        return summary

    async def _process_short_video(self, video: ShortVideoRecord, skip_media: bool, dry_run: bool) -> bool:
        needs_media = not skip_media and not video.video_url
        needs_transcript = self._transcriber is not None and not video.transcript
        if not needs_media and not (needs_transcript and video.video_url):
            return False

        if dry_run:
            logger.info(
                "[dry run] would update %s: media=%s, transcript=%s",
                video.id,
                needs_media,
                needs_transcript,
            )
            return True

        video_url = video.video_url
        cover_url = None
        if needs_media:
            video_url, cover_url = await self._rehost_media(video)

        transcript = None
        if needs_transcript and video_url:
            transcript = await self._transcribe(video_url)

        new_video_url = video_url if video_url != video.video_url else None
        if not (new_video_url or cover_url or transcript):
            raise TranscriptionServiceError(f"No transcript produced for {video_url}")

        await run_in_threadpool(
            self._repo.update_short_video_media,
            video.id,
            new_video_url,
            cover_url,
            transcript,
        )
        return True

    async def _rehost_media(self, video: ShortVideoRecord) -> tuple[str, Optional[str]]:
        if self._extractor is None:
            raise ExtractionFailedError("No extractor configured for media backfill")

        metadata = await self._extractor.extract_metadata(video.source_url)
        if not metadata.media_url:
            raise ExtractionFailedError(f"No downloadable media for {video.source_url}")

        source_id = video.source_id or metadata.source_id or video.id
        stem = f"{video.platform.value}_{source_id}"
        video_url = await self._uploader.upload_from_url(
            metadata.media_url,
            f"{stem}.mp4",
            SHORT_VIDEO_FOLDER,
            headers=metadata.media_headers,
        )
        if video_url is None:
            raise StorageUploadError(f"{SHORT_VIDEO_FOLDER}/{stem}.mp4", "download or upload failed")

        cover_url = None
        if metadata.thumbnail_url:
            cover_url = await self._uploader.upload_from_url(
                metadata.thumbnail_url,
                f"{stem}.jpg",
                SHORT_VIDEO_COVER_FOLDER,
            )
        return video_url, cover_url

    async def _transcribe(self, video_url: str) -> Optional[str]:
        try:
            text = await self._transcriber.transcribe_from_url(video_url)
        except Exception as error:  # noqa: BLE001 - the rehosted media is still worth saving
            logger.warning("Transcription failed for %s: %s", video_url, error)
            return None
        return text.strip() or None

    async def _sync_images(
        self,
        images: list[StoredImage],
        file_name_for: Callable[[StoredImage], str],
        folder: str,
        update: Callable[[str, str], None],
        delay_seconds: float,
        dry_run: bool,
    ) -> BackfillSummary:
        summary = BackfillSummary()
        for index, image in enumerate(images):
            summary.processed += 1
            if not image.url or self._uploader.is_hosted(image.url):
                summary.skipped += 1
                continue

            file_name = file_name_for(image)
            if dry_run:
                logger.info("[dry run] would upload %s to %s/%s", image.url, folder, file_name)
                summary.succeeded += 1
                continue

            new_url = await self._uploader.upload_from_url(image.url, file_name, folder)
            if new_url is None:
                summary.failed += 1
            else:
                try:
                    await run_in_threadpool(update, image.id, new_url)
                except RepositoryError as error:
                    logger.error("Failed to save %s for %s: %s", new_url, image.id, error)
                    summary.failed += 1
                else:
                    summary.succeeded += 1
            await self._pause(index, len(images), delay_seconds)
        return summary

    async def _pause(self, index: int, total: int, delay_seconds: float) -> None:
        if delay_seconds > 0 and index < total - 1:
            await self._sleep(delay_seconds)
