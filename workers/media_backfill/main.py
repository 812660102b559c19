from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from mediaflow.app.domain.errors import ConfigurationError, RepositoryError
from mediaflow.app.domain.models import BackfillSummary
from mediaflow.app.services.media_backfill import MediaBackfill
from workers.media_backfill.config import BackfillConfig, get_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("media-backfill")

JOB_SHORT_VIDEOS = "short-videos"
JOB_YOUTUBE_THUMBNAILS = "youtube-thumbnails"
JOB_CREATOR_IMAGES = "creator-images"
JOBS = (JOB_SHORT_VIDEOS, JOB_YOUTUBE_THUMBNAILS, JOB_CREATOR_IMAGES)

DEFAULT_SHORT_VIDEO_LIMIT = 10


class MediaBackfillWorker:
    def __init__(self, config: BackfillConfig, backfill: MediaBackfill):
        self.config = config
        self.backfill = backfill

    def run(self, args: argparse.Namespace) -> BackfillSummary | None:
        errors = self.config.validate()
        if errors:
            raise ConfigurationError(errors)

        logger.info(
            "Starting %s backfill: limit=%s, delay=%ss, skip_media=%s, dry_run=%s",
            args.job,
            args.limit or "all",
            args.delay,
            args.skip_media,
            args.dry_run,
        )
        try:
            summary = asyncio.run(self._dispatch(args))
        except RepositoryError as error:
            logger.error("Could not load rows to backfill: %s", error)
            return None

        logger.info("%s backfill finished: %s", args.job, summary.message)
        return summary

    async def _dispatch(self, args: argparse.Namespace) -> BackfillSummary:
        if args.job == JOB_SHORT_VIDEOS:
            return await self.backfill.process_short_videos(
                limit=args.limit or DEFAULT_SHORT_VIDEO_LIMIT,
                delay_seconds=args.delay,
                skip_media=args.skip_media,
                dry_run=args.dry_run,
            )
        if args.job == JOB_YOUTUBE_THUMBNAILS:
            return await self.backfill.sync_youtube_thumbnails(args.limit, args.delay, args.dry_run)
        return await self.backfill.sync_creator_images(args.limit, args.delay, args.dry_run)


def create_default_dependencies(config: BackfillConfig, transcribe: bool = True) -> MediaBackfill:
    from supabase import create_client

    from mediaflow.app.infra.db.supabase_media_repo import SupabaseMediaRepository
    from mediaflow.app.infra.storage.r2_provider import R2StorageProvider
    from mediaflow.app.services.transcription_pipeline import TranscriptionPipeline
    from mediaflow.services.assets import AssetUploader
    from mediaflow.services.fetcher import MetadataExtractor
    from mediaflow.services.transcribe import Transcriber

    client = create_client(config.supabase_url, config.supabase_key)
    storage = R2StorageProvider(
        account_id=config.r2_account_id,
        access_key_id=config.r2_access_key_id,
        secret_access_key=config.r2_secret_access_key,
        bucket_name=config.r2_bucket_name,
        public_url=config.r2_public_url,
    )
    transcriber = None
    if transcribe:
        transcriber = Transcriber(
            engine=TranscriptionPipeline(language=config.transcription_language),
            scratch_dir=Path(config.scratch_dir) if config.scratch_dir else None,
        )
    return MediaBackfill(
        repository=SupabaseMediaRepository(client),
        uploader=AssetUploader(storage, timeout=config.download_timeout_seconds),
        extractor=MetadataExtractor(),
        transcriber=transcriber,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rehost and transcribe media stored before ingestion did it.")
    parser.add_argument("job", choices=JOBS, help="which backfill to run")
    parser.add_argument("--limit", type=int, default=0, help="rows to process (0 = job default)")
    parser.add_argument("--delay", type=float, default=0.0, help="seconds to wait between rows")
    parser.add_argument("--skip-media", action="store_true", help="short videos: only fill missing transcripts")
    parser.add_argument("--skip-transcript", action="store_true", help="short videos: rehost media only")
    parser.add_argument("--dry-run", action="store_true", help="log what would change without writing")
    args = parser.parse_args(argv)
    if args.limit < 0:
        parser.error("--limit cannot be negative")
    if args.delay < 0:
        parser.error("--delay cannot be negative")
    return args


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    config = get_config()

    errors = config.validate()
    if errors:
        raise ConfigurationError(errors)

    backfill = create_default_dependencies(config, transcribe=not args.skip_transcript)
    MediaBackfillWorker(config=config, backfill=backfill).run(args)


if __name__ == "__main__":
    main()
