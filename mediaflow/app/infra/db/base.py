# mediaflow/app/infra/db/base.py
"""
Abstract base class for the media store.
Uniqueness of (platform, source_id), slugs and creator handles is owned by
the store's constraints; the lookups here are pre-checks only.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from mediaflow.app.domain.models import (
    EngagementMetrics,
    ExistingCreator,
    ExistingVideo,
    LeaderboardEntry,
    Platform,
    ShortVideoRecord,
    StoredImage,
)

SHORT_VIDEOS_TABLE = "short_videos"
YOUTUBE_VIDEOS_TABLE = "youtube_videos"
SHORT_VIDEO_CREATORS_TABLE = "short_video_creators"
VIDEO_CREATORS_TABLE = "video_creators"
LEADERBOARD_TABLE = "leaderboard_entries"


def video_table_for(platform: Platform) -> str:
    return YOUTUBE_VIDEOS_TABLE if platform is Platform.YOUTUBE else SHORT_VIDEOS_TABLE


def creator_table_for(platform: Platform) -> str:
    return VIDEO_CREATORS_TABLE if platform is Platform.YOUTUBE else SHORT_VIDEO_CREATORS_TABLE


class MediaRepository(ABC):
    """
    Abstract interface for the relational store behind the pipeline.

    Implementations:
    - SupabaseMediaRepository: Postgres via Supabase
    """

    @abstractmethod
    def find_video_by_source(self, platform: Platform, source_id: str) -> Optional[ExistingVideo]:
        """
        Look up an ingested video by its platform id.

        Args:
            platform: Source platform of the video
            source_id: Platform-specific id (YouTube video id, reel code, ...)

        Returns:
            The existing record's identity, or None
        """
        pass

    @abstractmethod
    def slug_exists(self, table: str, slug: str) -> bool:
        """
        Check whether ``slug`` is taken in ``table``.
        """
        pass

    @abstractmethod
    def find_creator(self, platform: Platform, handle: str) -> Optional[ExistingCreator]:
        """
        Look up a creator by platform handle (channel id for YouTube).
        """
        pass

    @abstractmethod
    def insert_creator(
        self,
        platform: Platform,
        handle: str,
        name: str,
        slug: str,
        avatar_url: Optional[str] = None,
        profile_url: Optional[str] = None,
    ) -> ExistingCreator:
        """
        Insert a creator row.

        Raises:
            DuplicateRecordError: If the handle or slug is already taken
        """
        pass

    @abstractmethod
    def list_leaderboard_entries(
        self,
        entry_ids: Optional[Sequence[str]] = None,
    ) -> list[LeaderboardEntry]:
        """
        Load active leaderboard entries, optionally restricted to ``entry_ids``.
        """
        pass

    @abstractmethod
    def update_entry_metrics(
        self,
        entry_id: str,
        metrics: EngagementMetrics,
        updated_at: datetime,
    ) -> None:
        """
        Persist fresh engagement numbers for a single entry.
        """
        pass

    @abstractmethod
    def list_short_videos_for_backfill(self, limit: int, missing: str = "video_url") -> list[ShortVideoRecord]:
        """
        Active short videos whose ``missing`` column is still empty, oldest first.

        Args:
            limit: Maximum number of rows to return
            missing: ``video_url`` (media never rehosted) or ``transcript``
        """
        pass

    @abstractmethod
    def update_short_video_media(
        self,
        video_id: str,
        video_url: Optional[str] = None,
        cover_url: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> None:
        """
        Write the given media columns; None values are left untouched.
        """
        pass

    @abstractmethod
    def list_youtube_thumbnails(self, limit: Optional[int] = None) -> list[StoredImage]:
        """
        YouTube videos whose thumbnail still points at youtube.com / ytimg.com.
        """
        pass

    @abstractmethod
    def update_youtube_thumbnail(self, video_id: str, thumbnail_url: str) -> None:
        pass

    @abstractmethod
    def list_creator_images(self, limit: Optional[int] = None) -> list[StoredImage]:
        """
        Long-form creators that have an image URL set.
        """
        pass

    @abstractmethod
    def update_creator_image(self, creator_id: str, image_url: str) -> None:
        pass
