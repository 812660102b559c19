from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from mediaflow.app.domain.errors import DuplicateRecordError, RepositoryError
from mediaflow.app.domain.models import (
    EngagementMetrics,
    ExistingCreator,
    ExistingVideo,
    LeaderboardEntry,
    LongFormVideoRef,
    Platform,
    ShortVideoRecord,
    ShortVideoRef,
    SourceRef,
    StoredImage,
)
from mediaflow.app.infra.db.base import (
    LEADERBOARD_TABLE,
    SHORT_VIDEOS_TABLE,
    VIDEO_CREATORS_TABLE,
    YOUTUBE_VIDEOS_TABLE,
    MediaRepository,
    creator_table_for,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
BACKFILL_COLUMNS = {"video_url", "transcript"}
# postgrest talks to the store over httpx
NETWORK_ERRORS = (httpx.HTTPError, ConnectionError, TimeoutError)
LEADERBOARD_SELECT = (
    "id, short_video_id, youtube_video_id, cached_engagement, metrics_updated_at, "
    "is_active, display_order, "
    "short_video:short_videos(source_url, platform), "
    "youtube_video:youtube_videos(youtube_id, youtube_url)"
)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    return int(value) if value else default


def _optional_int(value: object) -> int | None:
    return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None


def _row_to_metrics(value: Any) -> EngagementMetrics | None:
    if not isinstance(value, dict):
        return None
    return EngagementMetrics(
        views=_optional_int(value.get("views")),
        likes=_optional_int(value.get("likes")),
        comments=_optional_int(value.get("comments")),
        shares=_optional_int(value.get("shares")),
        fetched_at=value.get("fetched_at"),
    )


def _row_to_source_ref(row: dict[str, Any]) -> SourceRef | None:
    short_id = row.get("short_video_id")
    youtube_id = row.get("youtube_video_id")
    if bool(short_id) == bool(youtube_id):
        return None

    if short_id:
        joined = row.get("short_video") or {}
        source_url = joined.get("source_url")
        try:
            platform = Platform(joined.get("platform") or Platform.INSTAGRAM.value)
        except ValueError:
            return None
        if not source_url:
            return None
        return ShortVideoRef(video_id=str(short_id), platform=platform, source_url=source_url)

    joined = row.get("youtube_video") or {}
    yt_id = joined.get("youtube_id")
    if not yt_id:
        return None
    return LongFormVideoRef(video_id=str(youtube_id), youtube_id=yt_id)


def _row_to_entry(row: dict[str, Any]) -> LeaderboardEntry:
    return LeaderboardEntry(
        id=str(row["id"]),
        source_ref=_row_to_source_ref(row),
        cached_engagement=_row_to_metrics(row.get("cached_engagement")),
        metrics_updated_at=_parse_datetime(row.get("metrics_updated_at")),
        is_active=bool(row.get("is_active", True)),
        display_order=_safe_int(row.get("display_order")),
    )


def _row_to_short_video(row: dict[str, Any]) -> ShortVideoRecord | None:
    try:
        platform = Platform(row.get("platform") or "")
    except ValueError:
        return None
    if not row.get("source_url"):
        return None
    return ShortVideoRecord(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        source_url=row["source_url"],
        platform=platform,
        source_id=row.get("source_id"),
        video_url=row.get("video_url"),
        transcript=row.get("transcript"),
    )


def _create_supabase_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseMediaRepository(MediaRepository):
    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()
        logger.info("SupabaseMediaRepository initialized")

    def _first(self, query, operation: str) -> dict[str, Any] | None:
        try:
            result = query.limit(1).execute()
        except APIError as error:
            logger.error("Supabase error during %s: %s", operation, error)
            raise RepositoryError(operation, str(error)) from error
        except NETWORK_ERRORS as error:
            logger.error("Network error during %s: %s", operation, error)
            raise RepositoryError(operation, str(error)) from error
        return result.data[0] if result.data else None

    def find_video_by_source(self, platform: Platform, source_id: str) -> Optional[ExistingVideo]:
        if platform is Platform.YOUTUBE:
            query = (
                self._client.table(YOUTUBE_VIDEOS_TABLE)
                .select("id, name, slug")
                .eq("youtube_id", source_id)
            )
        else:
            query = (
                self._client.table(SHORT_VIDEOS_TABLE)
                .select("id, name, slug")
                .eq("platform", platform.value)
                .eq("source_id", source_id)
            )

        row = self._first(query, "find_video_by_source")
        if not row:
            return None
        return ExistingVideo(id=str(row["id"]), name=row.get("name"), slug=row.get("slug"))

    def slug_exists(self, table: str, slug: str) -> bool:
        row = self._first(self._client.table(table).select("id").eq("slug", slug), "slug_exists")
        return row is not None

    def find_creator(self, platform: Platform, handle: str) -> Optional[ExistingCreator]:
        table = creator_table_for(platform)
        query = self._client.table(table).select("id, name")
        if platform is Platform.YOUTUBE:
            query = query.eq("channel_id", handle)
        else:
            query = query.eq("platform", platform.value).eq("handle", handle)

        row = self._first(query, "find_creator")
        if not row:
            return None
        return ExistingCreator(id=str(row["id"]), name=str(row.get("name") or handle))

    def insert_creator(
        self,
        platform: Platform,
        handle: str,
        name: str,
        slug: str,
        avatar_url: Optional[str] = None,
        profile_url: Optional[str] = None,
    ) -> ExistingCreator:
        table = creator_table_for(platform)
        if platform is Platform.YOUTUBE:
            data = {
                "channel_id": handle,
                "name": name,
                "slug": slug,
                "channel_url": profile_url,
                "image_url": avatar_url,
            }
        else:
            data = {
                "platform": platform.value,
                "handle": handle,
                "name": name,
                "slug": slug,
                "avatar_url": avatar_url,
                "profile_url": profile_url,
            }

        try:
            result = self._client.table(table).insert(data).execute()
        except APIError as error:
            if error.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(table, error.message or "duplicate key") from error
            raise RepositoryError("insert_creator", str(error)) from error
        except NETWORK_ERRORS as error:
            raise RepositoryError("insert_creator", str(error)) from error

        if not result.data:
            raise RepositoryError("insert_creator", "no row returned")

        row = result.data[0]
        logger.info("Created creator: id=%s, platform=%s, handle=%s", row["id"], platform.value, handle)
        return ExistingCreator(id=str(row["id"]), name=str(row.get("name") or name))

    def list_leaderboard_entries(
        self,
        entry_ids: Optional[Sequence[str]] = None,
    ) -> list[LeaderboardEntry]:
        query = self._client.table(LEADERBOARD_TABLE).select(LEADERBOARD_SELECT).eq("is_active", True)
        if entry_ids:
            query = query.in_("id", list(entry_ids))

        try:
            result = query.execute()
        except (APIError, *NETWORK_ERRORS) as error:
            logger.error("Error fetching leaderboard entries: %s", error)
            raise RepositoryError("list_leaderboard_entries", str(error)) from error

        return [_row_to_entry(row) for row in result.data or []]

    def update_entry_metrics(
        self,
        entry_id: str,
        metrics: EngagementMetrics,
        updated_at: datetime,
    ) -> None:
        timestamp = updated_at.astimezone(timezone.utc).isoformat()
        try:
            (
                self._client.table(LEADERBOARD_TABLE)
                .update({
                    "cached_engagement": metrics.to_dict(),
                    "metrics_updated_at": timestamp,
                    "updated_at": timestamp,
                })
                .eq("id", entry_id)
                .execute()
            )
        except (APIError, *NETWORK_ERRORS) as error:
            raise RepositoryError("update_entry_metrics", str(error)) from error

    def _execute(self, query, operation: str):
        try:
            return query.execute()
        except (APIError, *NETWORK_ERRORS) as error:
            logger.error("Supabase error during %s: %s", operation, error)
            raise RepositoryError(operation, str(error)) from error

    def list_short_videos_for_backfill(self, limit: int, missing: str = "video_url") -> list[ShortVideoRecord]:
        if missing not in BACKFILL_COLUMNS:
            raise ValueError(f"Unsupported backfill column: {missing}")
        query = (
            self._client.table(SHORT_VIDEOS_TABLE)
            .select("id, name, source_url, source_id, platform, video_url, transcript")
            .eq("is_active", True)
            .is_(missing, "null")
            .order("created_at")
            .limit(limit)
        )
        result = self._execute(query, "list_short_videos_for_backfill")
        records = (_row_to_short_video(row) for row in result.data or [])
        return [r for r in records if r is not None]

    def update_short_video_media(
        self,
        video_id: str,
        video_url: Optional[str] = None,
        cover_url: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> None:
        changes = {
            key: value
            for key, value in (("video_url", video_url), ("cover_url", cover_url), ("transcript", transcript))
            if value is not None
        }
        if not changes:
            return
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        query = self._client.table(SHORT_VIDEOS_TABLE).update(changes).eq("id", video_id)
        self._execute(query, "update_short_video_media")

    def list_youtube_thumbnails(self, limit: Optional[int] = None) -> list[StoredImage]:
        query = (
            self._client.table(YOUTUBE_VIDEOS_TABLE)
            .select("id, name, slug, thumbnail_url")
            .or_("thumbnail_url.like.%youtube.com%,thumbnail_url.like.%ytimg.com%")
            .order("name")
        )
        if limit:
            query = query.limit(limit)
        result = self._execute(query, "list_youtube_thumbnails")
        return [
            StoredImage(id=str(row["id"]), name=row.get("name"), url=row.get("thumbnail_url"), slug=row.get("slug"))
            for row in result.data or []
        ]

    def update_youtube_thumbnail(self, video_id: str, thumbnail_url: str) -> None:
        query = (
            self._client.table(YOUTUBE_VIDEOS_TABLE)
            .update({"thumbnail_url": thumbnail_url, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", video_id)
        )
        self._execute(query, "update_youtube_thumbnail")

    def list_creator_images(self, limit: Optional[int] = None) -> list[StoredImage]:
        query = (
            self._client.table(VIDEO_CREATORS_TABLE)
            .select("id, name, image_url")
            .not_.is_("image_url", "null")
            .order("name")
        )
        if limit:
            query = query.limit(limit)
        result = self._execute(query, "list_creator_images")
        return [
            StoredImage(id=str(row["id"]), name=row.get("name"), url=row.get("image_url"))
            for row in result.data or []
        ]

    def update_creator_image(self, creator_id: str, image_url: str) -> None:
        query = self._client.table(VIDEO_CREATORS_TABLE).update({"image_url": image_url}).eq("id", creator_id)
        self._execute(query, "update_creator_image")
