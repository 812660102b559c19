from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from mediaflow.app.domain.errors import DuplicateRecordError, RepositoryError
from mediaflow.app.domain.models import EngagementMetrics, LongFormVideoRef, Platform, ShortVideoRef
from mediaflow.app.infra.db.supabase_media_repo import SupabaseMediaRepository, _row_to_entry


def _client(data: list[dict] | None = None) -> tuple[MagicMock, MagicMock]:
    query = MagicMock()
    for method in ("select", "eq", "in_", "is_", "or_", "order", "limit", "update", "insert"):
        getattr(query, method).return_value = query
    query.not_ = query
    query.execute.return_value = MagicMock(data=data or [])
    client = MagicMock()
    client.table.return_value = query
    return client, query


class TestRowToEntry:
    def test_short_video_entry(self) -> None:
        entry = _row_to_entry({
            "id": "e-1",
            "short_video_id": "sv-1",
            "youtube_video_id": None,
            "short_video": {"source_url": "https://www.tiktok.com/@a/video/1", "platform": "tiktok"},
            "cached_engagement": {"views": 10, "likes": 2, "fetched_at": "2024-01-01T00:00:00Z"},
            "metrics_updated_at": "2024-01-01T00:00:00Z",
            "display_order": 3,
        })

        assert entry.source_ref == ShortVideoRef(
            video_id="sv-1", platform=Platform.TIKTOK, source_url="https://www.tiktok.com/@a/video/1"
        )
        assert entry.cached_engagement is not None
        assert entry.cached_engagement.views == 10
        assert entry.metrics_updated_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert entry.display_order == 3

    def test_youtube_entry(self) -> None:
        entry = _row_to_entry({
            "id": "e-2",
            "youtube_video_id": "yv-1",
            "youtube_video": {"youtube_id": "dQw4w9WgXcQ"},
        })
        assert entry.source_ref == LongFormVideoRef(video_id="yv-1", youtube_id="dQw4w9WgXcQ")
        assert entry.cached_engagement is None

    def test_both_references_is_unresolvable(self) -> None:
        entry = _row_to_entry({"id": "e-3", "short_video_id": "sv-1", "youtube_video_id": "yv-1"})
        assert entry.source_ref is None

    def test_no_reference_is_unresolvable(self) -> None:
        assert _row_to_entry({"id": "e-4"}).source_ref is None


class TestSupabaseMediaRepository:
    def test_find_short_video(self) -> None:
        client, query = _client([{"id": "sv-1", "name": "Rice", "slug": "rice"}])
        repo = SupabaseMediaRepository(client)

        existing = repo.find_video_by_source(Platform.TIKTOK, "123")

        assert existing is not None
        assert existing.slug == "rice"
        client.table.assert_called_with("short_videos")
        query.eq.assert_any_call("platform", "tiktok")
        query.eq.assert_any_call("source_id", "123")

    def test_find_youtube_video(self) -> None:
        client, query = _client([])
        repo = SupabaseMediaRepository(client)

        assert repo.find_video_by_source(Platform.YOUTUBE, "dQw4w9WgXcQ") is None
        client.table.assert_called_with("youtube_videos")
        query.eq.assert_any_call("youtube_id", "dQw4w9WgXcQ")

    def test_lookup_errors_become_repository_errors(self) -> None:
        client, query = _client()
        query.execute.side_effect = APIError({"message": "boom", "code": "500"})

        with pytest.raises(RepositoryError):
            SupabaseMediaRepository(client).slug_exists("short_videos", "rice")

    def test_connection_failure_becomes_repository_error(self) -> None:
        client, query = _client()
        query.execute.side_effect = httpx.ConnectError("connection refused")
        repo = SupabaseMediaRepository(client)

        with pytest.raises(RepositoryError):
            repo.list_leaderboard_entries()
        with pytest.raises(RepositoryError):
            repo.find_video_by_source(Platform.TIKTOK, "123")
        with pytest.raises(RepositoryError):
            repo.insert_creator(Platform.TIKTOK, "chef", "Chef", "chef")
        with pytest.raises(RepositoryError):
            repo.update_entry_metrics("e-1", EngagementMetrics(views=1), datetime.now(timezone.utc))

    def test_insert_creator_unique_violation(self) -> None:
        client, query = _client()
        query.execute.side_effect = APIError({"message": "duplicate key value", "code": "23505"})

        with pytest.raises(DuplicateRecordError):
            SupabaseMediaRepository(client).insert_creator(Platform.TIKTOK, "chef", "Chef", "chef")

    def test_insert_youtube_creator(self) -> None:
        client, query = _client([{"id": "vc-1", "name": "Kitchen"}])

        creator = SupabaseMediaRepository(client).insert_creator(
            Platform.YOUTUBE, "UC1", "Kitchen", "kitchen", profile_url="https://www.youtube.com/channel/UC1"
        )

        assert creator.id == "vc-1"
        client.table.assert_called_with("video_creators")
        inserted = query.insert.call_args[0][0]
        assert inserted["channel_id"] == "UC1"

    def test_list_entries_filters_ids(self) -> None:
        client, query = _client([{"id": "e-1"}])

        entries = SupabaseMediaRepository(client).list_leaderboard_entries(["e-1"])

        assert [e.id for e in entries] == ["e-1"]
        query.eq.assert_called_with("is_active", True)
        query.in_.assert_called_once_with("id", ["e-1"])

    def test_update_entry_metrics(self) -> None:
        client, query = _client()
        metrics = EngagementMetrics(views=5)
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        SupabaseMediaRepository(client).update_entry_metrics("e-1", metrics, when)

        payload = query.update.call_args[0][0]
        assert payload["cached_engagement"]["views"] == 5
        assert payload["metrics_updated_at"] == "2024-05-01T12:00:00+00:00"
        query.eq.assert_called_with("id", "e-1")

    def test_list_short_videos_for_backfill(self) -> None:
        client, query = _client([
            {"id": "sv-1", "name": "Rice", "source_url": "https://www.tiktok.com/@a/video/1", "platform": "tiktok"},
            {"id": "sv-2", "name": "Broken", "source_url": None, "platform": "tiktok"},
        ])

        videos = SupabaseMediaRepository(client).list_short_videos_for_backfill(5, missing="transcript")

        assert [v.id for v in videos] == ["sv-1"]
        assert videos[0].platform is Platform.TIKTOK
        query.is_.assert_called_once_with("transcript", "null")
        query.limit.assert_called_once_with(5)

    def test_backfill_rejects_unknown_column(self) -> None:
        client, _ = _client()
        with pytest.raises(ValueError):
            SupabaseMediaRepository(client).list_short_videos_for_backfill(5, missing="name")

    def test_update_short_video_media_sends_only_changes(self) -> None:
        client, query = _client()

        SupabaseMediaRepository(client).update_short_video_media("sv-1", transcript="hello")

        payload = query.update.call_args[0][0]
        assert payload["transcript"] == "hello"
        assert "video_url" not in payload
        assert "updated_at" in payload
        query.eq.assert_called_with("id", "sv-1")

    def test_update_short_video_media_without_changes(self) -> None:
        client, query = _client()

        SupabaseMediaRepository(client).update_short_video_media("sv-1")

        query.update.assert_not_called()

    def test_list_creator_images(self) -> None:
        client, query = _client([{"id": "vc-1", "name": "Kitchen", "image_url": "https://yt3.ggpht.com/a.jpg"}])

        images = SupabaseMediaRepository(client).list_creator_images()

        assert images[0].url == "https://yt3.ggpht.com/a.jpg"
        client.table.assert_called_with("video_creators")
        query.is_.assert_called_once_with("image_url", "null")
        query.limit.assert_not_called()

    def test_youtube_thumbnail_update_failure(self) -> None:
        client, query = _client()
        query.execute.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(RepositoryError):
            SupabaseMediaRepository(client).update_youtube_thumbnail("yv-1", "https://media.example.com/x.jpg")
