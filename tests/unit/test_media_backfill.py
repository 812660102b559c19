from __future__ import annotations

import asyncio
from typing import Optional

from mediaflow.app.domain.errors import RepositoryError
from mediaflow.app.domain.models import ExtractedMetadata, Platform, ShortVideoRecord, StoredImage
from mediaflow.app.services.media_backfill import (
    MediaBackfill,
    creator_image_file_name,
    youtube_thumbnail_file_name,
)
from mediaflow.services.errors import ExtractionFailedError
from tests.unit.stubs import MediaRepositoryStub

HOSTED = "https://media.example.com"


class ExtractorStub:
    def __init__(self, media_url: Optional[str] = "https://scontent.cdninstagram.com/v.mp4") -> None:
        self.media_url = media_url
        self.calls: list[str] = []
        self.failing_urls: set[str] = set()

    async def extract_metadata(self, url: str) -> ExtractedMetadata:
        self.calls.append(url)
        if url in self.failing_urls:
            raise ExtractionFailedError("HTTP Error 404")
        return ExtractedMetadata(
            platform=Platform.INSTAGRAM,
            source_id="Cabc123",
            title="Reel",
            thumbnail_url="https://scontent.cdninstagram.com/t.jpg",
            media_url=self.media_url,
            media_headers={"Referer": "https://www.instagram.com/"},
        )


class UploaderStub:
    def __init__(self, failing_urls: Optional[set[str]] = None) -> None:
        self.failing_urls = failing_urls or set()
        self.uploads: list[tuple[str, str, str, Optional[dict]]] = []

    def is_hosted(self, url: str) -> bool:
        return url.startswith(HOSTED)

    async def upload_from_url(
        self, source_url: str, file_name: str, folder: str, headers: Optional[dict] = None
    ) -> Optional[str]:
        self.uploads.append((source_url, file_name, folder, headers))
        if source_url in self.failing_urls:
            return None
        return f"{HOSTED}{folder}/{file_name}"


class TranscriberStub:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def transcribe_from_url(self, video_url: str) -> str:
        self.calls.append(video_url)
        if self.error:
            raise self.error
        return " spoken words "


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _video(video_id: str, **overrides) -> ShortVideoRecord:
    values = dict(
        id=video_id,
        name=f"Video {video_id}",
        source_url=f"https://www.instagram.com/reel/{video_id}/",
        platform=Platform.INSTAGRAM,
        source_id=video_id,
    )
    values.update(overrides)
    return ShortVideoRecord(**values)


def _backfill(
    repo: MediaRepositoryStub,
    uploader: Optional[UploaderStub] = None,
    extractor: Optional[ExtractorStub] = None,
    transcriber: Optional[TranscriberStub] = None,
    sleep: Optional[SleepRecorder] = None,
) -> MediaBackfill:
    return MediaBackfill(
        repository=repo,
        uploader=uploader or UploaderStub(),
        extractor=extractor or ExtractorStub(),
        transcriber=transcriber,
        sleep=sleep or SleepRecorder(),
    )


class TestProcessShortVideos:
    def test_rehosts_media_and_transcribes(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1")]
        uploader = UploaderStub()
        transcriber = TranscriberStub()

        summary = asyncio.run(_backfill(repo, uploader, transcriber=transcriber).process_short_videos())

        assert (summary.processed, summary.succeeded, summary.failed) == (1, 1, 0)
        video_url = f"{HOSTED}/short-videos/videos/instagram_v1.mp4"
        assert repo.media_updates == [
            (
                "v1",
                {
                    "video_url": video_url,
                    "cover_url": f"{HOSTED}/short-videos/covers/instagram_v1.jpg",
                    "transcript": "spoken words",
                },
            )
        ]
        assert uploader.uploads[0][3] == {"Referer": "https://www.instagram.com/"}
        assert transcriber.calls == [video_url]

    def test_skips_image_posts_and_honours_limit(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [
            _video("img", source_url="https://www.instagram.com/p/X/?img_index=2"),
            _video("v1"),
            _video("v2"),
            _video("v3"),
        ]
        extractor = ExtractorStub()

        summary = asyncio.run(_backfill(repo, extractor=extractor).process_short_videos(limit=2))

        assert summary.processed == 2
        assert [u[0] for u in repo.media_updates] == ["v1", "v2"]
        assert all("img_index" not in url for url in extractor.calls)

    def test_failure_is_isolated(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1"), _video("v2")]
        extractor = ExtractorStub()
        extractor.failing_urls = {"https://www.instagram.com/reel/v1/"}

        summary = asyncio.run(_backfill(repo, extractor=extractor).process_short_videos())

        assert (summary.succeeded, summary.failed) == (1, 1)
        assert [u[0] for u in repo.media_updates] == ["v2"]

    def test_failed_video_upload_fails_the_row(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1")]
        uploader = UploaderStub(failing_urls={"https://scontent.cdninstagram.com/v.mp4"})

        summary = asyncio.run(_backfill(repo, uploader).process_short_videos())

        assert summary.failed == 1
        assert repo.media_updates == []

    def test_transcription_failure_keeps_media(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1")]

        summary = asyncio.run(
            _backfill(repo, transcriber=TranscriberStub(error=RuntimeError("decoder"))).process_short_videos()
        )

        assert summary.succeeded == 1
        assert "transcript" not in repo.media_updates[0][1]
        assert "video_url" in repo.media_updates[0][1]

    def test_skip_media_only_transcribes_rehosted_videos(self) -> None:
        repo = MediaRepositoryStub()
        hosted = f"{HOSTED}/short-videos/videos/instagram_v1.mp4"
        repo.short_videos = [_video("v1", video_url=hosted)]
        extractor = ExtractorStub()
        transcriber = TranscriberStub()

        summary = asyncio.run(
            _backfill(repo, extractor=extractor, transcriber=transcriber).process_short_videos(skip_media=True)
        )

        assert summary.succeeded == 1
        assert extractor.calls == []
        assert repo.media_updates == [("v1", {"transcript": "spoken words"})]

    def test_dry_run_writes_nothing(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1")]
        uploader = UploaderStub()

        summary = asyncio.run(_backfill(repo, uploader).process_short_videos(dry_run=True))

        assert summary.succeeded == 1
        assert uploader.uploads == []
        assert repo.media_updates == []

    def test_waits_between_rows(self) -> None:
        repo = MediaRepositoryStub()
        repo.short_videos = [_video("v1"), _video("v2"), _video("v3")]
        sleep = SleepRecorder()

        asyncio.run(_backfill(repo, sleep=sleep).process_short_videos(delay_seconds=2.5))

        assert sleep.delays == [2.5, 2.5]


class TestImageSync:
    def test_youtube_thumbnails(self) -> None:
        repo = MediaRepositoryStub()
        repo.youtube_thumbnails = [
            StoredImage(id="y1", name="A", url="https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"),
            StoredImage(id="y2", name="B", url=f"{HOSTED}/youtube-thumbnails/x.jpg"),
            StoredImage(id="y3", name="C", url=None),
        ]

        summary = asyncio.run(_backfill(repo).sync_youtube_thumbnails())

        assert (summary.succeeded, summary.skipped, summary.failed) == (1, 2, 0)
        assert repo.image_updates == [("y1", f"{HOSTED}/youtube-thumbnails/dQw4w9WgXcQ.jpg")]

    def test_creator_image_upload_failure(self) -> None:
        repo = MediaRepositoryStub()
        repo.creator_images = [StoredImage(id="c1", name="Chef", url="https://yt3.ggpht.com/a.jpg")]
        uploader = UploaderStub(failing_urls={"https://yt3.ggpht.com/a.jpg"})

        summary = asyncio.run(_backfill(repo, uploader).sync_creator_images())

        assert summary.failed == 1
        assert repo.image_updates == []

    def test_creator_images_dry_run(self) -> None:
        repo = MediaRepositoryStub()
        repo.creator_images = [StoredImage(id="c1", name="Chef", url="https://yt3.ggpht.com/a.jpg")]
        uploader = UploaderStub()

        summary = asyncio.run(_backfill(repo, uploader).sync_creator_images(dry_run=True))

        assert summary.succeeded == 1
        assert uploader.uploads == []
        assert repo.image_updates == []

    def test_save_failure_is_counted(self) -> None:
        class FailingRepo(MediaRepositoryStub):
            def update_creator_image(self, creator_id: str, image_url: str) -> None:
                raise RepositoryError("update_creator_image", "down")

        repo = FailingRepo()
        repo.creator_images = [StoredImage(id="c1", name="Chef", url="https://yt3.ggpht.com/a.jpg")]

        summary = asyncio.run(_backfill(repo).sync_creator_images())

        assert summary.failed == 1


class TestFileNames:
    def test_youtube_thumbnail_from_url(self) -> None:
        image = StoredImage(id="y1", name=None, url="https://img.youtube.com/vi/abc123/hqdefault.jpg")
        assert youtube_thumbnail_file_name(image) == "abc123.jpg"

    def test_youtube_thumbnail_falls_back_to_slug(self) -> None:
        image = StoredImage(id="y1", name=None, url="https://youtube.com/other.jpg", slug="my-video")
        assert youtube_thumbnail_file_name(image) == "my-video.jpg"

    def test_creator_image(self) -> None:
        image = StoredImage(id="0123456789abcdef", name="Chef Ana's Kitchen!", url="x")
        assert creator_image_file_name(image) == "chef_ana_s_kitchen_01234567.jpg"
