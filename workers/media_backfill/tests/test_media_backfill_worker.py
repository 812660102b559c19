from __future__ import annotations

from unittest.mock import patch

import pytest

from mediaflow.app.domain.errors import ConfigurationError, RepositoryError
from mediaflow.app.domain.models import BackfillSummary
from workers.media_backfill import main as worker_main
from workers.media_backfill.config import BackfillConfig
from workers.media_backfill.main import MediaBackfillWorker, parse_args


class MediaBackfillStub:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    async def _record(self, job: str, **kwargs) -> BackfillSummary:
        self.calls.append((job, kwargs))
        if self.error:
            raise self.error
        return BackfillSummary(processed=2, succeeded=1, failed=1)

    async def process_short_videos(self, **kwargs) -> BackfillSummary:
        return await self._record("short-videos", **kwargs)

    async def sync_youtube_thumbnails(self, limit, delay_seconds, dry_run) -> BackfillSummary:
        return await self._record("youtube-thumbnails", limit=limit, delay_seconds=delay_seconds, dry_run=dry_run)

    async def sync_creator_images(self, limit, delay_seconds, dry_run) -> BackfillSummary:
        return await self._record("creator-images", limit=limit, delay_seconds=delay_seconds, dry_run=dry_run)


def _config(**overrides) -> BackfillConfig:
    values = dict(
        supabase_url="https://test.supabase.co",
        supabase_key="key",
        r2_account_id="account",
        r2_access_key_id="access",
        r2_secret_access_key="secret",
        r2_bucket_name="media",
        r2_public_url="https://media.example.com",
        download_timeout_seconds=30.0,
        scratch_dir=None,
        transcription_language=None,
    )
    values.update(overrides)
    return BackfillConfig(**values)


class TestBackfillConfig:
    def test_valid(self) -> None:
        assert _config().validate() == []

    def test_missing_values(self) -> None:
        errors = _config(supabase_key="", r2_bucket_name="", download_timeout_seconds=0).validate()
        assert "SUPABASE_SERVICE_ROLE_KEY is required" in errors
        assert "R2_BUCKET_NAME is required" in errors
        assert "DOWNLOAD_TIMEOUT_SECONDS must be positive" in errors

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOWNLOAD_TIMEOUT_SECONDS", "45")
        monkeypatch.setenv("TRANSCRIPTION_LANGUAGE", "pt")
        config = BackfillConfig()
        assert config.download_timeout_seconds == 45.0
        assert config.transcription_language == "pt"


class TestMediaBackfillWorker:
    def test_short_videos_default_limit(self) -> None:
        backfill = MediaBackfillStub()
        worker = MediaBackfillWorker(_config(), backfill)

        summary = worker.run(parse_args(["short-videos", "--skip-media"]))

        assert summary is not None
        assert summary.message == "Processed 2: 1 succeeded, 0 skipped, 1 failed"
        assert backfill.calls == [
            ("short-videos", {"limit": 10, "delay_seconds": 0.0, "skip_media": True, "dry_run": False})
        ]

    def test_image_jobs_pass_options(self) -> None:
        backfill = MediaBackfillStub()
        worker = MediaBackfillWorker(_config(), backfill)

        worker.run(parse_args(["creator-images", "--limit", "5", "--delay", "1.5", "--dry-run"]))
        worker.run(parse_args(["youtube-thumbnails"]))

        assert backfill.calls == [
            ("creator-images", {"limit": 5, "delay_seconds": 1.5, "dry_run": True}),
            ("youtube-thumbnails", {"limit": 0, "delay_seconds": 0.0, "dry_run": False}),
        ]

    def test_store_failure_does_not_crash(self) -> None:
        worker = MediaBackfillWorker(_config(), MediaBackfillStub(RepositoryError("list", "down")))

        assert worker.run(parse_args(["youtube-thumbnails"])) is None

    def test_invalid_config(self) -> None:
        backfill = MediaBackfillStub()
        worker = MediaBackfillWorker(_config(r2_public_url=""), backfill)

        with pytest.raises(ConfigurationError):
            worker.run(parse_args(["short-videos"]))
        assert backfill.calls == []


class TestCli:
    def test_parse_args(self) -> None:
        args = parse_args(["short-videos", "--limit", "3", "--skip-transcript"])
        assert args.job == "short-videos"
        assert args.limit == 3
        assert args.skip_transcript is True
        assert args.skip_media is False

    def test_rejects_unknown_job(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["recipes"])

    def test_rejects_negative_delay(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["creator-images", "--delay", "-1"])

    def test_main_validates_before_connecting(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(worker_main, "get_config", lambda: _config(supabase_url=""))
        with patch.object(worker_main, "create_default_dependencies") as create:
            with pytest.raises(ConfigurationError):
                worker_main.main(["short-videos"])
        create.assert_not_called()

    def test_main_skips_transcriber(self, monkeypatch: pytest.MonkeyPatch) -> None:
        backfill = MediaBackfillStub()
        seen = {}

        def create(config, transcribe=True):
            seen["transcribe"] = transcribe
            return backfill

        monkeypatch.setattr(worker_main, "get_config", lambda: _config())
        monkeypatch.setattr(worker_main, "create_default_dependencies", create)

        worker_main.main(["short-videos", "--skip-transcript"])

        assert seen == {"transcribe": False}
        assert len(backfill.calls) == 1
