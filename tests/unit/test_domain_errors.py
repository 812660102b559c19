from __future__ import annotations

from mediaflow.app.domain.errors import (
    ConfigurationError,
    DuplicateRecordError,
    InfrastructureError,
    RepositoryError,
    StorageError,
    StorageUploadError,
    TempFileCleanupError,
)


class TestInfrastructureError:
    def test_base_exception(self) -> None:
        error = InfrastructureError("Base error")
        assert str(error) == "Base error"
        assert isinstance(error, Exception)


class TestConfigurationError:
    def test_joins_errors(self) -> None:
        error = ConfigurationError(["SUPABASE_URL is required", "R2_BUCKET_NAME is required"])
        assert "SUPABASE_URL is required" in str(error)
        assert "R2_BUCKET_NAME is required" in str(error)
        assert len(error.errors) == 2


class TestStorageUploadError:
    def test_includes_object_key_and_reason(self) -> None:
        error = StorageUploadError("short-videos/videos/tiktok_1.mp4", "AccessDenied")
        assert "short-videos/videos/tiktok_1.mp4" in str(error)
        assert "AccessDenied" in str(error)
        assert error.object_key == "short-videos/videos/tiktok_1.mp4"
        assert error.reason == "AccessDenied"

    def test_inherits_from_storage_error(self) -> None:
        assert isinstance(StorageUploadError("key"), StorageError)


class TestRepositoryError:
    def test_includes_operation(self) -> None:
        error = RepositoryError("find_creator", "connection reset")
        assert "find_creator" in str(error)
        assert error.operation == "find_creator"
        assert error.reason == "connection reset"

    def test_duplicate_is_repository_error(self) -> None:
        error = DuplicateRecordError("short_video_creators")
        assert isinstance(error, RepositoryError)
        assert error.table == "short_video_creators"
        assert "short_video_creators" in str(error)


class TestTempFileCleanupError:
    def test_includes_path(self) -> None:
        error = TempFileCleanupError("/tmp/x.mp4", "Permission denied")
        assert "/tmp/x.mp4" in str(error)
        assert error.file_path == "/tmp/x.mp4"
        assert error.reason == "Permission denied"
