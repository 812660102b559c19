from __future__ import annotations


class InfrastructureError(Exception):
    pass


class ConfigurationError(InfrastructureError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Configuration errors: {', '.join(errors)}")
        self.errors = errors


class StorageError(InfrastructureError):
    pass


class StorageUploadError(StorageError):
    def __init__(self, object_key: str, reason: str = "Upload failed"):
        super().__init__(f"Failed to upload {object_key}: {reason}")
        self.object_key = object_key
        self.reason = reason


class RepositoryError(InfrastructureError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class DuplicateRecordError(RepositoryError):
    def __init__(self, table: str, reason: str = "unique constraint violated"):
        super().__init__(f"insert into {table}", reason)
        self.table = table


class TempFileCleanupError(InfrastructureError):
    def __init__(self, file_path: str, reason: str):
        super().__init__(f"Failed to cleanup temp file {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason
