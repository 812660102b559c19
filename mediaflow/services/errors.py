from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from mediaflow.app.domain.models import ExistingVideo


class ServiceError(Exception):
    pass


class InvalidInputError(ServiceError):
    pass


class InvalidURLError(InvalidInputError):
    pass


class UnsupportedPlatformError(InvalidURLError):
    pass


class ExtractionFailedError(ServiceError):
    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class RateLimitedError(ExtractionFailedError):
    def __init__(self, reason: str = "Upstream rate limit reached", status_code: int | None = 429):
        super().__init__(reason, status_code)


class PrivateOrUnavailableError(ExtractionFailedError):
    pass


class TranscriptionServiceError(ServiceError):
    pass


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds


class AlreadyIngestedError(ServiceError):
    def __init__(self, existing: "ExistingVideo"):
        super().__init__(f"Video already exists: {existing.id}")
        self.existing = existing
