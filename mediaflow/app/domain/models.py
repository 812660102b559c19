# mediaflow/app/domain/models.py
"""
Domain models for media ingestion and leaderboard metrics.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class Platform(str, Enum):
    """Source platforms a video URL can come from."""
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"


class ExtractionMode(str, Enum):
    QUICK = "quick"
    FULL = "full"


class ExtractionStage(str, Enum):
    """Steps an extraction request moves through, in order."""
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    REHOSTING_THUMBNAIL = "rehosting_thumbnail"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    RESOLVING_CREATOR = "resolving_creator"
    DONE = "done"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass
class ExtractionRequest:
    """Per-call input of the extraction pipeline. Never persisted."""
    source_url: str
    mode: ExtractionMode = ExtractionMode.FULL
    generate_transcript: bool = True


@dataclass(frozen=True)
class CreatorInfo:
    handle: str
    display_name: str
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class ExtractedMetadata:
    """Normalized descriptive metadata for one source video."""
    platform: Platform
    source_id: Optional[str]
    title: str
    description: Optional[str] = None
    duration_seconds: Optional[int] = None
    thumbnail_url: Optional[str] = None
    creator: Optional[CreatorInfo] = None
    published_at: Optional[str] = None
    media_url: Optional[str] = None
    # request headers the CDN expects when fetching media_url
    media_headers: Optional[dict[str, str]] = None
    view_count: Optional[int] = None


@dataclass(frozen=True)
class UploadedAsset:
    """A file living on durable storage.

    ``rehosted`` is False when the origin was already on our storage and
    nothing was uploaded (``canonical_url == origin_url``).
    """
    canonical_url: str
    origin_url: str
    content_kind: str
    rehosted: bool = True


@dataclass(frozen=True)
class TranscriptSegment:
    start_seconds: float
    end_seconds: float
    text: str


@dataclass(frozen=True)
class TranscriptResult:
    text: str
    segments: tuple[TranscriptSegment, ...] = ()
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class ExistingCreator:
    id: str
    name: str


@dataclass(frozen=True)
class CreatorCandidate:
    platform: Platform
    handle: str
    display_name: str
    avatar_url: Optional[str] = None
    profile_url: Optional[str] = None


CreatorResolution = Union[ExistingCreator, CreatorCandidate]


@dataclass(frozen=True)
class ExistingVideo:
    """Identity of a video that was already ingested."""
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None


@dataclass
class QuickExtraction:
    platform: Platform
    source_id: Optional[str]
    title: str
    description: Optional[str]
    duration_seconds: Optional[int]
    thumbnail_url: Optional[str]
    creator: Optional[CreatorInfo]
    published_at: Optional[str]


@dataclass
class FullExtraction:
    platform: Platform
    source_id: str
    source_url: str
    title: str
    slug: str
    description: Optional[str]
    duration_seconds: Optional[int]
    video_url: Optional[str]
    cover_url: Optional[str]
    transcript: Optional[str]
    creator: Optional[CreatorInfo]
    creator_resolution: Optional[CreatorResolution]
    published_at: Optional[str]
    warnings: list[str] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        """True when the primary asset could not be rehosted."""
        return self.video_url is None


@dataclass
class LongFormExtraction:
    youtube_id: str
    title: str
    slug: str
    description: Optional[str]
    duration_seconds: Optional[int]
    thumbnail_url: Optional[str]
    published_at: Optional[str]
    view_count: Optional[int]
    transcript: Optional[str]
    creator_resolution: Optional[CreatorResolution]
    warnings: list[str] = field(default_factory=list)


@dataclass
class EngagementMetrics:
    views: Optional[int] = None
    likes: Optional[int] = None
    comments: Optional[int] = None
    shares: Optional[int] = None
    fetched_at: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.views, self.likes, self.comments, self.shares))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ShortVideoRef:
    video_id: str
    platform: Platform
    source_url: str


@dataclass(frozen=True)
class LongFormVideoRef:
    video_id: str
    youtube_id: str


SourceRef = Union[ShortVideoRef, LongFormVideoRef]


@dataclass
class LeaderboardEntry:
    """
    A ranked reference to exactly one ingested video.
    ``source_ref`` is None when the stored row does not resolve to exactly
    one source.
    """
    id: str
    source_ref: Optional[SourceRef]
    cached_engagement: Optional[EngagementMetrics] = None
    metrics_updated_at: Optional[datetime] = None
    is_active: bool = True
    display_order: int = 0


@dataclass
class MetricsRefreshItem:
    id: str
    success: bool
    metrics: Optional[EngagementMetrics] = None
    error: Optional[str] = None


@dataclass
class MetricsRefreshSummary:
    results: list[MetricsRefreshItem] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def message(self) -> str:
        return f"Refreshed {self.updated} entries, {self.failed} failed"


@dataclass(frozen=True)
class ShortVideoRecord:
    """A stored short video as the media backfill sees it."""
    id: str
    name: str
    source_url: str
    platform: Platform
    source_id: Optional[str] = None
    video_url: Optional[str] = None
    transcript: Optional[str] = None

    @property
    def is_image_post(self) -> bool:
        # Instagram carousel images carry an img_index query parameter
        return "img_index=" in self.source_url


@dataclass(frozen=True)
class StoredImage:
    """An image URL kept on a stored row (YouTube thumbnail, creator avatar)."""
    id: str
    name: Optional[str]
    url: Optional[str]
    slug: Optional[str] = None


@dataclass
class BackfillSummary:
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def message(self) -> str:
        return (
            f"Processed {self.processed}: {self.succeeded} succeeded, "
            f"{self.skipped} skipped, {self.failed} failed"
        )
