# mediaflow/app/schemas/extract.py
from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from mediaflow.app.domain.models import (
    CreatorCandidate,
    CreatorInfo,
    CreatorResolution,
    ExistingCreator,
    ExistingVideo,
    FullExtraction,
    LongFormExtraction,
    QuickExtraction,
)

PlatformName = Literal["instagram", "tiktok", "youtube"]


class ExtractRequest(BaseModel):
    url: str
    mode: Literal["quick", "full"] = "full"
    generateTranscript: bool = True


class YouTubeExtractRequest(BaseModel):
    url: str


class CreatorPayload(BaseModel):
    handle: str
    name: str
    avatarUrl: Optional[str] = None

    @classmethod
    def from_domain(cls, creator: Optional[CreatorInfo]) -> Optional["CreatorPayload"]:
        if creator is None:
            return None
        return cls(handle=creator.handle, name=creator.display_name, avatarUrl=creator.avatar_url)


class ExistingCreatorPayload(BaseModel):
    type: Literal["existing"] = "existing"
    id: str
    name: str


class NewCreatorPayload(BaseModel):
    type: Literal["new"] = "new"
    platform: PlatformName
    handle: str
    name: str
    avatarUrl: Optional[str] = None
    profileUrl: Optional[str] = None


CreatorResolutionPayload = Union[ExistingCreatorPayload, NewCreatorPayload]


def creator_resolution_payload(
    resolution: Optional[CreatorResolution],
) -> Optional[CreatorResolutionPayload]:
    if isinstance(resolution, ExistingCreator):
        return ExistingCreatorPayload(id=resolution.id, name=resolution.name)
    if isinstance(resolution, CreatorCandidate):
        return NewCreatorPayload(
            platform=resolution.platform.value,
            handle=resolution.handle,
            name=resolution.display_name,
            avatarUrl=resolution.avatar_url,
            profileUrl=resolution.profile_url,
        )
    return None


class QuickExtractResponse(BaseModel):
    mode: Literal["quick"] = "quick"
    platform: PlatformName
    sourceId: Optional[str] = None
    title: str
    description: Optional[str] = None
    durationSeconds: Optional[int] = None
    thumbnailUrl: Optional[str] = None
    creator: Optional[CreatorPayload] = None
    publishedAt: Optional[str] = None

    @classmethod
    def from_domain(cls, result: QuickExtraction) -> "QuickExtractResponse":
        return cls(
            platform=result.platform.value,
            sourceId=result.source_id,
            title=result.title,
            description=result.description,
            durationSeconds=result.duration_seconds,
            thumbnailUrl=result.thumbnail_url,
            creator=CreatorPayload.from_domain(result.creator),
            publishedAt=result.published_at,
        )


class FullExtractResponse(BaseModel):
    mode: Literal["full"] = "full"
    platform: PlatformName
    sourceId: str
    sourceUrl: str
    title: str
    slug: str
    description: Optional[str] = None
    durationSeconds: Optional[int] = None
    videoUrl: Optional[str] = None
    coverUrl: Optional[str] = None
    transcript: Optional[str] = None
    creator: Optional[CreatorPayload] = None
    creatorResolution: Optional[CreatorResolutionPayload] = None
    publishedAt: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: FullExtraction) -> "FullExtractResponse":
        return cls(
            platform=result.platform.value,
            sourceId=result.source_id,
            sourceUrl=result.source_url,
            title=result.title,
            slug=result.slug,
            description=result.description,
            durationSeconds=result.duration_seconds,
            videoUrl=result.video_url,
            coverUrl=result.cover_url,
            transcript=result.transcript,
            creator=CreatorPayload.from_domain(result.creator),
            creatorResolution=creator_resolution_payload(result.creator_resolution),
            publishedAt=result.published_at,
            warnings=list(result.warnings),
        )


class YouTubeExtractResponse(BaseModel):
    youtubeId: str
    title: str
    slug: str
    description: Optional[str] = None
    durationSeconds: Optional[int] = None
    thumbnailUrl: Optional[str] = None
    publishedAt: Optional[str] = None
    viewCount: Optional[int] = None
    transcript: Optional[str] = None
    creatorResolution: Optional[CreatorResolutionPayload] = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: LongFormExtraction) -> "YouTubeExtractResponse":
        return cls(
            youtubeId=result.youtube_id,
            title=result.title,
            slug=result.slug,
            description=result.description,
            durationSeconds=result.duration_seconds,
            thumbnailUrl=result.thumbnail_url,
            publishedAt=result.published_at,
            viewCount=result.view_count,
            transcript=result.transcript,
            creatorResolution=creator_resolution_payload(result.creator_resolution),
            warnings=list(result.warnings),
        )


class ExistingVideoPayload(BaseModel):
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None

    @classmethod
    def from_domain(cls, video: ExistingVideo) -> "ExistingVideoPayload":
        return cls(id=video.id, name=video.name, slug=video.slug)


class CreatorCreateRequest(BaseModel):
    platform: PlatformName
    handle: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    avatarUrl: Optional[str] = None
    profileUrl: Optional[str] = None


class CreatorResponse(BaseModel):
    id: str
    name: str
