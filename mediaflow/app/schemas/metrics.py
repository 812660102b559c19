from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from mediaflow.app.domain.models import EngagementMetrics, MetricsRefreshItem, MetricsRefreshSummary


class MetricsRefreshRequest(BaseModel):
    entry_ids: Optional[list[str]] = None


class EngagementPayload(BaseModel):
    views: Optional[int] = None
    likes: Optional[int] = None
    comments: Optional[int] = None
    shares: Optional[int] = None
    fetched_at: Optional[str] = None

    @classmethod
    def from_domain(cls, metrics: Optional[EngagementMetrics]) -> Optional["EngagementPayload"]:
        if metrics is None:
            return None
        return cls(**metrics.to_dict())


class MetricsRefreshResult(BaseModel):
    id: str
    success: bool
    metrics: Optional[EngagementPayload] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, item: MetricsRefreshItem) -> "MetricsRefreshResult":
        return cls(
            id=item.id,
            success=item.success,
            metrics=EngagementPayload.from_domain(item.metrics),
            error=item.error,
        )


class MetricsRefreshResponse(BaseModel):
    message: str
    updated: int
    failed: int
    results: list[MetricsRefreshResult] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, summary: MetricsRefreshSummary) -> "MetricsRefreshResponse":
        return cls(
            message=summary.message,
            updated=summary.updated,
            failed=summary.failed,
            results=[MetricsRefreshResult.from_domain(r) for r in summary.results],
        )
