# mediaflow/app/services/metrics_refresher.py
"""
Batch refresh of cached engagement numbers for leaderboard entries.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Sequence

from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.models import (
    EngagementMetrics,
    LeaderboardEntry,
    MetricsRefreshItem,
    MetricsRefreshSummary,
    SourceRef,
)
from mediaflow.app.infra.db.base import MediaRepository
from mediaflow.services.engagement import format_engagement_number

logger = logging.getLogger(__name__)


class MetricsFetcher(Protocol):
    async def fetch(self, source_ref: SourceRef) -> EngagementMetrics:
        ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class MetricsRefresher:
    """
    Fans out one fetch per entry and isolates failures per entry.

    Each success is written as soon as it arrives, so a crash halfway
    leaves the finished entries durably updated.
    """

    def __init__(
        self,
        repository: MediaRepository,
        fetcher: MetricsFetcher,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        self._repo = repository
        self._fetcher = fetcher
        self._clock = clock

    async def refresh(self, entry_ids: Optional[Sequence[str]] = None) -> MetricsRefreshSummary:
        entries = await run_in_threadpool(self._repo.list_leaderboard_entries, entry_ids or None)
        if not entries:
            logger.info("No leaderboard entries to refresh")
            return MetricsRefreshSummary()

        results = await asyncio.gather(*(self._refresh_entry(entry) for entry in entries))
        summary = MetricsRefreshSummary(results=list(results))
        logger.info("Metrics refresh finished: updated=%d, failed=%d", summary.updated, summary.failed)
        return summary

    async def _refresh_entry(self, entry: LeaderboardEntry) -> MetricsRefreshItem:
        if entry.source_ref is None:
            logger.warning("Leaderboard entry %s has no resolvable source", entry.id)
            return MetricsRefreshItem(id=entry.id, success=False, error="No resolvable source reference")

        try:
            metrics = await self._fetcher.fetch(entry.source_ref)
            await run_in_threadpool(self._repo.update_entry_metrics, entry.id, metrics, self._clock())
        except Exception as error:  # noqa: BLE001 - one entry must not fail the batch
            logger.error("Error refreshing metrics for entry %s: %s", entry.id, error)
            return MetricsRefreshItem(id=entry.id, success=False, error=str(error))

        logger.info(
            "Entry %s: views=%s likes=%s comments=%s",
            entry.id,
            format_engagement_number(metrics.views),
            format_engagement_number(metrics.likes),
            format_engagement_number(metrics.comments),
        )
        return MetricsRefreshItem(id=entry.id, success=True, metrics=metrics)
