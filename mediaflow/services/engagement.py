"""Engagement numbers (views, likes, comments, shares) per source video."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.models import EngagementMetrics, LongFormVideoRef, ShortVideoRef, SourceRef
from mediaflow.services.errors import ExtractionFailedError
from mediaflow.services.fetcher import fetch_info
from mediaflow.services.ids import youtube_watch_url

logger = logging.getLogger(__name__)


def _count(info: dict, *keys: str) -> int | None:
    for key in keys:
        value = info.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
    return None


def metrics_from_info(info: dict) -> EngagementMetrics:
    return EngagementMetrics(
        views=_count(info, "view_count", "play_count"),
        likes=_count(info, "like_count"),
        comments=_count(info, "comment_count"),
        shares=_count(info, "repost_count", "share_count"),
        fetched_at=datetime.now(timezone.utc).isoformat(),
    )


def source_url_for(source_ref: SourceRef) -> str:
    if isinstance(source_ref, ShortVideoRef):
        return source_ref.source_url
    if isinstance(source_ref, LongFormVideoRef):
        return youtube_watch_url(source_ref.youtube_id)
    raise TypeError(f"Unknown source reference: {source_ref!r}")


def format_engagement_number(num: int | None) -> str:
    if num is None:
        return "-"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(num)


class EngagementFetcher:
    async def fetch(self, source_ref: SourceRef) -> EngagementMetrics:
        """
        Raises:
            ExtractionFailedError: upstream failure or no numbers published
        """
        url = source_url_for(source_ref)
        info = await run_in_threadpool(fetch_info, url)
        metrics = metrics_from_info(info)
        if metrics.is_empty:
            raise ExtractionFailedError(f"No metrics available for {url}")
        logger.debug("Fetched metrics for %s: %s", url, metrics)
        return metrics
