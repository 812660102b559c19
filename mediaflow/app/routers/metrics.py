from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from mediaflow.app.deps import CurrentUser, get_metrics_refresher, require_admin
from mediaflow.app.domain.errors import RepositoryError
from mediaflow.app.schemas.metrics import MetricsRefreshRequest, MetricsRefreshResponse
from mediaflow.app.services.metrics_refresher import MetricsRefresher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.post("/metrics/refresh", response_model=MetricsRefreshResponse)
async def refresh_metrics(
    payload: Optional[MetricsRefreshRequest] = Body(default=None),
    user: CurrentUser = Depends(require_admin),
    refresher: MetricsRefresher = Depends(get_metrics_refresher),
) -> MetricsRefreshResponse:
    """Refresh cached engagement for the given entries, or every active one."""
    entry_ids = payload.entry_ids if payload else None
    try:
        summary = await refresher.refresh(entry_ids)
    except RepositoryError as exc:
        logger.error("Metrics refresh failed to load entries: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")

    logger.info("Metrics refresh by %s: %s", user.id, summary.message)
    return MetricsRefreshResponse.from_domain(summary)
