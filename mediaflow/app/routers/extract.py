# mediaflow/app/routers/extract.py
from __future__ import annotations

import logging
import time
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status

from mediaflow.app.deps import CurrentUser, get_orchestrator, require_admin
from mediaflow.app.domain.errors import RepositoryError
from mediaflow.app.domain.models import ExtractionMode, ExtractionRequest, FullExtraction, QuickExtraction
from mediaflow.app.schemas.extract import (
    ExistingVideoPayload,
    ExtractRequest,
    FullExtractResponse,
    QuickExtractResponse,
    YouTubeExtractRequest,
    YouTubeExtractResponse,
)
from mediaflow.app.services.extraction import ExtractionOrchestrator
from mediaflow.services.errors import (
    AlreadyIngestedError,
    ExtractionFailedError,
    InvalidInputError,
    NetworkTimeoutError,
    RateLimitedError,
    ServiceError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["extract"])


def http_error_for(exc: Exception) -> HTTPException:
    """Map pipeline failures onto the HTTP status the admin client expects."""
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, AlreadyIngestedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Video already exists",
                "existing": ExistingVideoPayload.from_domain(exc.existing).model_dump(),
            },
        )
    if isinstance(exc, RateLimitedError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream platform is rate limiting requests, try again later",
        )
    if isinstance(exc, ExtractionFailedError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to extract video metadata: {exc.reason}",
        )
    if isinstance(exc, NetworkTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    if isinstance(exc, RepositoryError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/extract", response_model=Union[QuickExtractResponse, FullExtractResponse])
async def extract(
    payload: ExtractRequest,
    user: CurrentUser = Depends(require_admin),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> Union[QuickExtractResponse, FullExtractResponse]:
    request = ExtractionRequest(
        source_url=payload.url,
        mode=ExtractionMode(payload.mode),
        generate_transcript=payload.generateTranscript,
    )
    started = time.perf_counter()
    try:
        result = await orchestrator.extract(request)
    except (ServiceError, RepositoryError) as exc:
        raise http_error_for(exc)

    logger.info(
        "extract done: user=%s mode=%s url=%s elapsed=%.2fs",
        user.id,
        payload.mode,
        payload.url,
        time.perf_counter() - started,
    )
    if isinstance(result, FullExtraction) and result.is_degraded:
        logger.warning("extract degraded: video not rehosted, source must stay reachable: %s", payload.url)
    if isinstance(result, QuickExtraction):
        return QuickExtractResponse.from_domain(result)
    return FullExtractResponse.from_domain(result)


@router.post("/youtube/extract", response_model=YouTubeExtractResponse)
async def extract_youtube(
    payload: YouTubeExtractRequest,
    user: CurrentUser = Depends(require_admin),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> YouTubeExtractResponse:
    try:
        result = await orchestrator.extract_long_form(payload.url)
    except (ServiceError, RepositoryError) as exc:
        raise http_error_for(exc)
    return YouTubeExtractResponse.from_domain(result)
