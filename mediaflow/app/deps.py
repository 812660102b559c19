# mediaflow/app/deps.py

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from postgrest.exceptions import APIError
from pydantic import BaseModel
from supabase import Client, create_client

from mediaflow.app.config import settings
from mediaflow.app.domain.errors import StorageError
from mediaflow.app.infra.db.base import MediaRepository
from mediaflow.app.infra.db.supabase_media_repo import SupabaseMediaRepository
from mediaflow.app.infra.storage.r2_provider import R2StorageProvider
from mediaflow.app.services.creators import CreatorService
from mediaflow.app.services.extraction import ExtractionOrchestrator
from mediaflow.app.services.metrics_refresher import MetricsRefresher
from mediaflow.app.services.transcription_pipeline import TranscriptionPipeline
from mediaflow.services.assets import AssetUploader
from mediaflow.services.engagement import EngagementFetcher
from mediaflow.services.fetcher import MetadataExtractor
from mediaflow.services.transcribe import Transcriber

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        _client = create_client(str(settings.SUPABASE_URL),
                                settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    role: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Validates ``Authorization: Bearer <access_token>`` against Supabase
    auth and loads the caller's role from ``profiles``.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        res = supa.auth.get_user(cred.credentials)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid/expired token")

    user = res.user if res else None
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        profile = supa.table("profiles").select("role").eq("id", str(user.id)).limit(1).execute()
    except (APIError, httpx.HTTPError) as e:
        logger.error("Failed to load profile for %s: %s", user.id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth service unavailable")
    role = profile.data[0].get("role") if profile.data else None
    return CurrentUser(id=str(user.id), email=user.email, role=role)


async def require_admin(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
) -> CurrentUser:
    """401 without a valid session, 403 for non-admin callers."""
    if settings.DEV_AUTH_BYPASS:
        return CurrentUser(id="dev", role=ADMIN_ROLE)
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = await get_current_user(cred, get_supabase())
    if user.role != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def get_repository() -> MediaRepository:
    return SupabaseMediaRepository(get_supabase())


def get_storage() -> R2StorageProvider:
    try:
        return R2StorageProvider(
            account_id=settings.R2_ACCOUNT_ID,
            access_key_id=settings.R2_ACCESS_KEY_ID,
            secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            bucket_name=settings.R2_BUCKET_NAME,
            public_url=settings.R2_PUBLIC_URL,
        )
    except StorageError as e:
        logger.error("Failed to initialize storage: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage service unavailable",
        )


def get_transcriber() -> Transcriber:
    scratch_dir = Path(settings.SCRATCH_DIR) if settings.SCRATCH_DIR else None
    return Transcriber(
        engine=TranscriptionPipeline(language=settings.TRANSCRIPTION_LANGUAGE),
        scratch_dir=scratch_dir,
        cost_per_minute=settings.TRANSCRIPTION_COST_PER_MINUTE,
    )


def get_orchestrator(
    repository: MediaRepository = Depends(get_repository),
    storage: R2StorageProvider = Depends(get_storage),
    transcriber: Transcriber = Depends(get_transcriber),
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        repository=repository,
        extractor=MetadataExtractor(),
        uploader=AssetUploader(storage, timeout=settings.DOWNLOAD_TIMEOUT_SECONDS),
        transcriber=transcriber,
    )


def get_metrics_refresher(
    repository: MediaRepository = Depends(get_repository),
) -> MetricsRefresher:
    return MetricsRefresher(repository=repository, fetcher=EngagementFetcher())


def get_creator_service(
    repository: MediaRepository = Depends(get_repository),
    storage: R2StorageProvider = Depends(get_storage),
) -> CreatorService:
    return CreatorService(repository, AssetUploader(storage, timeout=settings.DOWNLOAD_TIMEOUT_SECONDS))
