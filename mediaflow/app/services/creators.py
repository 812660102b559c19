from __future__ import annotations

import logging
from dataclasses import replace
from functools import partial
from typing import Optional

from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.errors import DuplicateRecordError
from mediaflow.app.domain.models import CreatorCandidate, ExistingCreator
from mediaflow.app.infra.db.base import MediaRepository, creator_table_for
from mediaflow.services.assets import AssetUploader
from mediaflow.services.errors import InvalidInputError
from mediaflow.services.slugify import ensure_unique_slug, normalize_slug

logger = logging.getLogger(__name__)

MAX_INSERT_ATTEMPTS = 2


class CreatorService:
    """Creates creators from extraction candidates without duplicating handles."""

    def __init__(self, repository: MediaRepository, uploader: Optional[AssetUploader] = None) -> None:
        self._repo = repository
        self._uploader = uploader

    async def register(self, candidate: CreatorCandidate) -> ExistingCreator:
        if not candidate.handle or not candidate.display_name:
            raise InvalidInputError("Name and handle are required")

        existing = await run_in_threadpool(self._repo.find_creator, candidate.platform, candidate.handle)
        if existing is not None:
            return existing

        candidate = await self._rehost_avatar(candidate)
        table = creator_table_for(candidate.platform)
        base = normalize_slug(candidate.display_name) or normalize_slug(candidate.handle) or "creator"
        exists = partial(self._repo.slug_exists, table)

        attempts = 0
        while True:
            attempts += 1
            slug = await run_in_threadpool(ensure_unique_slug, base, exists)
            try:
                return await run_in_threadpool(
                    self._repo.insert_creator,
                    candidate.platform,
                    candidate.handle,
                    candidate.display_name,
                    slug,
                    candidate.avatar_url,
                    candidate.profile_url,
                )
            except DuplicateRecordError:
                # A concurrent writer won: either the same creator or the same slug.
                existing = await run_in_threadpool(self._repo.find_creator, candidate.platform, candidate.handle)
                if existing is not None:
                    return existing
                if attempts >= MAX_INSERT_ATTEMPTS:
                    raise
                logger.info("Slug %s taken concurrently, retrying", slug)

    async def _rehost_avatar(self, candidate: CreatorCandidate) -> CreatorCandidate:
        """Avatars on platform CDNs expire; keep our own copy when possible."""
        if self._uploader is None or not candidate.avatar_url:
            return candidate
        avatar_url = await self._uploader.rehost_avatar(
            candidate.avatar_url,
            candidate.platform.value,
            candidate.handle,
        )
        return replace(candidate, avatar_url=avatar_url)
