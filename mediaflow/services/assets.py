from __future__ import annotations

import logging
import mimetypes
from typing import Mapping, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from mediaflow.app.domain.errors import StorageError
from mediaflow.app.domain.models import UploadedAsset
from mediaflow.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT = 120.0
SHORT_VIDEO_FOLDER = "/short-videos/videos"
SHORT_VIDEO_COVER_FOLDER = "/short-videos/covers"
YOUTUBE_THUMBNAIL_FOLDER = "/youtube-thumbnails"
SHORT_VIDEO_CREATOR_FOLDER = "/short-video-creators"
VIDEO_CREATOR_FOLDER = "/video-creators"


def _guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or "application/octet-stream"


class AssetUploader:
    """Rehost third-party files on durable storage.

    Every failure is reported as ``None``; callers keep using the original
    URL in that case.
    """

    def __init__(
        self,
        storage: StorageProvider,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    ) -> None:
        self._storage = storage
        self._client = client
        self._timeout = timeout

    async def _download(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Optional[bytes]:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as error:
            logger.error("Error downloading %s: %s", url, error)
            return None

        if not response.is_success:
            logger.error("Failed to download %s: %s %s", url, response.status_code, response.reason_phrase)
            return None
        return response.content

    async def upload_asset(
        self,
        source_url: str,
        file_name: str,
        folder: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[UploadedAsset]:
        content_type = _guess_content_type(file_name)
        content_kind = content_type.split("/", 1)[0]

        if self.is_hosted(source_url):
            logger.debug("Already on storage, skipping upload: %s", source_url)
            return UploadedAsset(
                canonical_url=source_url,
                origin_url=source_url,
                content_kind=content_kind,
                rehosted=False,
            )

        data = await self._download(source_url, headers)
        if data is None:
            return None

        object_key = self._storage.build_object_key(folder, file_name)
        try:
            url = await run_in_threadpool(self._storage.upload_bytes, data, object_key, content_type)
        except StorageError as error:
            logger.error("Failed to upload %s to storage: %s", object_key, error)
            return None

        return UploadedAsset(canonical_url=url, origin_url=source_url, content_kind=content_kind)

    def is_hosted(self, url: str) -> bool:
        return self._storage.is_hosted(url)

    async def upload_from_url(
        self,
        source_url: str,
        file_name: str,
        folder: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """Download ``source_url`` and store it as ``folder/file_name``.

        ``headers`` are sent with the download; signed CDN links usually
        need the Referer and User-Agent the extractor used.

        Returns the canonical URL, the input itself when it is already
        hosted by us, or None when the download or the upload failed.
        """
        asset = await self.upload_asset(source_url, file_name, folder, headers)
        return asset.canonical_url if asset else None

    async def rehost_thumbnail(self, thumbnail_url: str, platform: str, source_id: str) -> str:
        new_url = await self.upload_from_url(
            thumbnail_url,
            f"{platform}_{source_id}.jpg",
            SHORT_VIDEO_COVER_FOLDER,
        )
        return new_url or thumbnail_url

    async def rehost_youtube_thumbnail(self, thumbnail_url: str, youtube_id: str) -> str:
        new_url = await self.upload_from_url(
            thumbnail_url,
            f"{youtube_id}.jpg",
            YOUTUBE_THUMBNAIL_FOLDER,
        )
        return new_url or thumbnail_url

    async def rehost_avatar(self, avatar_url: str, platform: str, handle: str) -> str:
        folder = VIDEO_CREATOR_FOLDER if platform == "youtube" else SHORT_VIDEO_CREATOR_FOLDER
        new_url = await self.upload_from_url(avatar_url, f"{platform}_{handle.lstrip('@')}.jpg", folder)
        return new_url or avatar_url
