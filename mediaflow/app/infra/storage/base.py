# mediaflow/app/infra/storage/base.py
"""
Durable object storage used to rehost third-party media.
Providers upload bytes; URL helpers (object keys, public URLs, "is this
already ours") live here so every backend shares them.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse


class StorageProvider(ABC):
    """
    Abstract interface for durable object storage.

    Implementations:
    - R2StorageProvider: Cloudflare R2 (S3-compatible)
    """

    public_url: Optional[str] = None

    @abstractmethod
    def upload_bytes(
        self,
        data: bytes,
        object_key: str,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Store a byte buffer under ``object_key``.

        Args:
            data: Raw file contents
            object_key: The key/path where the object will be stored
            content_type: MIME type of the content (e.g., "image/jpeg")

        Returns:
            The public, canonical URL of the stored object

        Raises:
            StorageUploadError: If the provider rejects the upload
        """
        pass

    def build_object_key(self, folder: str, file_name: str) -> str:
        """
        Join a folder and a file name into an object key.

        Format: {folder}/{sanitized_file_name}, without leading slash
        """
        safe_name = re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)
        prefix = folder.strip("/")
        return f"{prefix}/{safe_name}" if prefix else safe_name

    def public_url_for(self, object_key: str) -> str:
        if not self.public_url:
            raise ValueError("public_url is not configured for this storage provider")
        return f"{self.public_url.rstrip('/')}/{object_key}"

    def is_hosted(self, url: str) -> bool:
        """True when ``url`` points at this provider's public host."""
        if not url or not self.public_url:
            return False
        ours = urlparse(self.public_url)
        theirs = urlparse(url)
        if not theirs.netloc or theirs.netloc.lower() != ours.netloc.lower():
            return False
        prefix = ours.path.rstrip("/")
        return not prefix or theirs.path == prefix or theirs.path.startswith(prefix + "/")
