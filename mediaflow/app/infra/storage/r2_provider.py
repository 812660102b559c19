# mediaflow/app/infra/storage/r2_provider.py
"""
Cloudflare R2 storage provider.
R2 speaks the S3 API, so this is boto3 pointed at the account endpoint.
"""
from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from mediaflow.app.domain.errors import StorageError, StorageUploadError
from mediaflow.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

def _missing_settings(**values: Optional[str]) -> list[str]:
    return [f"R2_{name.upper()}" for name, value in values.items() if not value]


class R2StorageProvider(StorageProvider):
    """
    Stores rehosted media in an R2 bucket served from ``public_url``.

    Pass ``client`` to reuse an existing S3 client (tests do).
    """

    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket_name: Optional[str] = None,
        public_url: Optional[str] = None,
        client=None,
    ):
        missing = _missing_settings(
            account_id=account_id,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            bucket_name=bucket_name,
            public_url=public_url,
        )
        if client is None and missing:
            raise StorageError(f"Missing R2 configuration: {', '.join(missing)}")

        self.bucket_name = bucket_name
        self.public_url = public_url
        self._client = client or boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
            config=Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "adaptive"}),
        )
        logger.info("R2 storage ready: bucket=%s, public_url=%s", bucket_name, public_url)

    def upload_bytes(
        self,
        data: bytes,
        object_key: str,
        content_type: str = "application/octet-stream",
    ) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("R2 upload failed: key=%s error=%s", object_key, e)
            raise StorageUploadError(object_key, str(e)) from e

        logger.info("Stored %s (%d bytes, %s)", object_key, len(data), content_type)
        return self.public_url_for(object_key)
