# src/app/infra/storage/r2_provider.py
"""
Recipe and category images on Cloudflare R2.
R2 speaks the S3 API, so the boto3 S3 client is pointed at the account endpoint.
"""
from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from src.app.config import settings
from src.app.domain.errors import StorageError
from src.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)


def build_r2_client(account_id: str, access_key_id: str, secret_access_key: str):
    return boto3.client(
        "s3",
        endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        config=Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
        ),
        region_name="auto",  # R2 uses 'auto' as region
    )


class R2StorageProvider(StorageProvider):
    """
    Object storage for normalized JPEGs.

    Credentials fall back to settings (R2_ACCOUNT_ID, R2_ACCESS_KEY_ID,
    R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME). R2_PUBLIC_URL is optional and only
    needed for `public_url`. Pass `client` to use a preconfigured S3 client.
    """

    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket_name: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket_name = bucket_name or settings.R2_BUCKET_NAME
        self.public_base_url = (public_base_url or settings.R2_PUBLIC_URL or "").rstrip("/")

        if client is None:
            account_id = account_id or settings.R2_ACCOUNT_ID
            access_key_id = access_key_id or settings.R2_ACCESS_KEY_ID
            secret_access_key = secret_access_key or settings.R2_SECRET_ACCESS_KEY
            if not (account_id and access_key_id and secret_access_key and self.bucket_name):
                raise StorageError(
                    "R2 not configured: set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, "
                    "R2_SECRET_ACCESS_KEY and R2_BUCKET_NAME"
                )
            client = build_r2_client(account_id, access_key_id, secret_access_key)
            logger.info("R2 storage ready: bucket=%s, account=%s", self.bucket_name, account_id)

        self._client = client

    def upload_bytes(self, object_key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error("R2 upload failed: key=%s, error=%s", object_key, e)
            raise StorageError(f"Failed to upload object: {e}") from e

        logger.info("Uploaded to R2: key=%s, size=%d bytes", object_key, len(data))
        return object_key

    def delete_object(self, object_key: str) -> bool:
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            logger.error("R2 delete failed: key=%s, error=%s", object_key, e)
            return False

        logger.info("Deleted from R2: key=%s", object_key)
        return True

    def public_url(self, object_key: str) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url}/{object_key}"
