# src/app/infra/storage/base.py
"""
Abstract base class for storage providers.
Recipe and category images are kept here as durable objects.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


class StorageProvider(ABC):
    """
    Abstract interface for object storage operations.

    Implementations:
    - R2StorageProvider: Cloudflare R2 (S3-compatible)
    """

    @abstractmethod
    def upload_bytes(self, object_key: str, data: bytes, content_type: str) -> str:
        """
        Store `data` under `object_key`.

        Returns:
            The object key, used as the durable storage handle
        """
        pass

    @abstractmethod
    def delete_object(self, object_key: str) -> bool:
        """
        Delete an object from storage.

        Returns:
            True if deletion was successful
        """
        pass

    @abstractmethod
    def public_url(self, object_key: str) -> Optional[str]:
        """Browser-reachable URL for an object, if the bucket is public."""
        pass

    def generate_object_key(
        self,
        user_id: str,
        filename: str,
        prefix: str = "recipes",
    ) -> str:
        """
        Generate a standardized object key.

        Format: users/{user_id}/{prefix}/{YYYY}/{MM}/{uuid}_{filename}
        """
        now = datetime.now(timezone.utc)
        safe_filename = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
        unique_id = uuid4().hex[:8]

        return f"users/{user_id}/{prefix}/{now:%Y}/{now:%m}/{unique_id}_{safe_filename}"
