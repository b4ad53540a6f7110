"""
Thumbnail object storage on Google Cloud Storage.

Clients upload thumbnails directly to the bucket with a V4 signed PUT URL;
the application only reserves the object key and signs the request.
"""
import asyncio
import functools
import logging
import secrets
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional

import google.auth
from google.cloud import storage
from google.oauth2 import service_account

from tubehub.core.config import Settings
from tubehub.core.exceptions import UpstreamException
from tubehub.models.domain import ThumbnailUpload
from tubehub.utils.timestamp_utils import utcnow

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class ThumbnailStorage:
    """Reserves thumbnail keys and signs direct-upload URLs for them."""

    def __init__(
        self,
        bucket_name: str,
        credentials_path: Optional[Path] = None,
        prefix: str = "thumbnails/",
        client: Optional[storage.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.bucket_name = bucket_name
        self.credentials_path = credentials_path
        self.prefix = prefix if prefix.endswith("/") else f"{prefix}/"
        self.clock = clock
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ThumbnailStorage":
        return cls(
            bucket_name=settings.gcs_bucket_name,
            credentials_path=settings.gcs_credentials_path,
            prefix=settings.gcs_thumbnails_prefix,
        )

    @property
    def client(self) -> storage.Client:
        """GCS client, created on first use."""
        if self._client is None:
            self._client = self._init_client()
        return self._client

    def _init_client(self) -> storage.Client:
        credentials_path = self.credentials_path
        if credentials_path and credentials_path.exists():
            logger.info(f"Using GCS service account from: {credentials_path}")
            credentials = service_account.Credentials.from_service_account_file(
                str(credentials_path),
                scopes=['https://www.googleapis.com/auth/cloud-platform']
            )
            return storage.Client(credentials=credentials, project=credentials.project_id)

        if credentials_path:
            logger.warning(f"Service account file not found: {credentials_path}")
        logger.warning("No service account configured, using Application Default Credentials")
        credentials, project = google.auth.default()
        return storage.Client(credentials=credentials, project=project)

    def build_key(self, content_type: str) -> str:
        """
        Reserve a unique object key for a thumbnail.

        Format: <prefix><unix ms>-<random hex>.<ext>
        """
        ext = EXTENSIONS.get(content_type.lower(), "bin")
        millis = int(self.clock() * 1000)
        return f"{self.prefix}{millis}-{secrets.token_hex(8)}.{ext}"

    def _sign_put(self, key: str, content_type: str, expires_in: int) -> str:
        blob = self.client.bucket(self.bucket_name).blob(key)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expires_in),
            method="PUT",
            content_type=content_type,
        )

    async def presign_upload(self, key: str, content_type: str, expires_in: int) -> ThumbnailUpload:
        """
        Sign a PUT URL for one thumbnail object.

        Raises:
            UpstreamException: If the URL cannot be signed
        """
        loop = asyncio.get_running_loop()
        try:
            url = await loop.run_in_executor(
                None,
                functools.partial(self._sign_put, key, content_type, expires_in)
            )
        except Exception as e:
            logger.error(f"Failed to sign thumbnail upload for {key}: {type(e).__name__}: {e}")
            raise UpstreamException("gcs", "presign_upload", f"{type(e).__name__}: {e}") from e

        return ThumbnailUpload(
            key=key,
            url=url,
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=utcnow() + timedelta(seconds=expires_in),
        )
