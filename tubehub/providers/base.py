"""
Transcoding provider adapter interface.

Each provider variant hides its REST API, its webhook signature scheme and
its event vocabulary behind the same four capabilities, so the reconciler
only ever sees normalized events.
"""
import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

import requests

from tubehub.core.exceptions import UpstreamException
from tubehub.models.domain import AssetDetail, NormalizedEvent, UploadSession
from tubehub.utils.retry import retry_with_backoff
from tubehub.utils.timestamp_utils import utcnow

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Base class for transcoding provider integrations."""

    name: str = "provider"

    def __init__(
        self,
        http: Optional[requests.Session] = None,
        timeout: float = 15.0,
        max_retries: int = 2,
        retry_base_delay: float = 0.5,
    ):
        self.http = http or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    @abstractmethod
    async def create_upload_session(self, title: str, expires_in: int) -> UploadSession:
        """Open a direct-upload session valid for expires_in seconds."""

    @abstractmethod
    async def describe_upload_session(self, upload_ref: str, expires_in: int) -> UploadSession:
        """Re-derive the upload target of an existing session."""

    @abstractmethod
    async def delete_upload_session(self, upload_ref: str) -> None:
        """Cancel an upload session that will never be used."""

    @abstractmethod
    async def fetch_asset_detail(self, asset_ref: str) -> AssetDetail:
        """Fetch the provider's current view of an asset."""

    @abstractmethod
    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        """
        Authenticate a callback.

        Raises:
            AuthException: If the signature is missing, stale or wrong
        """

    @abstractmethod
    def decode_webhook(self, raw_body: bytes) -> NormalizedEvent:
        """
        Decode an authenticated callback.

        Raises:
            DecodeException: If the payload is not the expected shape
        """

    @staticmethod
    def expiry(expires_in: int) -> datetime:
        """Absolute expiry for a window starting now."""
        return utcnow() + timedelta(seconds=expires_in)

    async def _call(self, operation: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        Perform a blocking HTTP call in the executor with retries.

        Returns:
            Decoded JSON body ({} for empty responses)

        Raises:
            UpstreamException: If the call ultimately fails
        """
        async def attempt() -> Dict[str, Any]:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                functools.partial(self.http.request, method, url, timeout=self.timeout, **kwargs)
            )
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

        try:
            return await retry_with_backoff(
                attempt,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                operation_name=f"{self.name}.{operation}",
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            raise UpstreamException(self.name, operation, f"{type(e).__name__}: {e}") from e


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup for plain dicts and Starlette headers."""
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None
