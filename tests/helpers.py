"""
Test doubles and record helpers shared by the test modules.
"""
import fnmatch
from datetime import datetime
from typing import Dict, List, Optional
from unittest.mock import MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from tubehub.core.exceptions import UpstreamException
from tubehub.database.models.video import Visibility
from tubehub.database.session import Database
from tubehub.models.domain import AssetDetail, NormalizedEvent, UploadSession
from tubehub.providers.base import ProviderAdapter
from tubehub.repositories import video_db_repository

ALICE = "user_alice"
BOB = "user_bob"


class StubAdapter(ProviderAdapter):
    """Provider adapter whose responses are set by the test."""

    def __init__(self, name: str = "stub"):
        super().__init__(http=MagicMock(), max_retries=0)
        self.name = name
        self.details: Dict[str, AssetDetail] = {}
        self.detail_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.detail_calls: List[str] = []
        self.created: List[str] = []
        self.cancelled: List[str] = []
        self._counter = 0

    async def create_upload_session(self, title: str, expires_in: int) -> UploadSession:
        if self.create_error is not None:
            raise self.create_error
        self._counter += 1
        upload_ref = f"upload-{self._counter}"
        self.created.append(upload_ref)
        return await self.describe_upload_session(upload_ref, expires_in)

    async def describe_upload_session(self, upload_ref: str, expires_in: int) -> UploadSession:
        return UploadSession(
            upload_ref=upload_ref,
            upload_target={"provider": self.name, "type": "direct", "method": "PUT",
                           "url": f"https://uploads.example.com/{upload_ref}"},
            expires_at=self.expiry(expires_in),
        )

    async def delete_upload_session(self, upload_ref: str) -> None:
        self.cancelled.append(upload_ref)

    async def fetch_asset_detail(self, asset_ref: str) -> AssetDetail:
        self.detail_calls.append(asset_ref)
        if self.detail_error is not None:
            raise self.detail_error
        if asset_ref in self.details:
            return self.details[asset_ref]
        return AssetDetail(asset_ref=asset_ref, status="preparing")

    def verify_webhook(self, raw_body, headers) -> None:
        pass

    def decode_webhook(self, raw_body) -> NormalizedEvent:
        raise NotImplementedError

    def fail_detail(self):
        self.detail_error = UpstreamException(self.name, "fetch_asset_detail", "ConnectionError: refused")


class FakeRedis:
    """The subset of redis.asyncio.Redis used by the feed cache."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.down = False
        self.gets = 0

    def _check(self):
        if self.down:
            raise RedisConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        self.gets += 1
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def scan_iter(self, match=None):
        self._check()
        for key in list(self.store):
            if match is None or fnmatch.fnmatch(key, match):
                yield key

    async def ping(self):
        self._check()
        return True


async def create_video(
    db: Database,
    owner_id: str = ALICE,
    upload_ref: str = "upload-1",
    provider: str = "stub",
    title: str = "My video",
    visibility: Visibility = Visibility.PUBLIC,
    created_at: Optional[datetime] = None,
    description: str = "",
    category: str = "uncategorized",
    tags: Optional[List[str]] = None,
):
    """Insert a PENDING video the way the upload issuer does."""
    async with db.session() as session:
        video = await video_db_repository.create(
            session,
            owner_id=owner_id,
            title=title,
            provider=provider,
            provider_upload_ref=upload_ref,
            thumbnail_key=f"thumbnails/{upload_ref}.jpg",
            visibility=visibility,
            description=description,
            category=category,
            tags=tags,
        )
        if created_at is not None:
            video.created_at = created_at
    return video


async def load_video(db: Database, video_id: str):
    async with db.session() as session:
        return await video_db_repository.get_by_id(session, video_id)
