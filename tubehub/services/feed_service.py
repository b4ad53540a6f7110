"""
Feed Cache Gateway.

Read-through Redis cache in front of the public feed query. Pages are cached
as JSON under feed:videos:page:<n> with a short TTL; Redis being unavailable
only costs a database query.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tubehub.database.session import Database
from tubehub.repositories import video_db_repository

logger = logging.getLogger(__name__)

KEY_PREFIX = "feed:videos:page:"
SEARCH_MIN_QUERY_LENGTH = 2
SEARCH_LIMIT = 20


def _page_key(page: int) -> str:
    """Get Redis key for a cached feed page."""
    return f"{KEY_PREFIX}{page}"


def feed_item(video, user) -> Dict[str, Any]:
    return {
        "id": video.id,
        "title": video.title,
        "thumbnail_key": video.thumbnail_key,
        "duration": video.duration_seconds,
        "view_count": video.view_count,
        "created_at": video.created_at.isoformat() if video.created_at else None,
        "owner_id": user.id,
        "owner_name": user.name,
        "owner_handle": user.handle,
    }


class FeedService:
    """Cached access to the newest-first feed of public READY videos."""

    def __init__(
        self,
        db: Database,
        redis: Optional[aioredis.Redis],
        ttl_seconds: int = 120,
        page_size: int = 20,
    ):
        self.db = db
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.page_size = page_size

    async def get_page(self, page: int = 0) -> List[Dict[str, Any]]:
        """
        Get one page of the feed.

        Args:
            page: Zero-based page index

        Returns:
            List of feed item dicts
        """
        page = max(page, 0)
        key = _page_key(page)

        cached = await self._read(key)
        if cached is not None:
            logger.debug(f"Feed cache hit for page {page}")
            return cached

        logger.debug(f"Feed cache miss for page {page}")
        async with self.db.session() as session:
            rows = await video_db_repository.list_feed_page(session, page, self.page_size)

        items = [feed_item(video, user) for video, user in rows]

        await self._write(key, items)
        return items

    async def search(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """
        Search public READY videos. Results are not cached.

        Queries shorter than two characters return no results.
        """
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_QUERY_LENGTH:
            return []
        async with self.db.session() as session:
            rows = await video_db_repository.search(session, query, SEARCH_LIMIT)
        return [feed_item(video, user) for video, user in rows]

    async def invalidate(self) -> int:
        """
        Drop every cached feed page.

        Returns:
            Number of keys deleted (0 if Redis is unavailable)
        """
        if self.redis is None:
            return 0
        try:
            keys = [key async for key in self.redis.scan_iter(match=f"{KEY_PREFIX}*")]
            if not keys:
                return 0
            deleted = await self.redis.delete(*keys)
            logger.info(f"Invalidated {deleted} cached feed pages")
            return deleted
        except RedisError as e:
            logger.warning(f"Feed cache invalidation failed: {e}")
            return 0

    async def on_video_ready(self, video_id: str) -> None:
        """Reconciler hook: a newly READY video changes every page."""
        await self.invalidate()

    async def _read(self, key: str) -> Optional[List[Dict[str, Any]]]:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Feed cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding corrupt feed cache entry {key}")
            return None

    async def _write(self, key: str, items: List[Dict[str, Any]]) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, json.dumps(items), ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"Feed cache write failed for {key}: {e}")
