"""
Video read endpoints: the public feed, search and the watch page.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from tubehub.api.deps import get_engagement_service, get_feed_service, get_optional_user_id
from tubehub.core.exceptions import NotFoundException
from tubehub.database.dependencies import get_database
from tubehub.database.models.video import VideoStatus, Visibility
from tubehub.database.session import Database
from tubehub.models.schemas import FeedItemResponse, SearchResponse, VideoOwner, VideoResponse
from tubehub.repositories import video_db_repository
from tubehub.services.engagement_service import EngagementService
from tubehub.services.feed_service import FeedService

router = APIRouter()


@router.get("/videos/feed", response_model=list[FeedItemResponse])
async def get_feed(
    page: int = Query(default=0, ge=0),
    feed: FeedService = Depends(get_feed_service),
):
    """Newest public videos that finished processing."""
    return await feed.get_page(page)


@router.get("/videos/search", response_model=SearchResponse)
async def search_videos(
    q: Optional[str] = Query(default=None),
    feed: FeedService = Depends(get_feed_service),
):
    """Search public videos by title, description, category, owner or exact tag."""
    return SearchResponse(results=await feed.search(q))


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Database = Depends(get_database),
    engagement: EngagementService = Depends(get_engagement_service),
):
    """
    Watch-page payload.

    Others see only READY videos that are not private; the owner sees
    their own videos in any state. Loading a READY video counts a view
    in the background.
    """
    async with db.session() as session:
        video = await video_db_repository.get_with_owner(session, video_id)

    if video is None:
        raise NotFoundException("Video", video_id)

    is_owner = user_id is not None and user_id == video.owner_id
    visible = video.status == VideoStatus.READY and video.visibility != Visibility.PRIVATE
    if not (is_owner or visible):
        raise NotFoundException("Video", video_id)

    if video.status == VideoStatus.READY:
        engagement.record_view(video.id)

    owner = video.owner
    return VideoResponse(
        id=video.id,
        title=video.title,
        description=video.description,
        category=video.category,
        tags=video.tags or [],
        visibility=video.visibility.value,
        status=video.status.value,
        playback_ref=video.playback_ref,
        duration_seconds=video.duration_seconds,
        thumbnail_key=video.thumbnail_key,
        view_count=video.view_count,
        like_count=video.like_count,
        comment_count=video.comment_count,
        created_at=video.created_at,
        owner=VideoOwner(id=owner.id, name=owner.name, handle=owner.handle, image=owner.image),
    )
