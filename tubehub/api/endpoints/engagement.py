"""
Like and comment endpoints.
Actions answer {success, message}; a refused action is not an HTTP error.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from tubehub.api.deps import get_current_user_id, get_engagement_service
from tubehub.models.schemas import ActionResponse, AddCommentRequest, CommentResponse
from tubehub.services.engagement_service import EngagementService

router = APIRouter()


@router.post("/videos/{video_id}/like", response_model=ActionResponse)
async def toggle_like(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    engagement: EngagementService = Depends(get_engagement_service),
):
    """Like a video, or remove the like."""
    result = await engagement.toggle_like(video_id, user_id)
    return result.to_dict()


@router.get("/videos/{video_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    video_id: str,
    page: int = Query(default=0, ge=0),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    engagement: EngagementService = Depends(get_engagement_service),
):
    """Comments on a video, newest first."""
    return await engagement.list_comments(video_id, page, limit)


@router.post("/videos/{video_id}/comments", response_model=ActionResponse)
async def add_comment(
    video_id: str,
    body: AddCommentRequest,
    user_id: str = Depends(get_current_user_id),
    engagement: EngagementService = Depends(get_engagement_service),
):
    """Post a comment."""
    result = await engagement.add_comment(video_id, user_id, body.content)
    return result.to_dict()


@router.delete("/comments/{comment_id}", response_model=ActionResponse)
async def delete_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    engagement: EngagementService = Depends(get_engagement_service),
):
    """Delete your own comment shortly after posting it."""
    result = await engagement.delete_comment(comment_id, user_id)
    return result.to_dict()
