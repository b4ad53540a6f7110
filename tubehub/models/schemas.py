"""
Pydantic models for API request/response validation.

Transport shapes only. Upload constraints are enforced by
validate_upload_request so every violation gets the same field-level error.
"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


# Request Models

class ThumbnailDescriptorRequest(BaseModel):
    """The thumbnail the client will upload directly to storage."""
    file_name: str
    content_type: str
    size_bytes: int


class InitiateUploadRequest(BaseModel):
    """Request model for starting a video upload."""
    title: str
    description: Optional[str] = None
    visibility: str = "public"
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    thumbnail: ThumbnailDescriptorRequest


class AddCommentRequest(BaseModel):
    """Request model for posting a comment."""
    content: str


# Response Models

class ThumbnailUploadTarget(BaseModel):
    """Presigned storage write for the thumbnail."""
    key: str
    url: str
    method: str
    headers: Dict[str, str]
    expires_at: datetime


class InitiateUploadResponse(BaseModel):
    """Response model for upload initiation."""
    video_id: str
    upload_target: Dict[str, Any]
    thumbnail_upload_target: ThumbnailUploadTarget
    expires_at: datetime
    reused: bool = False


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the provider."""
    received: bool = True
    outcome: str


class FeedItemResponse(BaseModel):
    """Response model for one feed entry."""
    id: str
    title: str
    thumbnail_key: str
    duration: Optional[int] = None
    view_count: int
    created_at: Optional[str] = None
    owner_id: str
    owner_name: Optional[str] = None
    owner_handle: Optional[str] = None


class SearchResponse(BaseModel):
    """Response model for video search."""
    results: list[FeedItemResponse]


class VideoOwner(BaseModel):
    id: str
    name: Optional[str] = None
    handle: Optional[str] = None
    image: Optional[str] = None


class VideoResponse(BaseModel):
    """Response model for the watch page."""
    id: str
    title: str
    description: str
    category: str
    tags: List[str]
    visibility: str
    status: str
    playback_ref: Optional[str] = None
    duration_seconds: Optional[int] = None
    thumbnail_key: str
    view_count: int
    like_count: int
    comment_count: int
    created_at: datetime
    owner: VideoOwner


class ActionResponse(BaseModel):
    """Result of a like or comment action."""
    success: bool
    message: str
    liked: Optional[bool] = None
    like_count: Optional[int] = None
    comment: Optional[Dict[str, Any]] = None


class CommentUser(BaseModel):
    id: str
    name: Optional[str] = None
    handle: Optional[str] = None
    image: Optional[str] = None


class CommentResponse(BaseModel):
    """Response model for a comment."""
    id: str
    video_id: str
    content: str
    like_count: int
    created_at: str
    user: CommentUser


class HealthResponse(BaseModel):
    """Response model for the health check."""
    status: str
    database: str
    redis: str
    providers: List[str]


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    field: Optional[str] = None
    status_code: int
