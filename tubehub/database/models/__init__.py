"""
Database models package.
All models must be imported here so Alembic can discover them via Base.metadata.
"""
from tubehub.database.models.user import User
from tubehub.database.models.video import Video, VideoStatus, Visibility
from tubehub.database.models.engagement import VideoLike, Comment
from tubehub.database.models.webhook_delivery import WebhookDelivery

__all__ = [
    "User",
    "Video",
    "VideoStatus",
    "Visibility",
    "VideoLike",
    "Comment",
    "WebhookDelivery",
]
