"""
Engagement models - per-user likes and comments on videos.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from tubehub.database.base import Base


class VideoLike(Base):
    """
    Video likes table - at most one row per (video, user).
    """
    __tablename__ = "video_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("videos.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    video: Mapped["Video"] = relationship("Video", back_populates="likes")

    __table_args__ = (
        UniqueConstraint('video_id', 'user_id', name='uq_video_likes_video_user'),
    )


class Comment(Base):
    """
    Comments table - created_at is the server-side clock at insert time and
    is the only timestamp used for the deletion window.
    """
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    video_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("videos.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True
    )

    video: Mapped["Video"] = relationship("Video", back_populates="comments")
    user: Mapped["User"] = relationship("User")
