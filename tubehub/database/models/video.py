"""
Video model - central entity tracking an upload through provider processing.
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, Text, DateTime, ForeignKey, Enum, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from tubehub.database.base import Base


class VideoStatus(str, enum.Enum):
    """Lifecycle states. READY is terminal; failures delete the row."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"


class Visibility(str, enum.Enum):
    """Who may see a video in feeds."""
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    UNLISTED = "UNLISTED"


def generate_video_id() -> str:
    """Generate an opaque primary key."""
    return uuid.uuid4().hex


class Video(Base):
    """
    Videos table - one row per upload, keyed internally by id and externally
    by the provider's upload and asset references.
    """
    __tablename__ = "videos"

    # Columns
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_video_id)
    owner_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="uncategorized")
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, name="video_visibility"),
        nullable=False,
        default=Visibility.PUBLIC
    )
    status: Mapped[VideoStatus] = mapped_column(
        Enum(VideoStatus, name="video_status"),
        nullable=False,
        default=VideoStatus.PENDING
    )
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_upload_ref: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    provider_asset_ref: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    playback_candidate: Mapped[str | None] = mapped_column(String(255), nullable=True)
    playback_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumbnail_key: Mapped[str] = mapped_column(String(255), nullable=False)
    view_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="videos")
    likes: Mapped[list["VideoLike"]] = relationship(
        "VideoLike",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    # Constraints and Indexes
    __table_args__ = (
        UniqueConstraint('owner_id', 'idempotency_key', name='uq_videos_owner_idempotency_key'),
        Index('idx_videos_feed', 'visibility', 'status', 'created_at'),
    )
