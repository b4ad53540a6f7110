"""
Engagement database repository - like and comment rows.
Counter columns on the videos table are maintained by the caller in the
same transaction via video_db_repository.increment_counter.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tubehub.database.models.engagement import VideoLike, Comment


async def get_like(session: AsyncSession, video_id: str, user_id: str) -> Optional[VideoLike]:
    """Get a user's like on a video, if any."""
    stmt = select(VideoLike).where(
        VideoLike.video_id == video_id,
        VideoLike.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_like(session: AsyncSession, video_id: str, user_id: str) -> VideoLike:
    """
    Insert a like row.

    Raises:
        IntegrityError: If the user already likes this video
    """
    like = VideoLike(video_id=video_id, user_id=user_id)
    session.add(like)
    await session.flush()
    return like


async def delete_like(session: AsyncSession, video_id: str, user_id: str) -> bool:
    """
    Delete a like row.

    Returns:
        True if a row was deleted
    """
    stmt = (
        delete(VideoLike)
        .where(VideoLike.video_id == video_id, VideoLike.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def create_comment(
    session: AsyncSession,
    video_id: str,
    user_id: str,
    content: str,
    created_at: Optional[datetime] = None,
) -> Comment:
    """
    Insert a comment row.

    Args:
        created_at: Server clock reading; defaults to the database clock

    Returns:
        Created Comment with its author loaded
    """
    comment = Comment(video_id=video_id, user_id=user_id, content=content)
    if created_at is not None:
        comment.created_at = created_at
    session.add(comment)
    await session.flush()
    await session.refresh(comment, attribute_names=["created_at", "user"])
    return comment


async def get_comment(session: AsyncSession, comment_id: str) -> Optional[Comment]:
    """Get a comment by id."""
    stmt = select(Comment).where(Comment.id == comment_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def delete_comment(session: AsyncSession, comment_id: str) -> bool:
    """
    Delete a comment row.

    Returns:
        True if a row was deleted
    """
    stmt = (
        delete(Comment)
        .where(Comment.id == comment_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_comments(
    session: AsyncSession,
    video_id: str,
    page: int,
    limit: int,
) -> list[Comment]:
    """List a video's comments with authors, newest first."""
    stmt = (
        select(Comment)
        .options(selectinload(Comment.user))
        .where(Comment.video_id == video_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset(page * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
