"""
Video database repository - CRUD and conditional state transitions for the videos table.

Every transition is a single UPDATE/DELETE whose WHERE clause carries the
status guard, so concurrent handlers on the same row are serialized by the
database rather than by application locks.
"""
import json
from datetime import datetime
from typing import Optional
from sqlalchemy import String, cast, select, delete, update, case, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tubehub.database.models.user import User
from tubehub.database.models.video import Video, VideoStatus, Visibility

# Statuses from which a record may still move forward or be discarded
UNFINISHED_STATUSES = (VideoStatus.PENDING, VideoStatus.PROCESSING)

COUNTER_FIELDS = {"view_count", "like_count", "comment_count"}


async def create(
    session: AsyncSession,
    owner_id: str,
    title: str,
    provider: str,
    provider_upload_ref: str,
    thumbnail_key: str,
    visibility: Visibility,
    description: str = "",
    category: str = "uncategorized",
    tags: Optional[list[str]] = None,
    idempotency_key: Optional[str] = None,
) -> Video:
    """
    Create a new PENDING video record.

    Args:
        session: Async database session
        owner_id: Uploading user's id
        title: Validated title
        provider: Name of the transcoding provider holding the upload session
        provider_upload_ref: Provider upload session handle
        thumbnail_key: Storage key reserved for the thumbnail
        visibility: Visibility enum value
        description: Optional description
        category: Category label
        tags: Tag list
        idempotency_key: Client-supplied key making retries safe

    Returns:
        Created Video instance

    Raises:
        IntegrityError: If the upload ref or (owner, idempotency key) already exists
    """
    video = Video(
        owner_id=owner_id,
        title=title,
        description=description,
        category=category,
        tags=tags or [],
        visibility=visibility,
        status=VideoStatus.PENDING,
        provider=provider,
        provider_upload_ref=provider_upload_ref,
        thumbnail_key=thumbnail_key,
        idempotency_key=idempotency_key,
    )
    session.add(video)
    await session.flush()  # Flush to surface unique violations now
    await session.refresh(video)  # Refresh to get server defaults
    return video


async def get_by_id(session: AsyncSession, video_id: str) -> Optional[Video]:
    """Get a video by its primary key."""
    stmt = select(Video).where(Video.id == video_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_upload_ref(session: AsyncSession, upload_ref: str) -> Optional[Video]:
    """Get a video by the provider's upload session handle."""
    stmt = select(Video).where(Video.provider_upload_ref == upload_ref)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_asset_ref(session: AsyncSession, asset_ref: str) -> Optional[Video]:
    """Get a video by the provider's encoded asset handle."""
    stmt = select(Video).where(Video.provider_asset_ref == asset_ref)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_idempotency_key(
    session: AsyncSession,
    owner_id: str,
    idempotency_key: str
) -> Optional[Video]:
    """Get the video an owner already created with this idempotency key."""
    stmt = select(Video).where(
        Video.owner_id == owner_id,
        Video.idempotency_key == idempotency_key,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _update_returning(session: AsyncSession, stmt) -> Optional[Video]:
    stmt = stmt.returning(Video).execution_options(
        synchronize_session="fetch",
        populate_existing=True,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def mark_uploaded(
    session: AsyncSession,
    upload_ref: str,
    asset_ref: str,
    playback_candidate: Optional[str] = None,
) -> Optional[Video]:
    """
    Bind the asset ref and move the record to PROCESSING.

    Applies only while the record is PENDING or PROCESSING; a READY record
    is left untouched. An existing playback candidate is kept when none is
    supplied.

    Returns:
        Updated Video, or None if no unfinished record has this upload ref
    """
    stmt = (
        update(Video)
        .where(
            Video.provider_upload_ref == upload_ref,
            Video.status.in_(UNFINISHED_STATUSES),
        )
        .values(
            provider_asset_ref=asset_ref,
            status=VideoStatus.PROCESSING,
            playback_candidate=func.coalesce(playback_candidate, Video.playback_candidate),
        )
    )
    return await _update_returning(session, stmt)


async def mark_processing(
    session: AsyncSession,
    video_id: str,
    asset_ref: Optional[str] = None,
) -> Optional[Video]:
    """
    Move a PENDING record to PROCESSING, binding the asset ref if it is missing.

    Returns:
        Updated Video, or None if the record is absent or already past PENDING
    """
    values = {"status": VideoStatus.PROCESSING}
    if asset_ref:
        values["provider_asset_ref"] = func.coalesce(Video.provider_asset_ref, asset_ref)
    stmt = (
        update(Video)
        .where(Video.id == video_id, Video.status == VideoStatus.PENDING)
        .values(**values)
    )
    return await _update_returning(session, stmt)


async def mark_ready(
    session: AsyncSession,
    video_id: str,
    playback_ref: str,
    duration_seconds: int,
    asset_ref: Optional[str] = None,
) -> Optional[Video]:
    """
    Move an unfinished record to READY with its playback ref and duration.

    Returns:
        Updated Video, or None if the record is absent or already READY
    """
    values = {
        "status": VideoStatus.READY,
        "playback_ref": playback_ref,
        "duration_seconds": duration_seconds,
    }
    if asset_ref:
        values["provider_asset_ref"] = func.coalesce(Video.provider_asset_ref, asset_ref)
    stmt = (
        update(Video)
        .where(Video.id == video_id, Video.status.in_(UNFINISHED_STATUSES))
        .values(**values)
    )
    return await _update_returning(session, stmt)


async def delete_unfinished(session: AsyncSession, video_id: str) -> bool:
    """
    Delete a record that has not reached READY.

    Returns:
        True if deleted, False if already gone or READY
    """
    stmt = (
        delete(Video)
        .where(Video.id == video_id, Video.status.in_(UNFINISHED_STATUSES))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def increment_counter(
    session: AsyncSession,
    video_id: str,
    field: str,
    delta: int = 1,
) -> bool:
    """
    Atomically add delta to a counter column, never going below zero.

    Args:
        session: Async database session
        video_id: Video ID
        field: One of view_count, like_count, comment_count
        delta: Signed increment

    Returns:
        True if the video exists, False otherwise
    """
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Unknown counter field: {field}")

    column = getattr(Video, field)
    new_value = case((column + delta < 0, 0), else_=column + delta)
    stmt = (
        update(Video)
        .where(Video.id == video_id)
        .values({field: new_value})
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_feed_page(
    session: AsyncSession,
    page: int,
    page_size: int,
) -> list[tuple[Video, User]]:
    """
    List public READY videos with their owners, newest first.

    Args:
        session: Async database session
        page: Zero-based page index
        page_size: Rows per page

    Returns:
        List of (Video, User) pairs
    """
    stmt = (
        select(Video, User)
        .join(User, User.id == Video.owner_id)
        .where(
            Video.visibility == Visibility.PUBLIC,
            Video.status == VideoStatus.READY,
        )
        .order_by(Video.created_at.desc(), Video.id.desc())
        .offset(page * page_size)
        .limit(page_size)
    )
    result = await session.execute(stmt)
    return [(video, user) for video, user in result.all()]


async def search(
    session: AsyncSession,
    query: str,
    limit: int = 20,
) -> list[tuple[Video, User]]:
    """
    Search public READY videos with their owners, newest first.

    Title, description, category and the owner's name or handle match
    case-insensitively as substrings; a tag must equal the query exactly.

    Args:
        session: Async database session
        query: Search text
        limit: Maximum number of rows

    Returns:
        List of (Video, User) pairs
    """
    # Tags are stored as a JSON array, so an exact element appears as its
    # JSON-encoded string inside the serialized column
    tag_token = json.dumps(query)
    stmt = (
        select(Video, User)
        .join(User, User.id == Video.owner_id)
        .where(
            Video.visibility == Visibility.PUBLIC,
            Video.status == VideoStatus.READY,
            or_(
                Video.title.icontains(query, autoescape=True),
                Video.description.icontains(query, autoescape=True),
                Video.category.icontains(query, autoescape=True),
                User.name.icontains(query, autoescape=True),
                User.handle.icontains(query, autoescape=True),
                cast(Video.tags, String).contains(tag_token, autoescape=True),
            ),
        )
        .order_by(Video.created_at.desc(), Video.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return [(video, user) for video, user in result.all()]


async def list_stale_pending(session: AsyncSession, created_before: datetime) -> list[Video]:
    """List PENDING videos created before the cutoff (uploads never started)."""
    stmt = (
        select(Video)
        .where(Video.status == VideoStatus.PENDING, Video.created_at < created_before)
        .order_by(Video.created_at)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_pending_by_id(session: AsyncSession, video_id: str) -> bool:
    """Delete a record only if it is still PENDING."""
    stmt = (
        delete(Video)
        .where(Video.id == video_id, Video.status == VideoStatus.PENDING)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def get_with_owner(session: AsyncSession, video_id: str) -> Optional[Video]:
    """Get a video with its owner loaded."""
    stmt = select(Video).options(selectinload(Video.owner)).where(Video.id == video_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
