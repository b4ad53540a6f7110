"""
Engagement Counters - views, likes and comments.

Counter columns live on the videos table and are only changed through
atomic increments in the same transaction as the row they count.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from tubehub.core.config import Settings
from tubehub.database.models.engagement import Comment
from tubehub.database.session import Database
from tubehub.models.domain import ActionResult
from tubehub.repositories import engagement_db_repository, video_db_repository
from tubehub.services.background import BackgroundDispatcher
from tubehub.utils.timestamp_utils import ensure_utc, seconds_between, utcnow

logger = logging.getLogger(__name__)


def comment_to_dict(comment: Comment) -> Dict[str, Any]:
    """Serialize a comment with its author."""
    user = comment.user
    return {
        "id": comment.id,
        "video_id": comment.video_id,
        "content": comment.content,
        "like_count": comment.like_count,
        "created_at": ensure_utc(comment.created_at).isoformat(),
        "user": {
            "id": comment.user_id,
            "name": user.name if user else None,
            "handle": user.handle if user else None,
            "image": user.image if user else None,
        },
    }


class EngagementService:
    """View, like and comment operations."""

    def __init__(
        self,
        db: Database,
        dispatcher: BackgroundDispatcher,
        settings: Settings,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def record_view(self, video_id: str) -> bool:
        """Schedule a view increment without waiting for it."""
        return self.dispatcher.submit(self.increment_view(video_id), name=f"increment_view:{video_id}")

    async def increment_view(self, video_id: str) -> bool:
        async with self.db.session() as session:
            found = await video_db_repository.increment_counter(session, video_id, "view_count", 1)
        if not found:
            logger.debug(f"View for missing video {video_id} not counted")
        return found

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    async def toggle_like(self, video_id: str, user_id: str) -> ActionResult:
        """
        Like the video, or remove the like if the user already likes it.

        The like row and the like_count change commit together.
        """
        try:
            async with self.db.session() as session:
                video = await video_db_repository.get_by_id(session, video_id)
                if video is None:
                    return ActionResult(success=False, message="Video not found")

                existing = await engagement_db_repository.get_like(session, video_id, user_id)
                if existing is not None:
                    removed = await engagement_db_repository.delete_like(session, video_id, user_id)
                    if not removed:
                        # A concurrent unlike by the same user removed the row first
                        logger.info(f"Like for video {video_id} by {user_id} already removed")
                        return ActionResult(success=False, message="Like is already being updated, please retry")
                    await video_db_repository.increment_counter(session, video_id, "like_count", -1)
                    liked = False
                else:
                    await engagement_db_repository.create_like(session, video_id, user_id)
                    await video_db_repository.increment_counter(session, video_id, "like_count", 1)
                    liked = True

                await session.refresh(video, attribute_names=["like_count"])
                like_count = video.like_count
        except IntegrityError:
            # A concurrent toggle by the same user inserted the row first
            logger.info(f"Concurrent like toggle for video {video_id} by {user_id}")
            return ActionResult(success=False, message="Like is already being updated, please retry")

        return ActionResult(
            success=True,
            message="Video liked" if liked else "Like removed",
            data={"liked": liked, "like_count": like_count},
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(self, video_id: str, user_id: str, content: str) -> ActionResult:
        content = (content or "").strip()
        if not content:
            return ActionResult(success=False, message="Comment cannot be empty")
        if len(content) > self.settings.comment_max_length:
            return ActionResult(
                success=False,
                message=f"Comment must be at most {self.settings.comment_max_length} characters",
            )

        async with self.db.session() as session:
            video = await video_db_repository.get_by_id(session, video_id)
            if video is None:
                return ActionResult(success=False, message="Video not found")

            comment = await engagement_db_repository.create_comment(
                session,
                video_id=video_id,
                user_id=user_id,
                content=content,
                created_at=self.clock(),
            )
            await video_db_repository.increment_counter(session, video_id, "comment_count", 1)
            payload = comment_to_dict(comment)

        return ActionResult(success=True, message="Comment added", data={"comment": payload})

    async def delete_comment(self, comment_id: str, user_id: str) -> ActionResult:
        """
        Delete the caller's own comment within the deletion window.

        Elapsed time is measured from the stored created_at to the server
        clock; nothing the client sends is used.
        """
        window = self.settings.comment_delete_window_seconds

        async with self.db.session() as session:
            comment = await engagement_db_repository.get_comment(session, comment_id)
            if comment is None:
                return ActionResult(success=False, message="Comment not found")
            if comment.user_id != user_id:
                return ActionResult(success=False, message="You can only delete your own comments")

            elapsed = seconds_between(comment.created_at, self.clock())
            if elapsed > window:
                minutes = int(elapsed // 60)
                return ActionResult(
                    success=False,
                    message=f"Can only delete within {window // 60} minutes. Posted {minutes} minutes ago",
                )

            deleted = await engagement_db_repository.delete_comment(session, comment_id)
            if not deleted:
                return ActionResult(success=False, message="Comment not found")
            await video_db_repository.increment_counter(session, comment.video_id, "comment_count", -1)

        return ActionResult(success=True, message="Comment deleted")

    async def list_comments(
        self,
        video_id: str,
        page: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List comments newest first."""
        limit = limit or self.settings.comment_page_size
        async with self.db.session() as session:
            comments = await engagement_db_repository.list_comments(session, video_id, max(page, 0), limit)
            return [comment_to_dict(comment) for comment in comments]
