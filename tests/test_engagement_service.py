"""
Engagement counter tests: views, like toggling and the comment deletion window.
"""
from datetime import datetime, timedelta, timezone

import pytest

from helpers import ALICE, BOB, create_video, load_video
from tubehub.repositories import engagement_db_repository
from tubehub.services.background import BackgroundDispatcher
from tubehub.services.engagement_service import EngagementService


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return Clock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
async def dispatcher():
    dispatcher = BackgroundDispatcher(shutdown_timeout=1.0)
    yield dispatcher
    await dispatcher.shutdown()


@pytest.fixture
def service(db, dispatcher, settings, clock):
    return EngagementService(db, dispatcher, settings, clock=clock)


class TestViews:
    async def test_record_view_increments_in_background(self, db, service, dispatcher):
        video = await create_video(db)

        assert service.record_view(video.id) is True
        assert service.record_view(video.id) is True
        await dispatcher.drain()

        assert (await load_video(db, video.id)).view_count == 2

    async def test_missing_video_is_not_counted(self, db, service):
        assert await service.increment_view("missing") is False

    async def test_views_dropped_after_shutdown(self, db, service, dispatcher):
        video = await create_video(db)
        await dispatcher.shutdown()

        assert service.record_view(video.id) is False
        assert (await load_video(db, video.id)).view_count == 0


class TestLikes:
    async def test_toggle_twice_restores_state(self, db, service):
        video = await create_video(db)

        liked = await service.toggle_like(video.id, BOB)
        unliked = await service.toggle_like(video.id, BOB)

        assert liked.success is True
        assert liked.data == {"liked": True, "like_count": 1}
        assert unliked.data == {"liked": False, "like_count": 0}
        assert (await load_video(db, video.id)).like_count == 0

    async def test_likes_from_different_users_add_up(self, db, service):
        video = await create_video(db)

        await service.toggle_like(video.id, ALICE)
        result = await service.toggle_like(video.id, BOB)

        assert result.data["like_count"] == 2

    async def test_unlike_after_row_vanished_keeps_count(self, db, service, monkeypatch):
        video = await create_video(db)
        await service.toggle_like(video.id, ALICE)
        await service.toggle_like(video.id, BOB)
        async with db.session() as session:
            stale_row = await engagement_db_repository.get_like(session, video.id, BOB)
        await service.toggle_like(video.id, BOB)

        async def stale_get_like(session, video_id, user_id):
            return stale_row

        monkeypatch.setattr(engagement_db_repository, "get_like", stale_get_like)
        result = await service.toggle_like(video.id, BOB)

        assert result.success is False
        stored = await load_video(db, video.id)
        assert stored.like_count == 1

    async def test_like_missing_video(self, service):
        result = await service.toggle_like("missing", BOB)

        assert result.success is False
        assert result.message == "Video not found"


class TestComments:
    async def test_add_comment_updates_count(self, db, service, clock):
        video = await create_video(db)

        result = await service.add_comment(video.id, BOB, "  Great video!  ")

        assert result.success is True
        comment = result.data["comment"]
        assert comment["content"] == "Great video!"
        assert comment["user"]["handle"] == "bob"
        assert comment["created_at"] == clock.now.isoformat()
        assert (await load_video(db, video.id)).comment_count == 1

    @pytest.mark.parametrize("content", ["", "   "])
    async def test_empty_comment_rejected(self, db, service, content):
        video = await create_video(db)

        result = await service.add_comment(video.id, BOB, content)

        assert result.success is False
        assert (await load_video(db, video.id)).comment_count == 0

    async def test_overlong_comment_rejected(self, db, service, settings):
        video = await create_video(db)

        result = await service.add_comment(video.id, BOB, "x" * (settings.comment_max_length + 1))

        assert result.success is False

    async def test_delete_within_window(self, db, service, clock):
        video = await create_video(db)
        added = await service.add_comment(video.id, BOB, "first!")
        clock.advance(119)

        result = await service.delete_comment(added.data["comment"]["id"], BOB)

        assert result.success is True
        assert (await load_video(db, video.id)).comment_count == 0
        assert await service.list_comments(video.id) == []

    async def test_delete_after_window_refused(self, db, service, clock):
        video = await create_video(db)
        added = await service.add_comment(video.id, BOB, "first!")
        clock.advance(121)

        result = await service.delete_comment(added.data["comment"]["id"], BOB)

        assert result.success is False
        assert result.message == "Can only delete within 2 minutes. Posted 2 minutes ago"
        assert (await load_video(db, video.id)).comment_count == 1

    async def test_only_author_can_delete(self, db, service):
        video = await create_video(db)
        added = await service.add_comment(video.id, BOB, "mine")

        result = await service.delete_comment(added.data["comment"]["id"], ALICE)

        assert result.success is False
        assert result.message == "You can only delete your own comments"

    async def test_delete_missing_comment(self, service):
        result = await service.delete_comment("missing", BOB)

        assert result.success is False
        assert result.message == "Comment not found"

    async def test_list_comments_newest_first(self, db, service, clock):
        video = await create_video(db)
        await service.add_comment(video.id, BOB, "older")
        clock.advance(30)
        await service.add_comment(video.id, ALICE, "newer")

        comments = await service.list_comments(video.id)

        assert [c["content"] for c in comments] == ["newer", "older"]
        assert comments[0]["user"]["name"] == "Alice"
