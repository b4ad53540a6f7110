"""
HTTP surface tests through the ASGI app.
"""
import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock

import httpx
import pytest
import requests
from sqlalchemy import func, select

from helpers import ALICE, BOB, create_video, load_video
from tubehub.database.models.video import VideoStatus, Visibility
from tubehub.database.models.webhook_delivery import WebhookDelivery
from tubehub.main import create_app, init_state
from tubehub.providers import MuxAdapter
from tubehub.repositories import video_db_repository

MUX_SECRET = "mux-webhook-secret"


def signed(body: dict, secret: str = MUX_SECRET):
    raw = json.dumps(body).encode()
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + raw, hashlib.sha256).hexdigest()
    return raw, {"mux-signature": f"t={timestamp},v1={digest}", "content-type": "application/json"}


@pytest.fixture
def mux_http():
    http = MagicMock()
    response = http.request.return_value
    response.content = b"{}"
    response.json.return_value = {"data": {"id": "mux-asset-1", "status": "preparing"}}
    return http


@pytest.fixture
def app(settings, db, registry, storage, fake_redis, mux_http):
    registry.register(MuxAdapter("token-id", "token-secret", webhook_secret=MUX_SECRET, http=mux_http, max_retries=0))
    app = create_app(settings, manage_resources=False)
    init_state(app, settings, db, redis=fake_redis, providers=registry, storage=storage)
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.dispatcher.shutdown()


def upload_body(**overrides):
    body = {
        "title": "My first upload",
        "description": "hello",
        "visibility": "public",
        "tags": ["demo"],
        "thumbnail": {"file_name": "cover.png", "content_type": "image/png", "size_bytes": 1024},
    }
    body.update(overrides)
    return body


class TestUploads:
    async def test_initiate_upload(self, client, db):
        response = await client.post("/api/uploads", json=upload_body(), headers={"X-User-Id": ALICE})

        assert response.status_code == 201
        data = response.json()
        assert data["upload_target"]["url"] == "https://uploads.example.com/upload-1"
        assert data["thumbnail_upload_target"]["method"] == "PUT"
        assert data["thumbnail_upload_target"]["key"].endswith(".png")
        assert data["reused"] is False
        assert (await load_video(db, data["video_id"])).status == VideoStatus.PENDING

    async def test_idempotency_key_header(self, client):
        headers = {"X-User-Id": ALICE, "Idempotency-Key": "abc"}

        first = await client.post("/api/uploads", json=upload_body(), headers=headers)
        second = await client.post("/api/uploads", json=upload_body(), headers=headers)

        assert second.json()["video_id"] == first.json()["video_id"]
        assert second.json()["reused"] is True

    async def test_replayed_key_after_upload_is_conflict(self, client, db):
        headers = {"X-User-Id": ALICE, "Idempotency-Key": "abc"}
        await client.post("/api/uploads", json=upload_body(), headers=headers)
        async with db.session() as session:
            await video_db_repository.mark_uploaded(session, "upload-1", asset_ref="asset-1")

        response = await client.post("/api/uploads", json=upload_body(), headers=headers)

        assert response.status_code == 409

    async def test_validation_error_names_field(self, client):
        response = await client.post("/api/uploads", json=upload_body(title="ab"), headers={"X-User-Id": ALICE})

        assert response.status_code == 400
        assert response.json()["field"] == "title"
        assert response.json()["error"] == "Title must be between 3 and 100 characters"

    async def test_requires_user(self, client):
        response = await client.post("/api/uploads", json=upload_body())

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


class TestWebhooks:
    async def test_applies_event(self, client, db):
        video = await create_video(db, provider="mux", upload_ref="mux-upload-1")
        raw, headers = signed({
            "type": "video.upload.asset_created",
            "id": "evt-1",
            "data": {"id": "mux-upload-1", "asset_id": "mux-asset-1"},
        })

        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        assert (await load_video(db, video.id)).status == VideoStatus.PROCESSING

    async def test_redelivery_is_duplicate(self, client, db):
        await create_video(db, provider="mux", upload_ref="mux-upload-1")
        raw, headers = signed({
            "type": "video.asset.ready",
            "id": "evt-2",
            "data": {"id": "mux-asset-1", "upload_id": "mux-upload-1", "duration": 5.5,
                     "playback_ids": [{"id": "pb-1", "policy": "public"}]},
        })

        await client.post("/api/webhooks/mux", content=raw, headers=headers)
        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.json()["outcome"] == "duplicate"

    async def test_bad_signature_is_opaque_401_and_changes_nothing(self, client, db):
        video = await create_video(db, provider="mux", upload_ref="mux-upload-1")
        async with db.session() as session:
            await video_db_repository.mark_uploaded(session, "mux-upload-1", asset_ref="mux-asset-1")
        raw, headers = signed({
            "type": "video.asset.ready",
            "id": "evt-3",
            "data": {"id": "mux-asset-1", "upload_id": "mux-upload-1", "duration": 5.5,
                     "playback_ids": [{"id": "pb-1", "policy": "public"}]},
        }, secret="wrong")

        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        stored = await load_video(db, video.id)
        assert stored.status == VideoStatus.PROCESSING
        assert stored.playback_ref is None
        async with db.session() as session:
            deliveries = await session.execute(select(func.count()).select_from(WebhookDelivery))
            assert deliveries.scalar_one() == 0

    async def test_malformed_body_is_400(self, client):
        raw, headers = signed({"id": "evt-4"})

        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.status_code == 400

    async def test_unknown_provider_is_404(self, client):
        response = await client.post("/api/webhooks/vimeo", content=b"{}")

        assert response.status_code == 404

    async def test_unknown_video_is_acknowledged(self, client):
        raw, headers = signed({
            "type": "video.asset.created",
            "id": "evt-5",
            "data": {"id": "mux-asset-9", "upload_id": "mux-upload-9"},
        })

        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "not_found"

    async def test_ready_with_provider_down_asks_for_retry(self, client, db, mux_http):
        video = await create_video(db, provider="mux", upload_ref="mux-upload-1")
        mux_http.request.side_effect = requests.exceptions.ConnectionError("refused")
        raw, headers = signed({
            "type": "video.asset.ready",
            "id": "evt-6",
            "data": {"id": "mux-asset-1", "upload_id": "mux-upload-1"},
        })

        response = await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert response.status_code == 503
        assert response.headers["retry-after"] == "30"
        assert response.json() == {"received": False, "outcome": "deferred"}
        assert (await load_video(db, video.id)).status == VideoStatus.PENDING

    async def test_ready_invalidates_feed(self, client, db, fake_redis):
        await create_video(db, provider="mux", upload_ref="mux-upload-1")
        fake_redis.store["feed:videos:page:0"] = "[]"
        raw, headers = signed({
            "type": "video.asset.ready",
            "id": "evt-7",
            "data": {"id": "mux-asset-1", "upload_id": "mux-upload-1", "duration": 5.5,
                     "playback_ids": [{"id": "pb-1", "policy": "public"}]},
        })

        await client.post("/api/webhooks/mux", content=raw, headers=headers)

        assert "feed:videos:page:0" not in fake_redis.store


async def make_ready(db, **kwargs):
    video = await create_video(db, **kwargs)
    async with db.session() as session:
        await video_db_repository.mark_ready(session, video.id, playback_ref="pb-1", duration_seconds=12)
    return video


class TestVideos:
    async def test_feed(self, client, db):
        video = await make_ready(db)

        response = await client.get("/api/videos/feed")

        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == [video.id]
        assert response.json()[0]["owner_handle"] == "alice"

    async def test_watch_ready_video_counts_view(self, client, app, db):
        video = await make_ready(db)

        response = await client.get(f"/api/videos/{video.id}")
        await app.state.dispatcher.drain()

        assert response.status_code == 200
        assert response.json()["playback_ref"] == "pb-1"
        assert response.json()["owner"]["name"] == "Alice"
        assert (await load_video(db, video.id)).view_count == 1

    async def test_pending_video_visible_to_owner_only(self, client, db):
        video = await create_video(db)

        as_owner = await client.get(f"/api/videos/{video.id}", headers={"X-User-Id": ALICE})
        as_other = await client.get(f"/api/videos/{video.id}", headers={"X-User-Id": BOB})

        assert as_owner.status_code == 200
        assert as_owner.json()["status"] == "PENDING"
        assert as_other.status_code == 404

    async def test_search(self, client, db):
        video = await make_ready(db, title="Harbour sunrise")

        found = await client.get("/api/videos/search", params={"q": "harbour"})
        too_short = await client.get("/api/videos/search", params={"q": "h"})

        assert found.status_code == 200
        assert [item["id"] for item in found.json()["results"]] == [video.id]
        assert too_short.json() == {"results": []}

    async def test_private_video_hidden(self, client, db):
        video = await make_ready(db, visibility=Visibility.PRIVATE)

        response = await client.get(f"/api/videos/{video.id}")

        assert response.status_code == 404


class TestEngagement:
    async def test_like_toggle(self, client, db):
        video = await make_ready(db)
        headers = {"X-User-Id": BOB}

        liked = await client.post(f"/api/videos/{video.id}/like", headers=headers)
        unliked = await client.post(f"/api/videos/{video.id}/like", headers=headers)

        assert liked.json()["liked"] is True
        assert liked.json()["like_count"] == 1
        assert unliked.json()["liked"] is False
        assert unliked.json()["like_count"] == 0

    async def test_like_requires_user(self, client, db):
        video = await make_ready(db)

        response = await client.post(f"/api/videos/{video.id}/like")

        assert response.status_code == 401

    async def test_comment_lifecycle(self, client, db):
        video = await make_ready(db)
        headers = {"X-User-Id": BOB}

        added = await client.post(f"/api/videos/{video.id}/comments", json={"content": "nice"}, headers=headers)
        listed = await client.get(f"/api/videos/{video.id}/comments")
        refused = await client.delete(f"/api/comments/{added.json()['comment']['id']}", headers={"X-User-Id": ALICE})
        deleted = await client.delete(f"/api/comments/{added.json()['comment']['id']}", headers=headers)

        assert added.json()["success"] is True
        assert [c["content"] for c in listed.json()] == ["nice"]
        assert refused.status_code == 200
        assert refused.json()["success"] is False
        assert deleted.json() == {"success": True, "message": "Comment deleted",
                                  "liked": None, "like_count": None, "comment": None}


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"
    assert response.json()["redis"] == "connected"
    assert response.json()["providers"] == ["mux", "stub"]
