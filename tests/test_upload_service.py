"""
Upload validation and credential issuing tests.
"""
import pytest
from sqlalchemy import func, select

from helpers import ALICE, BOB
from tubehub.core.exceptions import ConflictException, UpstreamException, ValidationException
from tubehub.database.models.video import Video, VideoStatus, Visibility
from tubehub.repositories import video_db_repository
from tubehub.services.upload_service import (
    ThumbnailDescriptor,
    UploadCredentialIssuer,
    UploadMetadata,
    validate_upload_request,
)


def jpeg(size: int = 2048) -> ThumbnailDescriptor:
    return ThumbnailDescriptor(file_name="cover.jpg", content_type="image/jpeg", size_bytes=size)


async def count_videos(db) -> int:
    async with db.session() as session:
        result = await session.execute(select(func.count()).select_from(Video))
        return result.scalar_one()


@pytest.fixture
def issuer(db, registry, storage, settings):
    return UploadCredentialIssuer(db, registry, storage, settings)


class TestValidateUploadRequest:
    def test_normalizes_fields(self):
        validated = validate_upload_request(
            UploadMetadata(
                title="  Sunset timelapse  ",
                visibility="Unlisted",
                tags=["travel", " travel ", "", "sky"],
            ),
            jpeg(),
        )

        assert validated.title == "Sunset timelapse"
        assert validated.visibility is Visibility.UNLISTED
        assert validated.category == "uncategorized"
        assert validated.tags == ["travel", "sky"]
        assert validated.description == ""

    @pytest.mark.parametrize("title", ["ab", "  ab  ", "", "x" * 101])
    def test_title_length(self, title):
        with pytest.raises(ValidationException) as exc_info:
            validate_upload_request(UploadMetadata(title=title), jpeg())

        assert exc_info.value.field == "title"
        assert exc_info.value.message == "Title must be between 3 and 100 characters"

    def test_title_boundaries_accepted(self):
        validate_upload_request(UploadMetadata(title="abc"), jpeg())
        validate_upload_request(UploadMetadata(title="x" * 100), jpeg())

    @pytest.mark.parametrize(
        "metadata, field",
        [
            (UploadMetadata(title="Valid", description="d" * 5001), "description"),
            (UploadMetadata(title="Valid", visibility="friends"), "visibility"),
            (UploadMetadata(title="Valid", category="c" * 51), "category"),
            (UploadMetadata(title="Valid", tags=["t" * 31]), "tags"),
            (UploadMetadata(title="Valid", tags=[f"tag{i}" for i in range(11)]), "tags"),
        ],
    )
    def test_metadata_violations_name_the_field(self, metadata, field):
        with pytest.raises(ValidationException) as exc_info:
            validate_upload_request(metadata, jpeg())

        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        "thumbnail",
        [
            ThumbnailDescriptor(file_name="cover.gif", content_type="image/gif", size_bytes=100),
            ThumbnailDescriptor(file_name="", content_type="image/png", size_bytes=100),
            ThumbnailDescriptor(file_name="cover.png", content_type="image/png", size_bytes=0),
            ThumbnailDescriptor(file_name="cover.png", content_type="image/png", size_bytes=11 * 1024 * 1024),
        ],
    )
    def test_thumbnail_violations(self, thumbnail):
        with pytest.raises(ValidationException) as exc_info:
            validate_upload_request(UploadMetadata(title="Valid"), thumbnail)

        assert exc_info.value.field == "thumbnail"


class TestInitiateUpload:
    async def test_creates_pending_record_and_credentials(self, db, adapter, issuer, gcs_client):
        ticket = await issuer.initiate_upload(
            ALICE, UploadMetadata(title="First video", tags=["demo"]), jpeg()
        )

        assert ticket.reused is False
        assert ticket.upload_target["url"] == "https://uploads.example.com/upload-1"
        assert ticket.thumbnail_upload.url == "https://storage.googleapis.com/test-bucket/signed"
        assert ticket.thumbnail_upload.method == "PUT"
        assert ticket.thumbnail_upload.key.endswith(".jpg")
        assert ticket.expires_at <= ticket.thumbnail_upload.expires_at

        async with db.session() as session:
            video = await session.get(Video, ticket.video_id)
        assert video.status == VideoStatus.PENDING
        assert video.owner_id == ALICE
        assert video.provider == "stub"
        assert video.provider_upload_ref == "upload-1"
        assert video.thumbnail_key == ticket.thumbnail_upload.key
        assert video.tags == ["demo"]
        assert video.playback_ref is None

        signed_kwargs = gcs_client.bucket.return_value.blob.return_value.generate_signed_url.call_args.kwargs
        assert signed_kwargs["method"] == "PUT"
        assert signed_kwargs["content_type"] == "image/jpeg"

    async def test_validation_failure_creates_nothing(self, db, adapter, issuer):
        with pytest.raises(ValidationException) as exc_info:
            await issuer.initiate_upload(ALICE, UploadMetadata(title="ab"), jpeg())

        assert exc_info.value.field == "title"
        assert adapter.created == []
        assert await count_videos(db) == 0

    async def test_same_idempotency_key_returns_same_video(self, db, adapter, issuer):
        first = await issuer.initiate_upload(ALICE, UploadMetadata(title="Retry me"), jpeg(), idempotency_key="k-1")
        second = await issuer.initiate_upload(ALICE, UploadMetadata(title="Retry me"), jpeg(), idempotency_key="k-1")

        assert second.video_id == first.video_id
        assert second.reused is True
        assert second.upload_target == first.upload_target
        assert adapter.created == ["upload-1"]
        assert await count_videos(db) == 1

    async def test_key_replay_after_upload_arrived_is_refused(self, db, adapter, issuer):
        await issuer.initiate_upload(ALICE, UploadMetadata(title="Retry me"), jpeg(), idempotency_key="k-1")
        async with db.session() as session:
            await video_db_repository.mark_uploaded(session, "upload-1", asset_ref="asset-1")

        with pytest.raises(ConflictException):
            await issuer.initiate_upload(ALICE, UploadMetadata(title="Retry me"), jpeg(), idempotency_key="k-1")

        assert adapter.created == ["upload-1"]
        assert await count_videos(db) == 1

    async def test_idempotency_key_is_scoped_per_owner(self, db, issuer):
        first = await issuer.initiate_upload(ALICE, UploadMetadata(title="Shared key"), jpeg(), idempotency_key="k-1")
        second = await issuer.initiate_upload(BOB, UploadMetadata(title="Shared key"), jpeg(), idempotency_key="k-1")

        assert second.video_id != first.video_id
        assert await count_videos(db) == 2

    async def test_without_key_each_call_creates_a_record(self, db, issuer):
        await issuer.initiate_upload(ALICE, UploadMetadata(title="Twice"), jpeg())
        await issuer.initiate_upload(ALICE, UploadMetadata(title="Twice"), jpeg())

        assert await count_videos(db) == 2

    async def test_provider_failure_persists_nothing(self, db, adapter, issuer, caplog):
        caplog.set_level("ERROR", logger="tubehub.services.upload_service")
        adapter.create_error = UpstreamException("stub", "create_upload_session", "HTTP 503")

        with pytest.raises(UpstreamException):
            await issuer.initiate_upload(ALICE, UploadMetadata(title="Doomed"), jpeg())

        assert await count_videos(db) == 0
        errors = [r for r in caplog.records if getattr(r, "event", None) == "operation_error"]
        assert len(errors) == 1
        assert errors[0].context["error_type"] == "UpstreamException"

    async def test_presign_failure_cancels_provider_session(self, db, adapter, issuer, gcs_client):
        blob = gcs_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.side_effect = RuntimeError("no signing key")

        with pytest.raises(UpstreamException):
            await issuer.initiate_upload(ALICE, UploadMetadata(title="Doomed"), jpeg())

        assert adapter.cancelled == ["upload-1"]
        assert await count_videos(db) == 0
