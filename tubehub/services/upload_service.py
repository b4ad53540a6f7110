"""
Upload Credential Issuer.

Creates a PENDING video record and hands the client time-boxed credentials
for pushing the raw video to the transcoding provider and the thumbnail to
object storage. Bytes never pass through this service.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tubehub.core.config import Settings
from tubehub.core.exceptions import ConflictException, TubeHubException, ValidationException
from tubehub.core.logging import log_event, log_operation_error
from tubehub.database.models.video import Video, VideoStatus, Visibility
from tubehub.database.session import Database
from tubehub.models.domain import UploadSession, UploadTicket
from tubehub.providers import ProviderRegistry
from tubehub.repositories import video_db_repository
from tubehub.services.thumbnail_storage import EXTENSIONS, ThumbnailStorage

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 5000
CATEGORY_MAX_LENGTH = 50
DEFAULT_CATEGORY = "uncategorized"
MAX_TAGS = 10
TAG_MAX_LENGTH = 30
THUMBNAIL_CONTENT_TYPES = frozenset(EXTENSIONS)


@dataclass
class UploadMetadata:
    """Metadata submitted with an upload request."""
    title: str
    description: Optional[str] = None
    visibility: str = "public"
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ThumbnailDescriptor:
    """Describes the thumbnail file the client is about to upload."""
    file_name: str
    content_type: str
    size_bytes: int


@dataclass
class ValidatedUpload:
    """Normalized upload request, safe to persist."""
    title: str
    description: str
    visibility: Visibility
    category: str
    tags: List[str]
    thumbnail_content_type: str


def validate_upload_request(
    metadata: UploadMetadata,
    thumbnail: ThumbnailDescriptor,
    max_thumbnail_bytes: int = 10 * 1024 * 1024,
) -> ValidatedUpload:
    """
    Validate and normalize an upload request.

    Raises:
        ValidationException: On the first violated constraint, naming the field
    """
    title = (metadata.title or "").strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ValidationException(
            "title",
            f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters"
        )

    description = (metadata.description or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationException(
            "description",
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )

    try:
        visibility = Visibility((metadata.visibility or "").strip().upper())
    except ValueError:
        raise ValidationException("visibility", "Visibility must be one of: public, private, unlisted")

    category = (metadata.category or "").strip() or DEFAULT_CATEGORY
    if len(category) > CATEGORY_MAX_LENGTH:
        raise ValidationException(
            "category",
            f"Category must be at most {CATEGORY_MAX_LENGTH} characters"
        )

    tags: List[str] = []
    for raw_tag in metadata.tags or []:
        tag = (raw_tag or "").strip()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationException("tags", f"Each tag must be at most {TAG_MAX_LENGTH} characters")
        if tag not in tags:
            tags.append(tag)
    if len(tags) > MAX_TAGS:
        raise ValidationException("tags", f"At most {MAX_TAGS} tags are allowed")

    if not (thumbnail.file_name or "").strip():
        raise ValidationException("thumbnail", "Thumbnail file name is required")

    content_type = (thumbnail.content_type or "").strip().lower()
    if content_type not in THUMBNAIL_CONTENT_TYPES:
        raise ValidationException("thumbnail", "Thumbnail must be a JPEG, PNG or WebP image")

    if thumbnail.size_bytes is None or thumbnail.size_bytes <= 0:
        raise ValidationException("thumbnail", "Thumbnail file is empty")
    if thumbnail.size_bytes > max_thumbnail_bytes:
        raise ValidationException(
            "thumbnail",
            f"Thumbnail must be at most {max_thumbnail_bytes // (1024 * 1024)} MB"
        )

    return ValidatedUpload(
        title=title,
        description=description,
        visibility=visibility,
        category=category,
        tags=tags,
        thumbnail_content_type=content_type,
    )


class UploadCredentialIssuer:
    """Issues upload credentials and creates the PENDING record."""

    def __init__(
        self,
        db: Database,
        providers: ProviderRegistry,
        storage: ThumbnailStorage,
        settings: Settings,
    ):
        self.db = db
        self.providers = providers
        self.storage = storage
        self.settings = settings

    @property
    def ttl(self) -> int:
        return self.settings.upload_url_ttl_seconds

    async def initiate_upload(
        self,
        owner_id: str,
        metadata: UploadMetadata,
        thumbnail: ThumbnailDescriptor,
        idempotency_key: Optional[str] = None,
    ) -> UploadTicket:
        """
        Validate the request, open a provider upload session, sign the
        thumbnail upload and persist a PENDING record.

        A repeated call with the same idempotency key returns the ticket for
        the record created first, with freshly derived credentials, while that
        record is still PENDING.

        Raises:
            ValidationException: If the metadata or thumbnail is invalid
            UpstreamException: If the provider or storage call fails
            ConflictException: If the key belongs to a record whose upload
                already arrived
        """
        try:
            return await self._initiate(owner_id, metadata, thumbnail, idempotency_key)
        except (ValidationException, ConflictException):
            raise
        except Exception as e:
            log_operation_error(
                logger=__name__,
                function="initiate_upload",
                operation="upload_initiate",
                error=e,
                message="Failed to initiate upload",
                context={"owner_id": owner_id, "idempotent": bool(idempotency_key)},
            )
            raise

    async def _initiate(
        self,
        owner_id: str,
        metadata: UploadMetadata,
        thumbnail: ThumbnailDescriptor,
        idempotency_key: Optional[str],
    ) -> UploadTicket:
        validated = validate_upload_request(metadata, thumbnail, self.settings.thumbnail_max_bytes)

        if idempotency_key:
            async with self.db.session() as session:
                existing = await video_db_repository.get_by_idempotency_key(session, owner_id, idempotency_key)
            if existing is not None:
                log_event(
                    level="INFO",
                    logger=__name__,
                    function="initiate_upload",
                    operation="upload_initiate",
                    event="upload_reused",
                    message="Reusing upload for idempotency key",
                    context={"video_id": existing.id, "owner_id": owner_id},
                )
                return await self._reissue(existing)

        provider = self.providers.default
        upload_session = await provider.create_upload_session(validated.title, self.ttl)

        thumbnail_key = self.storage.build_key(validated.thumbnail_content_type)
        try:
            thumbnail_upload = await self.storage.presign_upload(
                thumbnail_key, validated.thumbnail_content_type, self.ttl
            )
        except TubeHubException:
            await self._cancel_session(provider.name, upload_session.upload_ref)
            raise

        try:
            async with self.db.session() as session:
                video = await video_db_repository.create(
                    session,
                    owner_id=owner_id,
                    title=validated.title,
                    description=validated.description,
                    category=validated.category,
                    tags=validated.tags,
                    visibility=validated.visibility,
                    provider=provider.name,
                    provider_upload_ref=upload_session.upload_ref,
                    thumbnail_key=thumbnail_key,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            await self._cancel_session(provider.name, upload_session.upload_ref)
            if idempotency_key:
                async with self.db.session() as session:
                    existing = await video_db_repository.get_by_idempotency_key(
                        session, owner_id, idempotency_key
                    )
                if existing is not None:
                    logger.info(f"Concurrent upload with same idempotency key resolved to {existing.id}")
                    return await self._reissue(existing)
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to persist video for upload {upload_session.upload_ref}: {type(e).__name__}: {e}"
            )
            await self._cancel_session(provider.name, upload_session.upload_ref)
            raise

        log_event(
            level="INFO",
            logger=__name__,
            function="initiate_upload",
            operation="upload_initiate",
            event="upload_created",
            message="Upload initiated",
            context={
                "video_id": video.id,
                "owner_id": owner_id,
                "provider": provider.name,
                "upload_ref": upload_session.upload_ref,
            }
        )
        return self._ticket(video.id, upload_session, thumbnail_upload)

    async def _reissue(self, video: Video) -> UploadTicket:
        """Derive fresh credentials for an existing record still awaiting its upload."""
        if video.status != VideoStatus.PENDING:
            raise ConflictException("Upload", video.id)
        provider = self.providers.get(video.provider)
        upload_session = await provider.describe_upload_session(video.provider_upload_ref, self.ttl)
        content_type = _content_type_for_key(video.thumbnail_key)
        thumbnail_upload = await self.storage.presign_upload(video.thumbnail_key, content_type, self.ttl)
        return self._ticket(video.id, upload_session, thumbnail_upload, reused=True)

    @staticmethod
    def _ticket(video_id, upload_session: UploadSession, thumbnail_upload, reused: bool = False) -> UploadTicket:
        return UploadTicket(
            video_id=video_id,
            upload_target=upload_session.upload_target,
            thumbnail_upload=thumbnail_upload,
            expires_at=min(upload_session.expires_at, thumbnail_upload.expires_at),
            reused=reused,
        )

    async def _cancel_session(self, provider_name: str, upload_ref: str) -> None:
        """Cancel an orphaned provider upload session; the session expires on its own if this fails."""
        try:
            await self.providers.get(provider_name).delete_upload_session(upload_ref)
            logger.info(f"Cancelled orphaned {provider_name} upload session {upload_ref}")
        except TubeHubException as e:
            logger.warning(f"Could not cancel {provider_name} upload session {upload_ref}: {e.message}")


def _content_type_for_key(key: str) -> str:
    ext = key.rsplit(".", 1)[-1].lower()
    for content_type, candidate in EXTENSIONS.items():
        if candidate == ext:
            return content_type
    return "application/octet-stream"
