"""
Upload initiation endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header

from tubehub.api.deps import get_current_user_id, get_upload_issuer
from tubehub.core.logging import get_request_id, log_operation_start
from tubehub.models.schemas import InitiateUploadRequest, InitiateUploadResponse, ThumbnailUploadTarget
from tubehub.services.upload_service import ThumbnailDescriptor, UploadCredentialIssuer, UploadMetadata

router = APIRouter()


@router.post("/uploads", response_model=InitiateUploadResponse, status_code=201)
async def initiate_upload(
    body: InitiateUploadRequest,
    user_id: str = Depends(get_current_user_id),
    issuer: UploadCredentialIssuer = Depends(get_upload_issuer),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
):
    """
    Create a pending video and return direct-upload credentials.

    The client PUTs the video to upload_target and the thumbnail to
    thumbnail_upload_target before expires_at.
    """
    log_operation_start(
        logger="tubehub.api.endpoints.uploads",
        function="initiate_upload",
        operation="upload_initiate",
        message="Initiating upload",
        context={"request_id": get_request_id(), "user_id": user_id, "idempotent": bool(idempotency_key)}
    )

    ticket = await issuer.initiate_upload(
        owner_id=user_id,
        metadata=UploadMetadata(
            title=body.title,
            description=body.description,
            visibility=body.visibility,
            category=body.category,
            tags=body.tags,
        ),
        thumbnail=ThumbnailDescriptor(
            file_name=body.thumbnail.file_name,
            content_type=body.thumbnail.content_type,
            size_bytes=body.thumbnail.size_bytes,
        ),
        idempotency_key=(idempotency_key or "").strip() or None,
    )

    return InitiateUploadResponse(
        video_id=ticket.video_id,
        upload_target=ticket.upload_target,
        thumbnail_upload_target=ThumbnailUploadTarget(**ticket.thumbnail_upload.to_dict()),
        expires_at=ticket.expires_at,
        reused=ticket.reused,
    )
