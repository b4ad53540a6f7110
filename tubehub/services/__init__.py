"""
Services layer for TubeHub.
Contains the upload, webhook reconciliation, feed and engagement logic.
"""

from tubehub.services.background import BackgroundDispatcher
from tubehub.services.engagement_service import EngagementService
from tubehub.services.event_normalizer import EventNormalizer
from tubehub.services.feed_service import FeedService
from tubehub.services.maintenance import purge_stale_uploads
from tubehub.services.reconciler import StateReconciler
from tubehub.services.thumbnail_storage import ThumbnailStorage
from tubehub.services.upload_service import (
    ThumbnailDescriptor,
    UploadCredentialIssuer,
    UploadMetadata,
    validate_upload_request,
)

__all__ = [
    "BackgroundDispatcher",
    "EngagementService",
    "EventNormalizer",
    "FeedService",
    "StateReconciler",
    "ThumbnailStorage",
    "UploadCredentialIssuer",
    "UploadMetadata",
    "ThumbnailDescriptor",
    "validate_upload_request",
    "purge_stale_uploads",
]
