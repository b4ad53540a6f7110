"""
Domain models for business logic.
These are internal representations separate from API schemas.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class EventKind(Enum):
    """Provider-independent webhook event kinds."""
    UPLOAD_COMPLETED = "upload_completed"
    PROCESSING_STARTED = "processing_started"
    READY = "ready"
    UPLOAD_FAILED = "upload_failed"
    PROCESSING_FAILED = "processing_failed"
    UPLOAD_CANCELLED = "upload_cancelled"
    UNHANDLED = "unhandled"


FAILURE_KINDS = frozenset({
    EventKind.UPLOAD_FAILED,
    EventKind.PROCESSING_FAILED,
    EventKind.UPLOAD_CANCELLED,
})


class ReconcileOutcome(Enum):
    """What applying one event did to the store."""
    APPLIED = "applied"
    NOOP = "noop"
    NOT_FOUND = "not_found"
    DEFERRED = "deferred"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass
class EventPayload:
    """Kind-specific fields carried by a normalized event."""
    duration_seconds: Optional[float] = None
    playback_candidates: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    asset_status: Optional[str] = None


@dataclass
class NormalizedEvent:
    """A verified provider callback mapped onto the common vocabulary."""
    kind: EventKind
    provider: str
    raw_type: str
    upload_ref: Optional[str] = None
    asset_ref: Optional[str] = None
    delivery_id: Optional[str] = None
    payload: EventPayload = field(default_factory=EventPayload)

    def log_context(self) -> Dict[str, Any]:
        """Fields safe to include in logs."""
        return {
            "kind": self.kind.value,
            "provider": self.provider,
            "raw_type": self.raw_type,
            "upload_ref": self.upload_ref,
            "asset_ref": self.asset_ref,
            "delivery_id": self.delivery_id,
        }


@dataclass
class UploadSession:
    """A provider upload session and the target the client sends bytes to."""
    upload_ref: str
    upload_target: Dict[str, Any]
    expires_at: datetime


@dataclass
class AssetDetail:
    """Provider-side state of an encoded asset."""
    asset_ref: str
    status: Optional[str] = None
    playback_ref: Optional[str] = None
    duration_seconds: Optional[float] = None
    upload_ref: Optional[str] = None
    is_ready: bool = False


@dataclass
class ThumbnailUpload:
    """Presigned write credential for a thumbnail object."""
    key: str
    url: str
    method: str
    headers: Dict[str, str]
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "url": self.url,
            "method": self.method,
            "headers": self.headers,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass
class UploadTicket:
    """Everything a client needs to push bytes for a newly created video."""
    video_id: str
    upload_target: Dict[str, Any]
    thumbnail_upload: ThumbnailUpload
    expires_at: datetime
    reused: bool = False


@dataclass
class ReconcileResult:
    """Outcome of applying one normalized event."""
    outcome: ReconcileOutcome
    video_id: Optional[str] = None
    detail: str = ""
    retryable: bool = False
    status: Optional[str] = None  # record status after the event, None if absent


@dataclass
class ActionResult:
    """Result of a user-facing engagement action."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {"success": self.success, "message": self.message}
        if self.data:
            result.update(self.data)
        return result
