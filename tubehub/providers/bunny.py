"""
Bunny Stream adapter.

A Bunny video is created up front and its guid serves as both the upload
ref and the asset ref. Clients upload over TUS with a pre-signed
SHA256(library_id + api_key + expires + guid) authorization. Webhooks carry
a numeric status and are signed with a hex HMAC-SHA256 of the raw body.
"""
import hashlib
import hmac
import json
import logging
from typing import Dict, Mapping, Optional

import requests

from tubehub.core.exceptions import AuthException, DecodeException, UpstreamException
from tubehub.models.domain import AssetDetail, EventKind, EventPayload, NormalizedEvent, UploadSession
from tubehub.providers.base import ProviderAdapter, get_header

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-bunnystream-signature"

# Bunny Stream video status codes
STATUS_QUEUED = 0
STATUS_PROCESSING = 1
STATUS_ENCODING = 2
STATUS_FINISHED = 3
STATUS_RESOLUTION_FINISHED = 4
STATUS_FAILED = 5
STATUS_PRESIGNED_UPLOAD_STARTED = 6
STATUS_PRESIGNED_UPLOAD_FINISHED = 7
STATUS_PRESIGNED_UPLOAD_FAILED = 8
STATUS_CAPTIONS_GENERATED = 9
STATUS_TITLE_OR_DESCRIPTION_GENERATED = 10

STATUS_NAMES = {
    STATUS_QUEUED: "queued",
    STATUS_PROCESSING: "processing",
    STATUS_ENCODING: "encoding",
    STATUS_FINISHED: "finished",
    STATUS_RESOLUTION_FINISHED: "resolution_finished",
    STATUS_FAILED: "failed",
    STATUS_PRESIGNED_UPLOAD_STARTED: "presigned_upload_started",
    STATUS_PRESIGNED_UPLOAD_FINISHED: "presigned_upload_finished",
    STATUS_PRESIGNED_UPLOAD_FAILED: "presigned_upload_failed",
    STATUS_CAPTIONS_GENERATED: "captions_generated",
    STATUS_TITLE_OR_DESCRIPTION_GENERATED: "title_or_description_generated",
}

EVENT_KINDS: Dict[int, EventKind] = {
    STATUS_QUEUED: EventKind.UPLOAD_COMPLETED,
    STATUS_PRESIGNED_UPLOAD_FINISHED: EventKind.UPLOAD_COMPLETED,
    STATUS_PROCESSING: EventKind.PROCESSING_STARTED,
    STATUS_ENCODING: EventKind.PROCESSING_STARTED,
    STATUS_FINISHED: EventKind.READY,
    STATUS_FAILED: EventKind.PROCESSING_FAILED,
    STATUS_PRESIGNED_UPLOAD_FAILED: EventKind.UPLOAD_FAILED,
}

# Statuses at which the HLS playlist is playable
PLAYABLE_STATUSES = {STATUS_FINISHED, STATUS_RESOLUTION_FINISHED}


class BunnyAdapter(ProviderAdapter):
    """Provider adapter for Bunny Stream."""

    name = "bunny"

    def __init__(
        self,
        library_id: str,
        api_key: str,
        webhook_secret: Optional[str],
        cdn_hostname: Optional[str] = None,
        api_base_url: str = "https://video.bunnycdn.com",
        tus_endpoint: str = "https://video.bunnycdn.com/tusupload",
        http: Optional[requests.Session] = None,
        **kwargs
    ):
        super().__init__(http=http, **kwargs)
        self.library_id = str(library_id)
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.cdn_hostname = cdn_hostname
        self.api_base_url = api_base_url.rstrip("/")
        self.tus_endpoint = tus_endpoint

    @property
    def _headers(self) -> Dict[str, str]:
        return {"AccessKey": self.api_key, "Accept": "application/json"}

    def _videos_url(self, guid: Optional[str] = None) -> str:
        url = f"{self.api_base_url}/library/{self.library_id}/videos"
        return f"{url}/{guid}" if guid else url

    def playback_url(self, guid: str) -> Optional[str]:
        """HLS playlist URL on the library's pull zone."""
        if not self.cdn_hostname:
            return None
        return f"https://{self.cdn_hostname}/{guid}/playlist.m3u8"

    def tus_signature(self, guid: str, expires: int) -> str:
        """Pre-signed TUS authorization for one video."""
        to_sign = f"{self.library_id}{self.api_key}{expires}{guid}"
        return hashlib.sha256(to_sign.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # REST API
    # ------------------------------------------------------------------

    def _upload_session(self, guid: str, expires_in: int) -> UploadSession:
        expires_at = self.expiry(expires_in)
        expires = int(expires_at.timestamp())
        return UploadSession(
            upload_ref=guid,
            upload_target={
                "provider": self.name,
                "type": "tus",
                "endpoint": self.tus_endpoint,
                "headers": {
                    "AuthorizationSignature": self.tus_signature(guid, expires),
                    "AuthorizationExpire": str(expires),
                    "LibraryId": self.library_id,
                    "VideoId": guid,
                },
            },
            expires_at=expires_at,
        )

    async def create_upload_session(self, title: str, expires_in: int) -> UploadSession:
        response = await self._call(
            "create_upload_session",
            "POST",
            self._videos_url(),
            json={"title": title},
            headers=self._headers,
        )
        guid = response.get("guid") or response.get("videoId") or response.get("id")
        if not guid:
            raise UpstreamException(self.name, "create_upload_session", "response missing video guid")
        return self._upload_session(str(guid), expires_in)

    async def describe_upload_session(self, upload_ref: str, expires_in: int) -> UploadSession:
        # TUS credentials are derived locally; no API round trip is needed
        return self._upload_session(upload_ref, expires_in)

    async def delete_upload_session(self, upload_ref: str) -> None:
        await self._call(
            "delete_upload_session",
            "DELETE",
            self._videos_url(upload_ref),
            headers=self._headers,
        )

    async def fetch_asset_detail(self, asset_ref: str) -> AssetDetail:
        response = await self._call(
            "fetch_asset_detail",
            "GET",
            self._videos_url(asset_ref),
            headers=self._headers,
        )
        status = response.get("status")
        is_ready = status in PLAYABLE_STATUSES
        return AssetDetail(
            asset_ref=response.get("guid") or asset_ref,
            status=STATUS_NAMES.get(status, str(status)),
            playback_ref=self.playback_url(asset_ref) if is_ready else None,
            duration_seconds=response.get("length"),
            upload_ref=asset_ref,
            is_ready=is_ready,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        if not self.webhook_secret:
            raise AuthException("webhook secret not configured")

        signature = get_header(headers, SIGNATURE_HEADER)
        if not signature:
            raise AuthException("missing signature header")

        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            raw_body,
            hashlib.sha256,
        ).hexdigest()

        if not hmac.compare_digest(expected, signature.strip().lower()):
            raise AuthException("signature mismatch")

    def decode_webhook(self, raw_body: bytes) -> NormalizedEvent:
        try:
            body = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeException(f"invalid JSON: {e}")

        if not isinstance(body, dict):
            raise DecodeException("expected a JSON object")

        guid = body.get("VideoGuid")
        status = body.get("Status")
        library_id = body.get("VideoLibraryId")

        if not isinstance(guid, str) or not guid:
            raise DecodeException("missing VideoGuid")
        if not isinstance(status, int) or isinstance(status, bool):
            raise DecodeException("missing or non-integer Status")
        if library_id is not None and str(library_id) != self.library_id:
            raise DecodeException(f"unexpected library {library_id}")

        raw_type = STATUS_NAMES.get(status, f"status_{status}")
        kind = EVENT_KINDS.get(status, EventKind.UNHANDLED)

        payload = EventPayload(asset_status=raw_type)
        if kind is EventKind.READY:
            playback = self.playback_url(guid)
            payload.playback_candidates = [playback] if playback else []
        if kind in (EventKind.UPLOAD_FAILED, EventKind.PROCESSING_FAILED):
            payload.error_message = raw_type

        return NormalizedEvent(
            kind=kind,
            provider=self.name,
            raw_type=raw_type,
            upload_ref=guid,
            asset_ref=guid,
            # Bunny sends one callback per status change
            delivery_id=f"{guid}:{status}",
            payload=payload,
        )
