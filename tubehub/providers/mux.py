"""
Mux Video adapter.

Direct uploads are created through the REST API with HTTP basic auth;
webhooks are signed with `mux-signature: t=<unix>,v1=<hex hmac>` where the
HMAC-SHA256 covers "<t>.<raw body>".
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Callable, Dict, Mapping, Optional

import requests

from tubehub.core.exceptions import AuthException, DecodeException, UpstreamException
from tubehub.models.domain import AssetDetail, EventKind, EventPayload, NormalizedEvent, UploadSession
from tubehub.providers.base import ProviderAdapter, get_header

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "mux-signature"

EVENT_KINDS: Dict[str, EventKind] = {
    "video.upload.asset_created": EventKind.UPLOAD_COMPLETED,
    "video.asset.created": EventKind.PROCESSING_STARTED,
    "video.asset.ready": EventKind.READY,
    "video.upload.errored": EventKind.UPLOAD_FAILED,
    "video.asset.errored": EventKind.PROCESSING_FAILED,
    "video.upload.cancelled": EventKind.UPLOAD_CANCELLED,
}

# Events whose data.id is the upload session rather than the asset
UPLOAD_EVENTS = {
    "video.upload.asset_created",
    "video.upload.errored",
    "video.upload.cancelled",
}


def pick_playback_id(playback_ids) -> Optional[str]:
    """Prefer a public playback id, else the first one listed."""
    if not isinstance(playback_ids, list):
        return None
    ids = [p for p in playback_ids if isinstance(p, dict) and p.get("id")]
    for playback in ids:
        if playback.get("policy") == "public":
            return playback["id"]
    return ids[0]["id"] if ids else None


class MuxAdapter(ProviderAdapter):
    """Provider adapter for Mux Video."""

    name = "mux"

    def __init__(
        self,
        token_id: str,
        token_secret: str,
        webhook_secret: Optional[str],
        api_base_url: str = "https://api.mux.com/video/v1",
        cors_origin: str = "*",
        signature_tolerance_seconds: int = 300,
        clock: Callable[[], float] = time.time,
        http: Optional[requests.Session] = None,
        **kwargs
    ):
        super().__init__(http=http, **kwargs)
        self.auth = (token_id, token_secret)
        self.webhook_secret = webhook_secret
        self.api_base_url = api_base_url.rstrip("/")
        self.cors_origin = cors_origin
        self.signature_tolerance_seconds = signature_tolerance_seconds
        self.clock = clock

    # ------------------------------------------------------------------
    # REST API
    # ------------------------------------------------------------------

    def _upload_session(self, data: dict, expires_in: int) -> UploadSession:
        upload_ref = data.get("id")
        if not upload_ref:
            raise UpstreamException(self.name, "create_upload_session", "response missing upload id")
        return UploadSession(
            upload_ref=upload_ref,
            upload_target={
                "provider": self.name,
                "type": "direct",
                "method": "PUT",
                "url": data.get("url"),
            },
            expires_at=self.expiry(expires_in),
        )

    async def create_upload_session(self, title: str, expires_in: int) -> UploadSession:
        body = {
            "new_asset_settings": {
                "playback_policies": ["public"],
                "video_quality": "basic",
            },
            "cors_origin": self.cors_origin,
            "timeout": expires_in,
        }
        response = await self._call(
            "create_upload_session",
            "POST",
            f"{self.api_base_url}/uploads",
            json=body,
            auth=self.auth,
        )
        return self._upload_session(response.get("data") or {}, expires_in)

    async def describe_upload_session(self, upload_ref: str, expires_in: int) -> UploadSession:
        response = await self._call(
            "describe_upload_session",
            "GET",
            f"{self.api_base_url}/uploads/{upload_ref}",
            auth=self.auth,
        )
        return self._upload_session(response.get("data") or {}, expires_in)

    async def delete_upload_session(self, upload_ref: str) -> None:
        await self._call(
            "delete_upload_session",
            "PUT",
            f"{self.api_base_url}/uploads/{upload_ref}/cancel",
            auth=self.auth,
        )

    async def fetch_asset_detail(self, asset_ref: str) -> AssetDetail:
        response = await self._call(
            "fetch_asset_detail",
            "GET",
            f"{self.api_base_url}/assets/{asset_ref}",
            auth=self.auth,
        )
        data = response.get("data") or {}
        status = data.get("status")
        return AssetDetail(
            asset_ref=data.get("id") or asset_ref,
            status=status,
            playback_ref=pick_playback_id(data.get("playback_ids")),
            duration_seconds=data.get("duration"),
            upload_ref=data.get("upload_id"),
            is_ready=status == "ready",
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        if not self.webhook_secret:
            raise AuthException("webhook secret not configured")

        header = get_header(headers, SIGNATURE_HEADER)
        if not header:
            raise AuthException("missing signature header")

        timestamp = None
        signatures = []
        for part in header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1" and value:
                signatures.append(value)

        if not timestamp or not signatures:
            raise AuthException("malformed signature header")

        try:
            signed_at = int(timestamp)
        except ValueError:
            raise AuthException("malformed signature timestamp")

        if abs(self.clock() - signed_at) > self.signature_tolerance_seconds:
            raise AuthException("signature timestamp outside tolerance")

        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            timestamp.encode("utf-8") + b"." + raw_body,
            hashlib.sha256,
        ).hexdigest()

        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise AuthException("signature mismatch")

    def decode_webhook(self, raw_body: bytes) -> NormalizedEvent:
        try:
            body = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeException(f"invalid JSON: {e}")

        if not isinstance(body, dict):
            raise DecodeException("expected a JSON object")

        raw_type = body.get("type")
        data = body.get("data")
        if not isinstance(raw_type, str) or not isinstance(data, dict):
            raise DecodeException("missing 'type' or 'data'")

        kind = EVENT_KINDS.get(raw_type, EventKind.UNHANDLED)
        delivery_id = body.get("id") if isinstance(body.get("id"), str) else None

        if kind is EventKind.UNHANDLED:
            return NormalizedEvent(kind=kind, provider=self.name, raw_type=raw_type, delivery_id=delivery_id)

        object_id = data.get("id")
        if not isinstance(object_id, str) or not object_id:
            raise DecodeException(f"{raw_type} without data.id")

        if raw_type in UPLOAD_EVENTS:
            upload_ref = object_id
            asset_ref = data.get("asset_id")
        else:
            asset_ref = object_id
            upload_ref = data.get("upload_id")

        if kind is EventKind.UPLOAD_COMPLETED and not asset_ref:
            raise DecodeException(f"{raw_type} without data.asset_id")

        return NormalizedEvent(
            kind=kind,
            provider=self.name,
            raw_type=raw_type,
            upload_ref=upload_ref,
            asset_ref=asset_ref,
            delivery_id=delivery_id,
            payload=EventPayload(
                duration_seconds=data.get("duration"),
                playback_candidates=[p for p in [pick_playback_id(data.get("playback_ids"))] if p],
                error_message=_error_message(data),
                asset_status=data.get("status"),
            ),
        )

def _error_message(data: dict) -> Optional[str]:
    errors = data.get("errors")
    if isinstance(errors, dict):
        messages = errors.get("messages")
        if isinstance(messages, list) and messages:
            return "; ".join(str(m) for m in messages)
        if errors.get("type"):
            return str(errors["type"])
    return None
