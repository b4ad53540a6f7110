"""
Provider webhook endpoint.

Responds 200 for every authenticated, well-formed callback, including
unhandled event types and lookup misses, so providers do not retry them.
A READY event that could not resolve a playback reference because the
provider itself was unreachable gets 503 so it is redelivered.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from tubehub.api.deps import get_feed_service, get_provider_registry
from tubehub.database.dependencies import get_database
from tubehub.database.session import Database
from tubehub.models.schemas import WebhookResponse
from tubehub.providers import ProviderRegistry
from tubehub.services.event_normalizer import EventNormalizer
from tubehub.services.feed_service import FeedService
from tubehub.services.reconciler import StateReconciler

router = APIRouter()


@router.post("/webhooks/{provider}", response_model=WebhookResponse)
async def receive_webhook(
    provider: str,
    request: Request,
    providers: ProviderRegistry = Depends(get_provider_registry),
    db: Database = Depends(get_database),
    feed: FeedService = Depends(get_feed_service),
):
    """Verify, normalize and apply one provider callback."""
    adapter = providers.get(provider)
    raw_body = await request.body()

    event = EventNormalizer(adapter).normalize(raw_body, request.headers)
    result = await StateReconciler(db, adapter, on_ready=feed.on_video_ready).apply(event)

    if result.retryable:
        return JSONResponse(
            status_code=503,
            content={"received": False, "outcome": result.outcome.value},
            headers={"Retry-After": "30"},
        )
    return WebhookResponse(received=True, outcome=result.outcome.value)
