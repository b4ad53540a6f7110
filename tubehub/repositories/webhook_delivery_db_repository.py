"""
Webhook delivery repository - idempotency ledger for provider events.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tubehub.core.exceptions import ConflictException
from tubehub.database.models.webhook_delivery import WebhookDelivery


async def exists(session: AsyncSession, provider: str, delivery_id: str) -> bool:
    """Check whether a delivery was already applied."""
    stmt = select(WebhookDelivery.id).where(
        WebhookDelivery.provider == provider,
        WebhookDelivery.delivery_id == delivery_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none() is not None


async def record(
    session: AsyncSession,
    provider: str,
    delivery_id: str,
    event_kind: str,
) -> WebhookDelivery:
    """
    Record a delivery as applied.

    A duplicate leaves the session unusable; callers let the exception
    leave the transaction scope so it rolls back.

    Raises:
        ConflictException: If this delivery was already recorded
    """
    delivery = WebhookDelivery(
        provider=provider,
        delivery_id=delivery_id,
        event_kind=event_kind,
    )
    session.add(delivery)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictException("webhook delivery", f"{provider}:{delivery_id}")
    return delivery
