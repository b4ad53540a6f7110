"""
Webhook delivery model - ledger of provider events already applied.
"""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tubehub.database.base import Base


class WebhookDelivery(Base):
    """
    Webhook deliveries table - the unique (provider, delivery_id) pair makes a
    replayed delivery detectable inside the reconciling transaction.
    """
    __tablename__ = "webhook_deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    delivery_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_kind: Mapped[str] = mapped_column(String(40), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint('provider', 'delivery_id', name='uq_webhook_deliveries_provider_delivery'),
    )
