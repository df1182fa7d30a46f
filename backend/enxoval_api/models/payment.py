"""
Payment notification ledger.

One row per distinct webhook delivery. The unique ``dedupe_key`` makes
redeliveries of the same notification no-ops.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import NotificationStatus
from .base import Base, BigIntPK, utcnow


class PaymentNotification(Base):
    __tablename__ = "payment_notifications"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    dedupe_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[Optional[str]] = mapped_column(Text)
    resource_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(
        Text, default=NotificationStatus.RECEIVED, nullable=False
    )
    error: Mapped[Optional[str]] = mapped_column(Text)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
