"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product


class Order(TimestampMixin, Base):
    """
    A guest's purchase.

    Created as ``pending`` before the gateway preference exists and moved
    to ``paid`` or ``failed`` exactly once.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    purchaser_name: Mapped[str] = mapped_column(Text, nullable=False)
    purchaser_email: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, default=OrderStatus.PENDING, nullable=False, index=True
    )
    preference_id: Mapped[Optional[str]] = mapped_column(Text)
    external_payment_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_orders_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'failed')", name="ck_orders_status"
        ),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    @property
    def external_reference(self) -> str:
        return f"order_{self.id}"


class OrderItem(Base):
    """Order line. ``unit_price_cents`` is the product price at order time."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("products.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(back_populates="order_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents
