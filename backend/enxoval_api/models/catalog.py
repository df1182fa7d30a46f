"""
Catalog Models: Category, Product.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import Limits
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .order import OrderItem


class Category(TimestampMixin, Base):
    """Gift category. Listed in ascending ``sort_order``."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)

    products: Mapped[list["Product"]] = relationship(back_populates="category")


class Product(TimestampMixin, Base):
    """
    A registry item. Guests buy units until ``purchased_qty`` reaches ``target_qty``.

    ``purchased_qty`` only moves through PaymentReconciler, which keeps it
    at or below ``target_qty``.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    target_qty: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    purchased_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("categories.id"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
    order_items: Mapped[list["OrderItem"]] = relationship(back_populates="product")

    __table_args__ = (
        CheckConstraint("price_cents > 0", name="ck_products_price_positive"),
        CheckConstraint("purchased_qty >= 0", name="ck_products_purchased_non_negative"),
        Index("ix_products_category_active", "category_id", "is_active"),
    )

    @property
    def remaining(self) -> int:
        return max(self.target_qty - self.purchased_qty, 0)

    @property
    def max_per_order(self) -> int:
        return min(self.remaining, Limits.MAX_QUANTITY_PER_ORDER)

    @property
    def is_available(self) -> bool:
        return self.is_active and self.remaining > 0
