"""
Order status reconciliation.

PaymentReconciler is the only code path that moves an order out of
``pending`` and the only one that touches ``products.purchased_qty``.
Webhook deliveries, admin "reconcile" and admin "mark_status" all go
through it.

Guarantees:
- The status change is a conditional UPDATE keyed on the current status,
  so two concurrent "paid" deliveries transition the order once.
- ``paid`` is terminal. Inventory is incremented only by the delivery
  whose UPDATE matched, in the same transaction as the status change.
- ``purchased_qty`` never exceeds ``target_qty``: the increment is itself
  conditional and falls back to capping at ``target_qty``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from enxoval_api.models import Order, OrderItem, Product
from enxoval_api.models.base import utcnow
from shared.config.constants import GATEWAY_TO_ORDER_STATUS, OrderStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import EntityNotFoundError, ValidationError

logger = get_logger(__name__)

# Statuses an order may leave for each target. A payment can be approved
# after an earlier attempt on the same preference was rejected.
ALLOWED_FROM: dict[str, tuple[str, ...]] = {
    OrderStatus.PAID: (OrderStatus.PENDING, OrderStatus.FAILED),
    OrderStatus.FAILED: (OrderStatus.PENDING,),
}


@dataclass(frozen=True)
class ReconcileResult:
    order_id: int
    changed: bool
    old_status: str
    new_status: str
    capped_products: tuple[int, ...] = field(default=())

    @property
    def became_paid(self) -> bool:
        return self.changed and self.new_status == OrderStatus.PAID


def map_gateway_status(gateway_status: Optional[str]) -> str:
    """approved -> paid, rejected/cancelled -> failed, anything else -> pending."""
    return GATEWAY_TO_ORDER_STATUS.get((gateway_status or "").lower(), OrderStatus.PENDING)


def parse_external_reference(reference: object) -> Optional[int]:
    """
    Order id from a preference external_reference.

    Accepts "order_<id>" and bare numeric ids; anything else is None.
    """
    if reference is None:
        return None
    ref = str(reference).strip()
    if ref.startswith("order_"):
        ref = ref[len("order_"):]
    if not ref.isdigit():
        return None
    return int(ref)


def increment_purchased_qty(db: Session, product_id: int, quantity: int) -> bool:
    """
    Add ``quantity`` to a product's purchased_qty without passing target_qty.

    Returns True when the full quantity fit. Otherwise purchased_qty is
    capped at target_qty, a warning is logged and False is returned.
    Does not commit.
    """
    if quantity <= 0:
        return True

    result = db.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.purchased_qty + quantity <= Product.target_qty,
        )
        .values(purchased_qty=Product.purchased_qty + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return True

    db.execute(
        update(Product)
        .where(Product.id == product_id, Product.purchased_qty < Product.target_qty)
        .values(purchased_qty=Product.target_qty)
        .execution_options(synchronize_session=False)
    )
    logger.warning(
        "Purchased quantity capped at target (oversell)",
        product_id=product_id,
        requested=quantity,
    )
    return False


class PaymentReconciler:
    """Applies a target status to an order exactly once."""

    def __init__(self, db: Session):
        self.db = db

    def apply(
        self,
        order_id: int,
        new_status: str,
        external_payment_id: Optional[str] = None,
        commit: bool = True,
    ) -> ReconcileResult:
        """
        Move ``order_id`` to ``new_status`` if the current status allows it.

        A ``pending`` target never changes status; it only records the
        external payment id. With ``commit=False`` the caller owns the
        transaction (the webhook commits its notification row with it).

        Raises:
            EntityNotFoundError: order does not exist
            ValidationError: unknown status
        """
        if new_status not in OrderStatus.ALL:
            raise ValidationError(f"Status inválido: {new_status}", status=new_status)

        db = self.db
        order = db.scalar(select(Order).where(Order.id == order_id).with_for_update())
        if order is None:
            raise EntityNotFoundError("Pedido", order_id)

        old_status = order.status

        try:
            if new_status == OrderStatus.PENDING or new_status not in ALLOWED_FROM:
                if external_payment_id and order.external_payment_id != external_payment_id:
                    order.external_payment_id = external_payment_id
                result = ReconcileResult(order_id, False, old_status, old_status)
            else:
                result = self._transition(order_id, old_status, new_status, external_payment_id)

            if commit:
                safe_commit(db)
        except Exception:
            db.rollback()
            raise

        if result.changed:
            logger.info(
                "Order status changed",
                order_id=order_id,
                old_status=result.old_status,
                new_status=result.new_status,
                capped_products=list(result.capped_products) or None,
            )
        return result

    def _transition(
        self,
        order_id: int,
        old_status: str,
        new_status: str,
        external_payment_id: Optional[str],
    ) -> ReconcileResult:
        db = self.db
        db.flush()
        now = utcnow()
        values: dict = {"status": new_status, "updated_at": now}
        if external_payment_id:
            values["external_payment_id"] = external_payment_id
        if new_status == OrderStatus.PAID:
            values["paid_at"] = now

        updated = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_(ALLOWED_FROM[new_status]))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            # Another delivery got here first, or the order is already terminal
            current = db.scalar(select(Order.status).where(Order.id == order_id))
            return ReconcileResult(order_id, False, current or old_status, current or old_status)

        capped: list[int] = []
        if new_status == OrderStatus.PAID:
            items = db.execute(
                select(OrderItem.product_id, OrderItem.quantity).where(OrderItem.order_id == order_id)
            ).all()
            for product_id, quantity in items:
                if not increment_purchased_qty(db, product_id, quantity):
                    capped.append(product_id)

        db.expire_all()
        return ReconcileResult(order_id, True, old_status, new_status, tuple(capped))
