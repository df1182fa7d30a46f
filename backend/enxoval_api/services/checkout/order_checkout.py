"""
Order checkout: records a pending order and opens a gateway preference for it.

The order is committed before the gateway call so the preference can
carry ``external_reference = order_<id>``; the webhook resolves the order
from it later. A gateway failure leaves the order ``failed``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from enxoval_api.models import Order, OrderItem, Product
from enxoval_api.models.base import utcnow
from enxoval_api.services.checkout.orchestrator import CheckoutLine, Purchaser, build_preference_request
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from enxoval_api.services.payments.reconciliation import PaymentReconciler
from shared.config.constants import Limits, OrderStatus, PaymentMethod
from shared.config.logging import checkout_logger as logger
from shared.config.logging import mask_email
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import EntityNotFoundError, GatewayError, InsufficientStockError
from shared.utils.schemas import CheckoutInput, CheckoutOutput


class OrderCheckoutService:
    def __init__(self, db: Session, gateway: MercadoPagoGateway):
        self.db = db
        self.gateway = gateway

    def _load_lines(self, body: CheckoutInput) -> list[CheckoutLine]:
        """
        Price snapshot per item, checked against what is still available.

        Raises:
            EntityNotFoundError: unknown or inactive product
            InsufficientStockError: quantity above min(remaining, 5)
        """
        ids = [item.product_id for item in body.items]
        products = {
            p.id: p
            for p in self.db.scalars(
                select(Product).where(Product.id.in_(ids), Product.is_active.is_(True))
            ).all()
        }

        lines = []
        for item in body.items:
            product = products.get(item.product_id)
            if product is None:
                raise EntityNotFoundError("Produto", item.product_id)
            if item.quantity > product.max_per_order:
                raise InsufficientStockError(
                    product.name,
                    product.max_per_order,
                    product_id=product.id,
                    requested=item.quantity,
                )
            lines.append(
                CheckoutLine(
                    product_id=product.id,
                    name=product.name,
                    unit_price_cents=product.price_cents,
                    quantity=item.quantity,
                )
            )
        return lines

    async def create(self, body: CheckoutInput) -> CheckoutOutput:
        """
        Raises:
            EntityNotFoundError, InsufficientStockError, GatewayError
        """
        lines = self._load_lines(body)
        amount_cents = sum(line.subtotal_cents for line in lines)

        order = Order(
            purchaser_name=body.purchaser_name,
            purchaser_email=body.purchaser_email,
            payment_method=body.payment_method,
            amount_cents=amount_cents,
            status=OrderStatus.PENDING,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                )
                for line in lines
            ],
        )
        self.db.add(order)
        safe_commit(self.db)
        self.db.refresh(order)
        order_id = order.id

        purchaser = Purchaser(body.purchaser_name, body.purchaser_email, body.payment_method)
        request = build_preference_request(lines, purchaser, external_reference=order.external_reference)
        expires_at = None
        if body.payment_method == PaymentMethod.PIX:
            expires_at = utcnow() + timedelta(minutes=Limits.PIX_EXPIRATION_MINUTES)
        request = replace(request, expires_at=expires_at, metadata={"order_id": order_id})

        try:
            preference = await self.gateway.create_preference(request)
        except GatewayError as e:
            PaymentReconciler(self.db).apply(order_id, OrderStatus.FAILED)
            logger.error("Checkout preference failed", order_id=order_id, code=e.code)
            raise

        order.preference_id = preference.preference_id
        safe_commit(self.db)

        logger.info(
            "Checkout started",
            order_id=order_id,
            amount_cents=amount_cents,
            payment_method=body.payment_method,
            purchaser=mask_email(body.purchaser_email),
        )
        return CheckoutOutput(
            order_id=order_id,
            init_point=preference.init_point,
            preference_id=preference.preference_id,
            amount_cents=amount_cents,
            expires_at=expires_at,
        )
