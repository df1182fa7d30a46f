"""
Order Service (admin side).

Listing, detail, CSV export and manual reconciliation. Status changes go
through PaymentReconciler so inventory is incremented exactly once no
matter which path (webhook, reconcile, mark_status) gets there first.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from enxoval_api.models import Order, OrderItem
from enxoval_api.services.base_service import BaseService
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from enxoval_api.services.payments.reconciliation import PaymentReconciler, map_gateway_status
from shared.config.logging import admin_logger as logger
from shared.utils.admin_schemas import AdminOrderOutput, OrderFilters, OrderItemOutput
from shared.utils.exceptions import ValidationError
from shared.utils.validators import escape_like_pattern, format_decimal_comma, sanitize_search_term

CSV_HEADERS = ["Data", "Comprador", "Email", "Método", "Valor (R$)", "Status", "ID Pagamento"]


def _filter_clauses(filters: OrderFilters) -> list:
    clauses = []
    term = sanitize_search_term(filters.search)
    if term:
        pattern = f"%{escape_like_pattern(term)}%"
        clauses.append(
            or_(
                Order.purchaser_name.ilike(pattern, escape="\\"),
                Order.purchaser_email.ilike(pattern, escape="\\"),
                Order.external_payment_id.ilike(pattern, escape="\\"),
            )
        )
    if filters.status:
        clauses.append(Order.status == filters.status)
    if filters.payment_method:
        clauses.append(Order.payment_method == filters.payment_method)
    if filters.date_from:
        clauses.append(Order.created_at >= datetime.combine(filters.date_from, time.min))
    if filters.date_to:
        # date_to is inclusive
        clauses.append(Order.created_at < datetime.combine(filters.date_to + timedelta(days=1), time.min))
    return clauses


class OrderService(BaseService[Order]):
    def __init__(self, db: Session):
        super().__init__(db, Order, entity_name="Pedido", audit_entity="order")

    # =========================================================================
    # Query Methods
    # =========================================================================

    def list_orders(self, filters: OrderFilters, *, page: int = 1, limit: int = 20) -> dict[str, Any]:
        clauses = _filter_clauses(filters)
        total = self._db.scalar(select(func.count()).select_from(Order).where(*clauses)) or 0
        orders = self._db.scalars(
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .where(*clauses)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return {
            "orders": [self.to_output(o).model_dump(mode="json") for o in orders],
            "total": total,
            "page": page,
            "limit": limit,
        }

    def get_order(self, order_id: int) -> AdminOrderOutput:
        return self.to_output(self.require_entity(order_id))

    def to_output(self, order: Order) -> AdminOrderOutput:
        return AdminOrderOutput(
            id=order.id,
            purchaser_name=order.purchaser_name,
            purchaser_email=order.purchaser_email,
            payment_method=order.payment_method,
            amount_cents=order.amount_cents,
            status=order.status,
            preference_id=order.preference_id,
            external_payment_id=order.external_payment_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
            paid_at=order.paid_at,
            items=[
                OrderItemOutput(
                    product_id=item.product_id,
                    product_name=item.product.name if item.product else None,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    subtotal_cents=item.subtotal_cents,
                )
                for item in order.items
            ],
        )

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def reconcile(
        self,
        order_id: int,
        gateway: MercadoPagoGateway,
        user_ctx: Optional[dict],
    ) -> dict[str, Any]:
        """
        Ask the gateway for the order's payment and apply its status.

        Uses external_payment_id when known, otherwise searches by
        external_reference.

        Raises:
            EntityNotFoundError, ValidationError, GatewayError
        """
        order = self.require_entity(order_id)

        if order.external_payment_id:
            payment = await gateway.get_payment(order.external_payment_id)
        else:
            payment = await gateway.find_payment_by_reference(order.external_reference)
            if payment is None:
                raise ValidationError(
                    "Nenhum pagamento encontrado no Mercado Pago para este pedido",
                    order_id=order_id,
                )

        gateway_status = payment.get("status")
        result = PaymentReconciler(self._db).apply(
            order_id,
            map_gateway_status(gateway_status),
            external_payment_id=str(payment["id"]) if payment.get("id") else None,
        )

        if result.changed:
            self.audit(
                user_ctx,
                "reconcile",
                order_id,
                {
                    "old_status": result.old_status,
                    "new_status": result.new_status,
                    "gateway_status": gateway_status,
                },
            )

        return {
            "success": True,
            "changed": result.changed,
            "old_status": result.old_status,
            "new_status": result.new_status,
            "gateway_status": gateway_status,
        }

    def mark_status(self, order_id: int, status: str, user_ctx: Optional[dict]) -> dict[str, Any]:
        """
        Manual status change through the same conditional transition.

        ``paid`` orders never change; ``failed`` can only become ``paid``.
        """
        result = PaymentReconciler(self._db).apply(order_id, status)
        if not result.changed and result.old_status != status:
            raise ValidationError(
                f"Não é possível alterar o status de '{result.old_status}' para '{status}'",
                order_id=order_id,
            )

        if result.changed:
            self.audit(
                user_ctx,
                "mark_status",
                order_id,
                {"old_status": result.old_status, "new_status": result.new_status},
            )
            logger.info("Order status set manually", order_id=order_id, status=status)

        return {
            "success": True,
            "changed": result.changed,
            "old_status": result.old_status,
            "new_status": result.new_status,
        }

    # =========================================================================
    # Export
    # =========================================================================

    def export_csv(self, filters: OrderFilters, user_ctx: Optional[dict]) -> tuple[str, str]:
        """
        Returns (filename, csv_text). Semicolon separated for pt-BR spreadsheets.
        """
        orders = self._db.scalars(
            select(Order).where(*_filter_clauses(filters)).order_by(Order.created_at.desc(), Order.id.desc())
        ).all()

        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for order in orders:
            writer.writerow(
                [
                    order.created_at.strftime("%d/%m/%Y %H:%M:%S"),
                    order.purchaser_name,
                    order.purchaser_email,
                    order.payment_method,
                    format_decimal_comma(order.amount_cents),
                    order.status,
                    order.external_payment_id or "",
                ]
            )

        self.audit(
            user_ctx,
            "export_csv",
            None,
            {"filters": filters.model_dump(mode="json", exclude_none=True), "count": len(orders)},
        )
        filename = f"pedidos_{date.today().isoformat()}.csv"
        return filename, buffer.getvalue()
