"""
Order management endpoint: listing, manual reconciliation and CSV export.
"""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response

from enxoval_api.routers._common.dependencies import get_gateway
from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import OrderService
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from shared.utils.admin_schemas import (
    OrderAction,
    OrderExportCsv,
    OrderGet,
    OrderList,
    OrderMarkStatus,
    OrderReconcile,
)

router = APIRouter(tags=["admin-orders"])

_actions = TypeAdapter(OrderAction)


@router.post("/orders")
async def admin_orders(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
) -> Any:
    """list, get, reconcile, mark_status, export_csv."""
    body = parse_action(_actions, payload)
    service = OrderService(db)
    ctx = audit_user(user)

    if isinstance(body, OrderList):
        return service.list_orders(body, page=body.page, limit=body.limit)

    if isinstance(body, OrderGet):
        return {"order": service.get_order(body.order_id).model_dump(mode="json")}

    if isinstance(body, OrderReconcile):
        return await service.reconcile(body.order_id, gateway, ctx)

    if isinstance(body, OrderMarkStatus):
        return service.mark_status(body.order_id, body.status, ctx)

    if isinstance(body, OrderExportCsv):
        filename, content = service.export_csv(body.filters, ctx)
        return Response(
            content=content.encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
