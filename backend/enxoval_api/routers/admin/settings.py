"""
Settings endpoint: campaign goal and Mercado Pago credentials.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers._common.dependencies import get_gateway
from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import SettingsService
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from shared.utils.admin_schemas import (
    SettingsAction,
    SettingsGetGoal,
    SettingsGetMercadoPago,
    SettingsTestMercadoPago,
    SettingsUpdateGoal,
    SettingsUpdateMercadoPago,
)

router = APIRouter(tags=["admin-settings"])

_actions = TypeAdapter(SettingsAction)


@router.post("/settings")
async def admin_settings(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
) -> Any:
    """get_goal, update_goal, get_mercadopago, update_mercadopago, test_mercadopago."""
    body = parse_action(_actions, payload)
    service = SettingsService(db)
    ctx = audit_user(user)

    if isinstance(body, SettingsGetGoal):
        return {"goal_cents": service.get_goal()}

    if isinstance(body, SettingsUpdateGoal):
        return {"success": True, "goal_cents": service.update_goal(body.goal_cents, ctx)}

    if isinstance(body, SettingsGetMercadoPago):
        return service.get_mercadopago().model_dump()

    if isinstance(body, SettingsUpdateMercadoPago):
        values = body.model_dump(exclude={"action"})
        return {"success": True, **service.update_mercadopago(values, ctx).model_dump()}

    if isinstance(body, SettingsTestMercadoPago):
        return await service.test_mercadopago(body.access_token, gateway)
