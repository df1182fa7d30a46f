"""
Cart checkout router.

``POST /api/checkout`` records the order and returns the hosted checkout
URL. Rate limited per client IP.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from enxoval_api.routers._common.dependencies import get_gateway
from enxoval_api.services.checkout import OrderCheckoutService
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import CheckoutInput, CheckoutOutput


router = APIRouter(prefix="/api", tags=["checkout"])


@router.post("/checkout", response_model=CheckoutOutput)
@limiter.limit(settings.checkout_rate_limit)
async def checkout(
    request: Request,
    body: CheckoutInput,
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
) -> CheckoutOutput:
    """
    Create a pending order with price snapshots and open a Mercado Pago
    preference for it (``external_reference = order_<id>``).

    Errors:
    - 400 unknown product or quantity above what is still available
    - 400/502/503 gateway errors as ``{"error": code, "detail": ...}``
    """
    return await OrderCheckoutService(db, gateway).create(body)
