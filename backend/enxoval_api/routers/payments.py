"""
Mercado Pago router.

- POST /api/mp/checkout: direct preference for a title/quantity/amount
- POST /api/mp/health: throwaway preference to check the credential
- POST /api/mp/webhook: payment notifications (signed with x-signature)

Webhook responses are plain text: the gateway only looks at the status
code, retrying anything that is not 2xx.
"""

import json

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from enxoval_api.routers._common.dependencies import get_email_sender, get_gateway, get_webhook_secret
from enxoval_api.services.email import EmailSender, deliver_quietly
from enxoval_api.services.payments.gateway import MercadoPagoGateway, PreferenceRequest
from enxoval_api.services.payments.webhook import PaymentNotificationService, parse_webhook_event
from shared.config.logging import audit_webhook_event
from shared.config.logging import payments_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.security.webhook_signature import verify_webhook_signature
from shared.utils.exceptions import GatewayError
from shared.utils.schemas import GatewayHealthOutput, PreferenceInput, PreferenceOutput


router = APIRouter(prefix="/api/mp", tags=["payments"])

UNAUTHORIZED_TEXT = "Unauthorized"


@router.post("/checkout", response_model=PreferenceOutput)
@limiter.limit(settings.checkout_rate_limit)
async def create_checkout_preference(
    request: Request,
    body: PreferenceInput,
    gateway: MercadoPagoGateway = Depends(get_gateway),
) -> PreferenceOutput:
    """
    Create a hosted checkout preference. Persists nothing.

    Errors come back as ``{"error": code, "detail": ...}``:
    INVALID_PAYLOAD (400), MISSING_CONFIG (502), MP_FAIL (502), MP_UNAVAILABLE (503).
    """
    result = await gateway.create_preference(
        PreferenceRequest(
            title=body.title,
            quantity=body.quantity,
            amount=body.amount,
            external_reference=body.external_reference,
        )
    )
    return PreferenceOutput(init_point=result.init_point, preference_id=result.preference_id)


@router.post("/health", response_model=GatewayHealthOutput, response_model_exclude_none=True)
async def gateway_health(gateway: MercadoPagoGateway = Depends(get_gateway)) -> GatewayHealthOutput:
    """Always 200; ``status`` says whether the gateway accepted the probe."""
    return GatewayHealthOutput(**await gateway.health_check())


@router.post("/webhook")
async def mercadopago_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
    secret: str = Depends(get_webhook_secret),
    sender: EmailSender = Depends(get_email_sender),
) -> PlainTextResponse:
    """
    Verify, deduplicate and apply a payment notification.

    - 401: secret not configured, header missing or signature mismatch
      (nothing is written)
    - 200 "OK": processed, duplicate, or not a payment event
    - 500: payment lookup or processing failed; the gateway will redeliver
    """
    body = await request.body()
    client_ip = request.client.host if request.client else None

    if not secret:
        audit_webhook_event("SECRET_MISSING", reason="MP_WEBHOOK_SECRET not configured", ip_address=client_ip)
        return PlainTextResponse(UNAUTHORIZED_TEXT, status_code=401)

    signature = request.headers.get("x-signature")
    if not verify_webhook_signature(body, signature, secret):
        audit_webhook_event(
            "SIGNATURE_INVALID",
            reason="missing header" if not signature else "mismatch",
            ip_address=client_ip,
            request_id=request.headers.get("x-request-id"),
        )
        return PlainTextResponse(UNAUTHORIZED_TEXT, status_code=401)

    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        logger.warning("Webhook body is not JSON", size=len(body))
        return PlainTextResponse("Invalid payload", status_code=400)
    if not isinstance(payload, dict):
        payload = {}

    event = parse_webhook_event(payload, dict(request.query_params))
    try:
        outcome = await PaymentNotificationService(db, gateway).process(event)
    except GatewayError as e:
        logger.error("Webhook processing failed", resource_id=event.resource_id, code=e.code)
        return PlainTextResponse("Error", status_code=500)
    except Exception as e:
        logger.error("Webhook processing failed", resource_id=event.resource_id, error=repr(e), exc_info=True)
        return PlainTextResponse("Error", status_code=500)

    if outcome.result is not None:
        logger.info(
            "Webhook applied",
            order_id=outcome.order_id,
            changed=outcome.result.changed,
            old_status=outcome.result.old_status,
            new_status=outcome.result.new_status,
        )
    if outcome.email is not None:
        background_tasks.add_task(deliver_quietly, outcome.email, sender)

    return PlainTextResponse("OK")
