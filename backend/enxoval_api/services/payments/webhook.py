"""
Mercado Pago notification processing.

Runs after the router has verified the signature. Each delivery is
recorded in payment_notifications under a dedupe key; a delivery whose
key was already processed is a no-op. Deliveries that failed earlier
(gateway unreachable or an error while applying) are claimed again so the
gateway's retry can finish the job.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from enxoval_api.models import Order, PaymentNotification
from enxoval_api.models.base import utcnow
from enxoval_api.services.email import EmailMessage, build_thankyou_message
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from enxoval_api.services.payments.reconciliation import (
    PaymentReconciler,
    ReconcileResult,
    map_gateway_status,
    parse_external_reference,
)
from shared.config.constants import NotificationStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import EntityNotFoundError, GatewayError

logger = get_logger(__name__)

PAYMENT_TOPICS = {"payment", "payments"}


@dataclass(frozen=True)
class WebhookEvent:
    topic: str
    resource_id: Optional[str]
    action: Optional[str]
    notification_id: Optional[str]
    payload: dict[str, Any]

    @property
    def is_payment(self) -> bool:
        return self.topic in PAYMENT_TOPICS and bool(self.resource_id)

    def dedupe_key(self, gateway_status: Optional[str] = None) -> str:
        """Notification id when present, otherwise payment id plus its current status."""
        if self.notification_id:
            raw = f"notification:{self.notification_id}"
        else:
            raw = f"payment:{self.resource_id}:{gateway_status or ''}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class WebhookOutcome:
    status: str
    order_id: Optional[int] = None
    result: Optional[ReconcileResult] = None
    email: Optional[EmailMessage] = None

    @property
    def duplicate(self) -> bool:
        return self.status == "duplicate"


def parse_webhook_event(payload: Mapping[str, Any], query: Mapping[str, str]) -> WebhookEvent:
    """
    Normalize the two delivery styles Mercado Pago uses.

    Webhooks send JSON ``{"id", "type", "action", "data": {"id"}}``;
    legacy IPN sends ``?topic=payment&id=123`` with no body.
    """
    data = payload.get("data") if isinstance(payload.get("data"), Mapping) else {}
    topic = payload.get("type") or payload.get("topic") or query.get("type") or query.get("topic") or ""
    resource_id = data.get("id") or query.get("data.id") or query.get("id")
    if resource_id is None and topic in PAYMENT_TOPICS and payload.get("resource"):
        resource_id = str(payload["resource"]).rstrip("/").rsplit("/", 1)[-1]

    notification_id = payload.get("id") if data else None
    return WebhookEvent(
        topic=str(topic).lower(),
        resource_id=str(resource_id) if resource_id is not None else None,
        action=payload.get("action"),
        notification_id=str(notification_id) if notification_id is not None else None,
        payload=dict(payload),
    )


class PaymentNotificationService:
    def __init__(self, db: Session, gateway: MercadoPagoGateway):
        self.db = db
        self.gateway = gateway

    def _claim(self, event: WebhookEvent, key: str) -> Optional[PaymentNotification]:
        """
        Insert the notification row, or reclaim a previously failed one.

        Returns None when the delivery is a duplicate.
        """
        db = self.db
        row = PaymentNotification(
            dedupe_key=key,
            topic=event.topic,
            action=event.action,
            resource_id=event.resource_id,
            payload=event.payload,
        )
        db.add(row)
        try:
            safe_commit(db)
            return row
        except IntegrityError:
            pass

        reclaimed = db.execute(
            update(PaymentNotification)
            .where(
                PaymentNotification.dedupe_key == key,
                PaymentNotification.status == NotificationStatus.FAILED,
            )
            .values(status=NotificationStatus.RECEIVED, error=None)
            .execution_options(synchronize_session=False)
        )
        safe_commit(db)
        if reclaimed.rowcount != 1:
            return None
        return db.scalar(select(PaymentNotification).where(PaymentNotification.dedupe_key == key))

    def _finish(self, row: PaymentNotification, status: str, **values: Any) -> None:
        row.status = status
        row.processed_at = utcnow()
        for key, value in values.items():
            setattr(row, key, value)

    def _fail(self, key: str, error: Exception) -> None:
        """Leave the notification FAILED so the next redelivery reclaims it."""
        db = self.db
        db.rollback()
        db.execute(
            update(PaymentNotification)
            .where(PaymentNotification.dedupe_key == key)
            .values(
                status=NotificationStatus.FAILED,
                error=getattr(error, "code", None) or type(error).__name__,
                processed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        safe_commit(db)

    def _apply(self, row: PaymentNotification, event: WebhookEvent, payment: Mapping[str, Any]) -> WebhookOutcome:
        order_id = parse_external_reference(payment.get("external_reference"))
        new_status = map_gateway_status(payment.get("status"))
        if order_id is None:
            self._finish(row, NotificationStatus.IGNORED, error="unknown external_reference")
            safe_commit(self.db)
            logger.warning(
                "Payment without a known external_reference",
                payment_id=event.resource_id,
                external_reference=payment.get("external_reference"),
            )
            return WebhookOutcome(status="ignored")

        try:
            result = PaymentReconciler(self.db).apply(
                order_id,
                new_status,
                external_payment_id=str(payment.get("id") or event.resource_id),
                commit=False,
            )
        except EntityNotFoundError:
            self._finish(row, NotificationStatus.IGNORED, order_id=order_id, error="order not found")
            safe_commit(self.db)
            return WebhookOutcome(status="ignored", order_id=order_id)

        self._finish(row, NotificationStatus.PROCESSED, order_id=order_id)
        safe_commit(self.db)
        return WebhookOutcome(status="processed", order_id=order_id, result=result)

    async def process(self, event: WebhookEvent) -> WebhookOutcome:
        """
        Apply one verified payment notification.

        Notifications with an id are deduplicated before the payment lookup.
        Legacy IPN deliveries carry no id and are resent on every status
        change, so they are keyed on the payment status after the lookup.

        Raises:
            GatewayError: payment lookup failed.
            Any error raised while applying the payment. In both cases the
            notification is left FAILED so a redelivery is processed again.
        """
        if not event.is_payment:
            logger.info("Webhook ignored", topic=event.topic, resource_id=event.resource_id)
            return WebhookOutcome(status="ignored")

        if event.notification_id:
            key = event.dedupe_key()
            row = self._claim(event, key)
            if row is None:
                logger.info("Duplicate webhook delivery", resource_id=event.resource_id, action=event.action)
                return WebhookOutcome(status="duplicate")
            try:
                payment = await self.gateway.get_payment(event.resource_id)
                outcome = self._apply(row, event, payment)
            except Exception as e:
                self._fail(key, e)
                raise
        else:
            payment = await self.gateway.get_payment(event.resource_id)
            key = event.dedupe_key(payment.get("status"))
            row = self._claim(event, key)
            if row is None:
                logger.info("Duplicate IPN delivery", resource_id=event.resource_id, status=payment.get("status"))
                return WebhookOutcome(status="duplicate")
            try:
                outcome = self._apply(row, event, payment)
            except Exception as e:
                self._fail(key, e)
                raise

        if outcome.result is not None and outcome.result.became_paid:
            order = self.db.get(Order, outcome.order_id)
            outcome = replace(outcome, email=build_thankyou_message(self.db, order))
        return outcome
