"""
Injectable collaborators for routers.

Routers never build the gateway or the email sender themselves, so tests
can swap them through ``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from enxoval_api.services.email import EmailSender
from enxoval_api.services.payments.gateway import MercadoPagoGateway, resolve_webhook_secret
from shared.infrastructure.db import get_db


def get_gateway(db: Session = Depends(get_db)) -> MercadoPagoGateway:
    """Gateway with the access token resolved from the settings row or env."""
    return MercadoPagoGateway.from_db(db)


def get_email_sender() -> EmailSender:
    return EmailSender()


def get_webhook_secret(db: Session = Depends(get_db)) -> str:
    return resolve_webhook_secret(db)
