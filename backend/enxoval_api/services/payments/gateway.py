"""
Mercado Pago Checkout Pro adapter.

Wraps the gateway calls the registry needs:
- POST /checkout/preferences: hosted checkout session for a title/quantity/amount
- GET /v1/payments/{id}: payment status for webhook and manual reconciliation
- GET /v1/payments/search: payment lookup by external_reference
- GET /v1/account/settings: credential check from the admin settings page
- POST /checkout/preferences (R$ 1,00 probe): connectivity health check

Failures map to the gateway error codes in shared.utils.exceptions:
INVALID_PAYLOAD (checked locally, before any network call),
MISSING_CONFIG (no access token), MP_FAIL (non-2xx, upstream body kept),
MP_UNAVAILABLE (transport error or circuit open).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from enxoval_api.models import MercadoPagoSettings
from enxoval_api.services.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    mercadopago_breaker,
)
from shared.config.constants import PaymentMethod, SINGLETON_ID
from shared.config.logging import get_logger, mask_email
from shared.config.settings import settings
from shared.utils.exceptions import (
    GatewayRejectedError,
    GatewayUnavailableError,
    InvalidPayloadError,
    MissingConfigError,
)

logger = get_logger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PreferenceRequest:
    """What the gateway needs to build a hosted checkout page."""

    title: str
    quantity: int
    amount: Decimal  # unit price in reais
    external_reference: Optional[str] = None
    payer_name: Optional[str] = None
    payer_email: Optional[str] = None
    payment_method: Optional[str] = None
    expires_at: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PreferenceResult:
    init_point: str
    preference_id: str


def cents_to_amount(cents: int) -> Decimal:
    """Integer cents to a two-place Decimal: 1999 -> Decimal("19.99")."""
    return (Decimal(cents) / 100).quantize(CENTS)


def validate_preference_request(req: PreferenceRequest) -> Decimal:
    """
    Reject empty titles and non-positive quantity or amount.

    Returns the amount quantized to cents.

    Raises:
        InvalidPayloadError
    """
    if not isinstance(req.title, str) or not req.title.strip():
        raise InvalidPayloadError("Título é obrigatório")

    if isinstance(req.quantity, bool) or not isinstance(req.quantity, int) or req.quantity <= 0:
        raise InvalidPayloadError("Quantidade deve ser maior que zero")

    try:
        amount = Decimal(str(req.amount)).quantize(CENTS)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidPayloadError("Valor inválido")
    if not amount.is_finite() or amount <= 0:
        raise InvalidPayloadError("Valor deve ser maior que zero")

    return amount


def resolve_access_token(db: Optional[Session]) -> str:
    """
    Access token from the mercadopago_settings row, falling back to MP_ACCESS_TOKEN.

    A disabled settings row means the gateway is switched off.
    """
    if db is not None:
        row = db.get(MercadoPagoSettings, SINGLETON_ID)
        if row is not None:
            if not row.is_enabled:
                return ""
            if row.access_token:
                return row.access_token
    return settings.mp_access_token


def resolve_webhook_secret(db: Optional[Session]) -> str:
    if db is not None:
        row = db.get(MercadoPagoSettings, SINGLETON_ID)
        if row is not None and row.webhook_secret:
            return row.webhook_secret
    return settings.mp_webhook_secret


class MercadoPagoGateway:
    """
    Thin request/response wrapper. Persists nothing.

    ``transport`` is handed to httpx, so tests can plug an httpx.MockTransport.
    """

    def __init__(
        self,
        access_token: Optional[str],
        *,
        base_url: Optional[str] = None,
        notification_url: Optional[str] = None,
        site_url: Optional[str] = None,
        currency_id: Optional[str] = None,
        timeout: Optional[float] = None,
        breaker: CircuitBreaker = mercadopago_breaker,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token or ""
        self.base_url = (base_url or settings.mp_api_base_url).rstrip("/")
        self.notification_url = (
            notification_url if notification_url is not None else settings.mp_notification_url
        )
        self.site_url = (site_url or settings.site_url).rstrip("/")
        self.currency_id = currency_id or settings.currency_id
        self.timeout = timeout if timeout is not None else settings.mp_timeout_seconds
        self.breaker = breaker
        self.transport = transport

    @classmethod
    def from_db(cls, db: Optional[Session], **kwargs: Any) -> "MercadoPagoGateway":
        return cls(resolve_access_token(db), **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        )

    def _headers(self, token: Optional[str] = None, idempotency_key: Optional[str] = None) -> dict:
        headers = {
            "Authorization": f"Bearer {token or self.access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def build_preference_payload(self, req: PreferenceRequest, amount: Decimal) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": [
                {
                    "title": req.title.strip(),
                    "quantity": req.quantity,
                    "unit_price": float(amount),
                    "currency_id": self.currency_id,
                }
            ],
            "back_urls": {
                "success": f"{self.site_url}/sucesso",
                "failure": f"{self.site_url}/erro",
                "pending": f"{self.site_url}/pendente",
            },
            "auto_return": "approved",
        }
        if self.notification_url:
            payload["notification_url"] = self.notification_url
        if req.external_reference:
            payload["external_reference"] = req.external_reference
        if req.payer_email:
            payer: dict[str, Any] = {"email": req.payer_email}
            if req.payer_name:
                first, _, last = req.payer_name.strip().partition(" ")
                payer["name"] = first
                payer["surname"] = last or first
            payload["payer"] = payer
        if req.payment_method == PaymentMethod.PIX:
            payload["payment_methods"] = {"default_payment_method_id": "pix"}
        if req.expires_at is not None:
            payload["expires"] = True
            payload["date_of_expiration"] = req.expires_at.isoformat(timespec="milliseconds")
        if req.metadata:
            payload["metadata"] = req.metadata
        return payload

    async def create_preference(self, req: PreferenceRequest) -> PreferenceResult:
        """
        Create a hosted checkout preference.

        Raises:
            InvalidPayloadError, MissingConfigError, GatewayRejectedError,
            GatewayUnavailableError
        """
        amount = validate_preference_request(req)

        if not self.access_token:
            raise MissingConfigError()

        payload = self.build_preference_payload(req, amount)
        response = await self._send(
            "POST",
            "/checkout/preferences",
            json=payload,
            headers=self._headers(idempotency_key=req.external_reference),
        )

        if not response.is_success:
            logger.error(
                "Mercado Pago preference creation failed",
                status_code=response.status_code,
                external_reference=req.external_reference,
            )
            raise GatewayRejectedError(_response_body(response), upstream_status=response.status_code)

        data = response.json()
        init_point = data.get("init_point") or data.get("sandbox_init_point")
        preference_id = data.get("id")
        if not init_point or not preference_id:
            raise GatewayRejectedError(data, upstream_status=response.status_code)

        logger.info(
            "Mercado Pago preference created",
            preference_id=preference_id,
            external_reference=req.external_reference,
            payer=mask_email(req.payer_email) if req.payer_email else None,
        )
        return PreferenceResult(init_point=init_point, preference_id=str(preference_id))

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        """
        Fetch a payment (status, external_reference, transaction_amount).

        Raises:
            MissingConfigError, GatewayRejectedError, GatewayUnavailableError
        """
        if not self.access_token:
            raise MissingConfigError()

        response = await self._send("GET", f"/v1/payments/{payment_id}", headers=self._headers())
        if response.status_code != 200:
            logger.error(
                "Failed to fetch Mercado Pago payment",
                payment_id=payment_id,
                status_code=response.status_code,
            )
            raise GatewayRejectedError(_response_body(response), upstream_status=response.status_code)
        return response.json()

    async def find_payment_by_reference(self, external_reference: str) -> Optional[dict[str, Any]]:
        """
        Most recent payment for an external_reference, or None.

        Used when an order never received a webhook and has no payment id.
        """
        if not self.access_token:
            raise MissingConfigError()

        response = await self._send(
            "GET",
            "/v1/payments/search",
            params={
                "external_reference": external_reference,
                "sort": "date_created",
                "criteria": "desc",
                "limit": 1,
            },
            headers=self._headers(),
        )
        if not response.is_success:
            raise GatewayRejectedError(_response_body(response), upstream_status=response.status_code)
        results = response.json().get("results") or []
        return results[0] if results else None

    async def account_settings(self, access_token: Optional[str] = None) -> dict[str, Any]:
        """
        Validate a credential against /v1/account/settings.

        Raises:
            MissingConfigError, GatewayRejectedError, GatewayUnavailableError
        """
        token = access_token or self.access_token
        if not token:
            raise MissingConfigError()

        response = await self._send("GET", "/v1/account/settings", headers=self._headers(token))
        if not response.is_success:
            raise GatewayRejectedError(_response_body(response), upstream_status=response.status_code)
        return response.json()

    async def health_check(self) -> dict[str, Any]:
        """
        Create a throwaway R$ 1,00 preference and report the raw outcome.

        Never raises; every failure comes back as ``status: ERROR``.
        """
        if not self.access_token:
            return {
                "status": "ERROR",
                "error": "MP_ACCESS_TOKEN não configurado",
                "statusHTTP": None,
                "responseBody": None,
            }

        probe = PreferenceRequest(title="Teste Health", quantity=1, amount=Decimal("1.00"))
        try:
            response = await self._send(
                "POST",
                "/checkout/preferences",
                json=self.build_preference_payload(probe, probe.amount),
                headers=self._headers(),
            )
        except GatewayUnavailableError as e:
            return {"status": "ERROR", "error": str(e.detail), "statusHTTP": None, "responseBody": None}

        body = _response_body(response)
        data = body if isinstance(body, dict) else {}
        logger.info("Mercado Pago health check", status_code=response.status_code)
        return {
            "status": "SUCCESS" if response.is_success else "ERROR",
            "statusHTTP": response.status_code,
            "responseBody": body,
            "init_point": data.get("init_point"),
            "preference_id": str(data["id"]) if data.get("id") else None,
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send through the circuit breaker.

        Transport errors and 5xx count as breaker failures; 4xx do not.
        """
        try:
            async with self.breaker.call():
                async with self._client() as client:
                    response = await client.request(method, url, **kwargs)
                if response.status_code >= 500:
                    raise _UpstreamServerError(response)
        except _UpstreamServerError as e:
            return e.response
        except CircuitBreakerError as e:
            logger.warning("Mercado Pago circuit breaker open", retry_after=e.retry_after)
            raise GatewayUnavailableError(retry_after=e.retry_after)
        except httpx.HTTPError as e:
            logger.error("Mercado Pago request failed", url=url, error=str(e))
            raise GatewayUnavailableError(str(e))
        return response


class _UpstreamServerError(Exception):
    """Carries a 5xx response out of the breaker so it is counted as a failure."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
