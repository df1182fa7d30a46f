"""
Tests for the Mercado Pago adapter: local validation, error mapping and
the circuit breaker, all against httpx.MockTransport.
"""

import json
from decimal import Decimal

import httpx
import pytest

from conftest import fresh_breaker, make_gateway
from enxoval_api.services.payments.gateway import (
    PreferenceRequest,
    cents_to_amount,
    validate_preference_request,
)
from shared.utils.exceptions import (
    GatewayRejectedError,
    GatewayUnavailableError,
    InvalidPayloadError,
    MissingConfigError,
)


def preference_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        201,
        json={"id": "pref-123", "init_point": "https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=pref-123"},
    )


class TestValidatePreferenceRequest:
    def test_amount_quantized_to_cents(self):
        req = PreferenceRequest(title="Fraldas", quantity=2, amount=Decimal("19.999"))
        assert validate_preference_request(req) == Decimal("20.00")

    @pytest.mark.parametrize(
        "title,quantity,amount",
        [
            ("", 1, Decimal("10")),
            ("   ", 1, Decimal("10")),
            ("Fraldas", 0, Decimal("10")),
            ("Fraldas", -1, Decimal("10")),
            ("Fraldas", 1, Decimal("0")),
            ("Fraldas", 1, Decimal("-5")),
            ("Fraldas", 1, "abc"),
        ],
    )
    def test_invalid_requests(self, title, quantity, amount):
        with pytest.raises(InvalidPayloadError):
            validate_preference_request(PreferenceRequest(title=title, quantity=quantity, amount=amount))

    def test_cents_to_amount(self):
        assert cents_to_amount(1999) == Decimal("19.99")
        assert cents_to_amount(100) == Decimal("1.00")


class TestCreatePreference:
    async def test_success_builds_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return preference_ok(request)

        gateway = make_gateway(handler)
        result = await gateway.create_preference(
            PreferenceRequest(
                title="Presente para o bebê: Body",
                quantity=2,
                amount=Decimal("39.90"),
                external_reference="order_7",
                payer_name="Maria Silva",
                payer_email="maria@example.com",
                payment_method="pix",
            )
        )

        assert result.preference_id == "pref-123"
        assert result.init_point.startswith("https://")

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/checkout/preferences"
        assert request.headers["Authorization"] == "Bearer TEST-ACCESS-TOKEN"
        assert request.headers["X-Idempotency-Key"] == "order_7"

        payload = json.loads(request.content)
        item = payload["items"][0]
        assert item["quantity"] == 2
        assert item["unit_price"] == 39.9
        assert item["currency_id"] == "BRL"
        assert payload["external_reference"] == "order_7"
        assert payload["back_urls"]["success"] == "https://enxoval.test/sucesso"
        assert payload["auto_return"] == "approved"
        assert payload["notification_url"] == "https://enxoval.test/api/mp/webhook"
        assert payload["payer"] == {"email": "maria@example.com", "name": "Maria", "surname": "Silva"}
        assert payload["payment_methods"] == {"default_payment_method_id": "pix"}

    async def test_invalid_payload_makes_no_request(self):
        calls = []
        gateway = make_gateway(lambda r: calls.append(r) or preference_ok(r))

        with pytest.raises(InvalidPayloadError):
            await gateway.create_preference(PreferenceRequest(title="x", quantity=0, amount=Decimal("1")))
        assert calls == []

    async def test_missing_token(self):
        calls = []
        gateway = make_gateway(lambda r: calls.append(r) or preference_ok(r), token="")

        with pytest.raises(MissingConfigError) as exc_info:
            await gateway.create_preference(PreferenceRequest(title="x", quantity=1, amount=Decimal("1")))
        assert exc_info.value.to_dict()["error"] == "MISSING_CONFIG"
        assert calls == []

    async def test_upstream_rejection_keeps_body(self):
        gateway = make_gateway(lambda r: httpx.Response(401, json={"message": "invalid token"}))

        with pytest.raises(GatewayRejectedError) as exc_info:
            await gateway.create_preference(PreferenceRequest(title="x", quantity=1, amount=Decimal("1")))

        error = exc_info.value
        assert error.upstream_status == 401
        assert error.to_dict() == {"error": "MP_FAIL", "detail": {"message": "invalid token"}, "status": 401}

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(GatewayUnavailableError):
            await gateway.create_preference(PreferenceRequest(title="x", quantity=1, amount=Decimal("1")))

    async def test_breaker_opens_after_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="oops")

        gateway = make_gateway(handler, breaker=fresh_breaker("open-test", failure_threshold=1))
        req = PreferenceRequest(title="x", quantity=1, amount=Decimal("1"))

        with pytest.raises(GatewayRejectedError):
            await gateway.create_preference(req)
        with pytest.raises(GatewayUnavailableError) as exc_info:
            await gateway.create_preference(req)

        assert exc_info.value.retry_after is not None
        assert len(calls) == 1


class TestPaymentLookups:
    async def test_get_payment(self):
        def handler(request):
            assert request.url.path == "/v1/payments/987"
            return httpx.Response(200, json={"id": 987, "status": "approved"})

        payment = await make_gateway(handler).get_payment("987")
        assert payment["status"] == "approved"

    async def test_find_payment_by_reference(self):
        def handler(request):
            assert request.url.path == "/v1/payments/search"
            assert request.url.params["external_reference"] == "order_3"
            return httpx.Response(200, json={"results": [{"id": 5, "status": "rejected"}]})

        payment = await make_gateway(handler).find_payment_by_reference("order_3")
        assert payment == {"id": 5, "status": "rejected"}

    async def test_find_payment_without_results(self):
        gateway = make_gateway(lambda r: httpx.Response(200, json={"results": []}))
        assert await gateway.find_payment_by_reference("order_3") is None

    async def test_get_payment_not_found(self):
        gateway = make_gateway(lambda r: httpx.Response(404, json={"message": "not found"}))
        with pytest.raises(GatewayRejectedError):
            await gateway.get_payment("1")


class TestHealthCheck:
    async def test_without_token(self):
        result = await make_gateway(preference_ok, token="").health_check()
        assert result["status"] == "ERROR"
        assert result["error"] == "MP_ACCESS_TOKEN não configurado"

    async def test_success(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return preference_ok(request)

        result = await make_gateway(handler).health_check()
        assert result["status"] == "SUCCESS"
        assert result["statusHTTP"] == 201
        assert result["preference_id"] == "pref-123"
        assert seen[0]["items"][0]["title"] == "Teste Health"
        assert seen[0]["items"][0]["unit_price"] == 1.0

    async def test_upstream_error_is_reported(self):
        result = await make_gateway(lambda r: httpx.Response(400, json={"message": "bad"})).health_check()
        assert result["status"] == "ERROR"
        assert result["statusHTTP"] == 400
        assert result["responseBody"] == {"message": "bad"}
