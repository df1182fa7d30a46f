"""
Tests for health endpoints, middlewares and the circuit breaker.
"""

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from conftest import fresh_breaker
from enxoval_api.core.middlewares import SecurityHeadersMiddleware
from enxoval_api.services.payments.circuit_breaker import CircuitBreakerError, CircuitState


class TestHealth:
    def test_basic(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "enxoval-api", "environment": "test"}

    def test_detailed(self, client):
        response = client.get("/api/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"]["status"] == "healthy"
        assert set(data["circuit_breakers"]) == {"mercadopago", "resend"}
        assert data["circuit_breakers"]["mercadopago"]["state"] == "closed"


class TestMiddlewares:
    def test_security_headers(self, client):
        response = client.get("/api/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]
        assert "Strict-Transport-Security" not in response.headers

    def test_server_header_is_removed(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/ping")
        def ping():
            return PlainTextResponse("pong", headers={"Server": "uvicorn"})

        with TestClient(app) as test_client:
            response = test_client.get("/ping")

        assert response.status_code == 200
        assert "server" not in response.headers
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "mp-delivery-123"})
        assert response.headers["X-Request-ID"] == "mp-delivery-123"

    def test_request_id_generated(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "bad id with spaces"})

        request_id = response.headers["X-Request-ID"]
        assert request_id != "bad id with spaces"
        assert len(request_id) == 36

    def test_unsupported_content_type(self, client):
        response = client.post(
            "/api/messages",
            content=b"author_name=Ana",
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 415
        assert response.json() == {"error": "Tipo de conteúdo não suportado. Use application/json"}

    def test_webhook_is_exempt(self, client):
        response = client.post("/api/mp/webhook", content=b"x", headers={"Content-Type": "text/plain"})
        assert response.status_code == 401

    def test_unknown_route(self, client):
        response = client.get("/api/nada")

        assert response.status_code == 404
        assert "error" in response.json()


class TestCircuitBreaker:
    async def test_opens_after_threshold(self):
        breaker = fresh_breaker("unit", failure_threshold=2)

        for _ in range(2):
            with pytest.raises(RuntimeError):
                async with breaker.call():
                    raise RuntimeError("boom")

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError) as exc_info:
            async with breaker.call():
                pass
        assert exc_info.value.retry_after > 0

    async def test_success_keeps_closed(self):
        breaker = fresh_breaker("unit-ok", failure_threshold=1)

        async with breaker.call():
            pass

        assert breaker.state == CircuitState.CLOSED
        assert breaker.snapshot()["state"] == "closed"
