"""
Pytest configuration and fixtures for backend tests.
"""

import json
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
WEBHOOK_SECRET = "test-webhook-secret"

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["MP_ACCESS_TOKEN"] = ""
os.environ["MP_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ["RESEND_API_KEY"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="enxoval-uploads-")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enxoval_api.main import app
from enxoval_api.models import (
    AdminUser,
    Base,
    Category,
    Order,
    OrderItem,
    Product,
    Profile,
)
from enxoval_api.routers._common.dependencies import get_email_sender, get_gateway
from enxoval_api.services.email import EmailSender
from enxoval_api.services.payments.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from shared.config.constants import OrderStatus, Roles
from shared.infrastructure.db import get_db
from shared.security.password import hash_password
from shared.security.rate_limit import limiter


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_EMAIL = "admin@test.com"
ADMIN_PASSWORD = "testpass123"
GUEST_EMAIL = "convidado@test.com"
GUEST_PASSWORD = "guestpass123"

# Low cost keeps bcrypt fast in tests
TEST_BCRYPT_ROUNDS = 4


def fresh_breaker(name: str = "test", failure_threshold: int = 50) -> CircuitBreaker:
    """Isolated breaker so failures in one test never open the shared one."""
    return CircuitBreaker(CircuitBreakerConfig(name=name, failure_threshold=failure_threshold))


def make_gateway(handler, token: str = "TEST-ACCESS-TOKEN", **kwargs) -> MercadoPagoGateway:
    """Gateway whose HTTP calls are answered by ``handler(request)``."""
    kwargs.setdefault("breaker", fresh_breaker("mercadopago-test"))
    return MercadoPagoGateway(
        token,
        base_url="https://api.mercadopago.test",
        notification_url="https://enxoval.test/api/mp/webhook",
        site_url="https://enxoval.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def make_sender(handler, api_key: str = "re_test_key") -> EmailSender:
    return EmailSender(
        api_key,
        api_url="https://api.resend.test/emails",
        breaker=fresh_breaker("resend-test"),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture(scope="session", autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def use_gateway():
    """
    Route the app's gateway dependency to a mock transport.

    Usage:
        gateway = use_gateway(lambda request: httpx.Response(200, json={...}))
    """
    def _install(handler, **kwargs) -> MercadoPagoGateway:
        gateway = make_gateway(handler, **kwargs)
        app.dependency_overrides[get_gateway] = lambda: gateway
        return gateway

    return _install


@pytest.fixture
def sent_emails():
    """Captured Resend requests; installs a sender that records them."""
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, json={"id": f"email_{len(captured)}"})

    sender = make_sender(handler)
    app.dependency_overrides[get_email_sender] = lambda: sender
    return captured


def _create_account(db_session, email: str, password: str, role: str, full_name: str) -> AdminUser:
    user = AdminUser(
        email=email,
        password=hash_password(password, rounds=TEST_BCRYPT_ROUNDS),
        full_name=full_name,
    )
    db_session.add(user)
    db_session.flush()
    db_session.add(Profile(user_id=user.id, role=role))
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def seed_admin_user(db_session):
    """Create an admin account for authenticated endpoints."""
    return _create_account(db_session, ADMIN_EMAIL, ADMIN_PASSWORD, Roles.ADMIN, "Test Admin")


@pytest.fixture
def seed_guest_user(db_session):
    """Create an account whose profile is not an admin."""
    return _create_account(db_session, GUEST_EMAIL, GUEST_PASSWORD, Roles.USER, "Test Guest")


def _login(client, email: str, password: str) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, f"Login failed: {response.json()}"
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client, seed_admin_user):
    """Get authentication headers for admin API calls."""
    return _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def guest_auth_headers(client, seed_guest_user):
    """Bearer token of a non-admin account."""
    return _login(client, GUEST_EMAIL, GUEST_PASSWORD)


@pytest.fixture
def seed_category(db_session):
    category = Category(name="Roupinhas", sort_order=1)
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def make_product(db_session):
    """Factory for products; defaults to an active R$ 39,90 item wanted 5 times."""
    def _make(**overrides) -> Product:
        values = {
            "name": "Body manga curta",
            "price_cents": 3990,
            "target_qty": 5,
            "purchased_qty": 0,
            "is_active": True,
        }
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def seed_product(make_product, seed_category):
    return make_product(category_id=seed_category.id)


@pytest.fixture
def make_order(db_session):
    """Factory for orders with one line per (product, quantity) pair."""
    def _make(lines, status: str = OrderStatus.PENDING, **overrides) -> Order:
        values = {
            "purchaser_name": "Maria Silva",
            "purchaser_email": "maria@example.com",
            "payment_method": "pix",
            "status": status,
        }
        values.update(overrides)
        items = [
            OrderItem(product_id=product.id, quantity=quantity, unit_price_cents=product.price_cents)
            for product, quantity in lines
        ]
        values.setdefault("amount_cents", sum(i.quantity * i.unit_price_cents for i in items))
        order = Order(items=items, **values)
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make
