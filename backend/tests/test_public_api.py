"""
Tests for the public storefront: catalog, progress, guestbook and checkout.
"""

import json

import httpx
from sqlalchemy import select

from enxoval_api.models import Category, Order

INIT_POINT = "https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=pref-1"


def preference_handler(seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(201, json={"id": "pref-1", "init_point": INIT_POINT})

    return handler


def checkout_body(*items, **overrides):
    body = {
        "purchaser_name": "Maria Silva",
        "purchaser_email": "maria@example.com",
        "payment_method": "pix",
        "items": [{"product_id": product_id, "quantity": quantity} for product_id, quantity in items],
    }
    body.update(overrides)
    return body


class TestCatalog:
    def test_lists_active_products(self, client, make_product, seed_category):
        make_product(name="Body", category_id=seed_category.id, purchased_qty=2)
        make_product(name="Escondido", is_active=False)

        products = client.get("/api/products").json()

        assert [p["name"] for p in products] == ["Body"]
        body = products[0]
        assert body["remaining"] == 3
        assert body["max_per_order"] == 3
        assert body["category_name"] == "Roupinhas"

    def test_max_per_order_is_capped(self, client, make_product):
        make_product(target_qty=20)
        assert client.get("/api/products").json()[0]["max_per_order"] == 5

    def test_ordered_by_category_then_name(self, client, db_session, make_product):
        first = Category(name="Quarto", sort_order=1)
        second = Category(name="Banho", sort_order=2)
        db_session.add_all([first, second])
        db_session.commit()
        make_product(name="Toalha", category_id=second.id)
        make_product(name="Mosquiteiro", category_id=first.id)
        make_product(name="Berço", category_id=first.id)

        names = [p["name"] for p in client.get("/api/products").json()]
        assert names == ["Berço", "Mosquiteiro", "Toalha"]

    def test_filter_by_category(self, client, make_product, seed_category):
        make_product(name="Body", category_id=seed_category.id)
        make_product(name="Avulso")

        products = client.get("/api/products", params={"category_id": seed_category.id}).json()
        assert [p["name"] for p in products] == ["Body"]


class TestProgress:
    def test_defaults(self, client):
        assert client.get("/api/progress").json() == {
            "goal_cents": 115500,
            "raised_cents": 0,
            "percentage": 0.0,
            "paid_orders": 0,
        }

    def test_counts_only_paid_orders(self, client, seed_product, make_order):
        make_order([(seed_product, 1)], status="paid")
        make_order([(seed_product, 2)])
        make_order([(seed_product, 2)], status="failed")

        progress = client.get("/api/progress").json()
        assert progress["raised_cents"] == 3990
        assert progress["paid_orders"] == 1

    def test_percentage_capped(self, client, make_product, make_order):
        product = make_product(price_cents=100_000, target_qty=5)
        make_order([(product, 2)], status="paid")

        progress = client.get("/api/progress").json()
        assert progress["raised_cents"] == 200_000
        assert progress["percentage"] == 100.0


class TestGuestbook:
    def test_post_message_is_pending(self, client):
        response = client.post("/api/messages", json={"author_name": "Vovó", "message": "Muito amor!"})

        assert response.status_code == 201
        assert response.json()["approved"] is False
        assert client.get("/api/messages").json() == []

    def test_blank_author(self, client):
        response = client.post("/api/messages", json={"author_name": "  ", "message": "Oi"})

        assert response.status_code == 400
        assert response.json()["error"].startswith("author_name:")

    def test_story_default(self, client):
        assert client.get("/api/story").json() == {"content": "Digite a história aqui...", "couple_photo": None}


class TestCheckout:
    def test_creates_order_and_preference(self, client, db_session, seed_product, use_gateway):
        seen = []
        use_gateway(preference_handler(seen))

        response = client.post("/api/checkout", json=checkout_body((seed_product.id, 2)))

        assert response.status_code == 200
        data = response.json()
        assert data["init_point"] == INIT_POINT
        assert data["preference_id"] == "pref-1"
        assert data["amount_cents"] == 7980
        assert data["expires_at"] is not None

        order = db_session.get(Order, data["order_id"])
        assert order.status == "pending"
        assert order.preference_id == "pref-1"
        assert order.items[0].unit_price_cents == 3990

        payload = json.loads(seen[0].content)
        assert payload["external_reference"] == f"order_{order.id}"
        assert payload["items"][0]["title"] == "Presente para o bebê: Body manga curta"
        assert payload["items"][0]["quantity"] == 2
        assert payload["expires"] is True
        assert payload["metadata"] == {"order_id": order.id}
        assert seen[0].headers["X-Idempotency-Key"] == f"order_{order.id}"

        db_session.refresh(seed_product)
        assert seed_product.purchased_qty == 0

    def test_several_items_single_line(self, client, make_product, use_gateway):
        seen = []
        use_gateway(preference_handler(seen))
        first = make_product(name="Body", price_cents=3990)
        second = make_product(name="Manta", price_cents=5000)

        response = client.post("/api/checkout", json=checkout_body((first.id, 1), (second.id, 2)))

        assert response.json()["amount_cents"] == 13990
        item = json.loads(seen[0].content)["items"][0]
        assert item["title"] == "Presentes para o bebê (2 itens)"
        assert item["quantity"] == 1
        assert item["unit_price"] == 139.9

    def test_card_has_no_expiration(self, client, seed_product, use_gateway):
        seen = []
        use_gateway(preference_handler(seen))

        response = client.post("/api/checkout", json=checkout_body((seed_product.id, 1), payment_method="credit"))

        assert response.json()["expires_at"] is None
        payload = json.loads(seen[0].content)
        assert "payment_methods" not in payload
        assert "expires" not in payload

    def test_quantity_above_remaining(self, client, db_session, make_product, use_gateway):
        use_gateway(preference_handler())
        product = make_product(target_qty=5, purchased_qty=4)

        response = client.post("/api/checkout", json=checkout_body((product.id, 2)))

        assert response.status_code == 400
        assert response.json() == {"error": "Apenas 1 unidade(s) disponível(is) de 'Body manga curta'"}
        assert db_session.scalars(select(Order)).all() == []

    def test_fully_gifted_product(self, client, make_product, use_gateway):
        use_gateway(preference_handler())
        product = make_product(target_qty=3, purchased_qty=3)

        response = client.post("/api/checkout", json=checkout_body((product.id, 1)))

        assert response.status_code == 400
        assert response.json() == {"error": "O produto 'Body manga curta' não está mais disponível"}

    def test_per_order_cap(self, client, make_product, use_gateway):
        use_gateway(preference_handler())
        product = make_product(target_qty=20)

        response = client.post("/api/checkout", json=checkout_body((product.id, 6)))

        assert response.status_code == 400
        assert response.json() == {"error": "Apenas 5 unidade(s) disponível(is) de 'Body manga curta'"}

    def test_unknown_or_inactive_product(self, client, make_product, use_gateway):
        use_gateway(preference_handler())
        hidden = make_product(is_active=False)

        unknown = client.post("/api/checkout", json=checkout_body((999, 1)))
        inactive = client.post("/api/checkout", json=checkout_body((hidden.id, 1)))

        assert unknown.json() == {"error": "Produto com ID 999 não encontrado"}
        assert inactive.status_code == 400

    def test_input_validation(self, client, seed_product, use_gateway):
        use_gateway(preference_handler())

        empty = client.post("/api/checkout", json=checkout_body())
        repeated = client.post("/api/checkout", json=checkout_body((seed_product.id, 1), (seed_product.id, 1)))
        bad_email = client.post(
            "/api/checkout", json=checkout_body((seed_product.id, 1), purchaser_email="maria")
        )

        assert empty.status_code == 400
        assert repeated.status_code == 400
        assert bad_email.json()["error"].startswith("purchaser_email:")

    def test_gateway_rejection_marks_order_failed(self, client, db_session, seed_product, use_gateway):
        use_gateway(lambda request: httpx.Response(401, json={"message": "invalid token"}))

        response = client.post("/api/checkout", json=checkout_body((seed_product.id, 1)))

        assert response.status_code == 502
        assert response.json() == {"error": "MP_FAIL", "detail": {"message": "invalid token"}, "status": 401}
        order = db_session.scalars(select(Order)).one()
        assert order.status == "failed"
        assert order.preference_id is None

    def test_missing_token(self, client, db_session, seed_product, use_gateway):
        use_gateway(preference_handler(), token="")

        response = client.post("/api/checkout", json=checkout_body((seed_product.id, 1)))

        assert response.status_code == 502
        assert response.json()["error"] == "MISSING_CONFIG"
        assert db_session.scalars(select(Order)).one().status == "failed"


class TestDirectPreference:
    def test_success(self, client, use_gateway):
        seen = []
        use_gateway(preference_handler(seen))

        response = client.post(
            "/api/mp/checkout",
            json={"title": "Fraldas", "quantity": 2, "amount": "19.90", "external_reference": "avulso_1"},
        )

        assert response.status_code == 200
        assert response.json() == {"init_point": INIT_POINT, "preference_id": "pref-1"}
        payload = json.loads(seen[0].content)
        assert payload["items"][0]["unit_price"] == 19.9
        assert payload["external_reference"] == "avulso_1"

    def test_invalid_payload(self, client, use_gateway):
        seen = []
        use_gateway(preference_handler(seen))

        response = client.post("/api/mp/checkout", json={"title": "Fraldas", "quantity": 0, "amount": "19.90"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_PAYLOAD"
        assert seen == []

    def test_missing_config(self, client, use_gateway):
        use_gateway(preference_handler(), token="")

        response = client.post("/api/mp/checkout", json={"title": "Fraldas", "quantity": 1, "amount": "10"})

        assert response.status_code == 502
        assert response.json()["error"] == "MISSING_CONFIG"

    def test_gateway_unreachable(self, client, use_gateway):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        use_gateway(handler)
        response = client.post("/api/mp/checkout", json={"title": "Fraldas", "quantity": 1, "amount": "10"})

        assert response.status_code == 503
        assert response.json()["error"] == "MP_UNAVAILABLE"


class TestGatewayHealth:
    def test_success(self, client, use_gateway):
        use_gateway(preference_handler())

        response = client.post("/api/mp/health")

        assert response.status_code == 200
        assert response.json()["status"] == "SUCCESS"
        assert response.json()["preference_id"] == "pref-1"

    def test_without_token_still_200(self, client, use_gateway):
        use_gateway(preference_handler(), token="")

        response = client.post("/api/mp/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ERROR", "error": "MP_ACCESS_TOKEN não configurado"}
