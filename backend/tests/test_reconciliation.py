"""
Tests for exactly-once order status reconciliation and inventory updates.
"""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from enxoval_api.models import Order, OrderItem, Product
from enxoval_api.services.payments.reconciliation import (
    PaymentReconciler,
    increment_purchased_qty,
    map_gateway_status,
    parse_external_reference,
)
from shared.config.constants import OrderStatus
from shared.utils.exceptions import EntityNotFoundError, ValidationError


class TestStatusMapping:
    @pytest.mark.parametrize(
        "gateway_status,expected",
        [
            ("approved", "paid"),
            ("APPROVED", "paid"),
            ("rejected", "failed"),
            ("cancelled", "failed"),
            ("pending", "pending"),
            ("in_process", "pending"),
            ("refunded", "pending"),
            (None, "pending"),
        ],
    )
    def test_map_gateway_status(self, gateway_status, expected):
        assert map_gateway_status(gateway_status) == expected

    @pytest.mark.parametrize(
        "reference,expected",
        [("order_42", 42), ("42", 42), (42, 42), ("order_", None), ("pedido_1", None), (None, None)],
    )
    def test_parse_external_reference(self, reference, expected):
        assert parse_external_reference(reference) == expected


class TestPaymentReconciler:
    def test_pending_to_paid_increments_inventory(self, db_session, make_product, make_order):
        product = make_product(target_qty=5, purchased_qty=1)
        order = make_order([(product, 2)])

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.PAID, external_payment_id="987")

        assert result.changed is True
        assert result.became_paid is True
        assert result.old_status == "pending"
        db_session.refresh(order)
        db_session.refresh(product)
        assert order.status == "paid"
        assert order.paid_at is not None
        assert order.external_payment_id == "987"
        assert product.purchased_qty == 3

    def test_second_paid_is_a_noop(self, db_session, make_product, make_order):
        product = make_product(target_qty=5)
        order = make_order([(product, 2)])
        reconciler = PaymentReconciler(db_session)

        reconciler.apply(order.id, OrderStatus.PAID)
        again = reconciler.apply(order.id, OrderStatus.PAID)

        assert again.changed is False
        assert again.became_paid is False
        db_session.refresh(product)
        assert product.purchased_qty == 2

    def test_paid_is_terminal(self, db_session, make_product, make_order):
        product = make_product()
        order = make_order([(product, 1)], status=OrderStatus.PAID)

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.FAILED)

        assert result.changed is False
        db_session.refresh(order)
        assert order.status == "paid"

    def test_failed_can_become_paid(self, db_session, make_product, make_order):
        product = make_product(target_qty=3)
        order = make_order([(product, 1)], status=OrderStatus.FAILED)

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.PAID)

        assert result.changed is True
        db_session.refresh(product)
        assert product.purchased_qty == 1

    def test_failed_does_not_touch_inventory(self, db_session, make_product, make_order):
        product = make_product(target_qty=3)
        order = make_order([(product, 2)])

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.FAILED)

        assert result.changed is True
        db_session.refresh(product)
        assert product.purchased_qty == 0

    def test_pending_target_only_records_payment_id(self, db_session, make_product, make_order):
        product = make_product()
        order = make_order([(product, 1)])

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.PENDING, external_payment_id="555")

        assert result.changed is False
        db_session.refresh(order)
        assert order.status == "pending"
        assert order.external_payment_id == "555"

    def test_oversell_is_capped(self, db_session, make_product, make_order):
        product = make_product(target_qty=5, purchased_qty=4)
        order = make_order([(product, 3)])

        result = PaymentReconciler(db_session).apply(order.id, OrderStatus.PAID)

        assert result.changed is True
        assert result.capped_products == (product.id,)
        db_session.refresh(product)
        assert product.purchased_qty == 5

    def test_unknown_order(self, db_session):
        with pytest.raises(EntityNotFoundError):
            PaymentReconciler(db_session).apply(999, OrderStatus.PAID)

    def test_unknown_status(self, db_session, make_product, make_order):
        order = make_order([(make_product(), 1)])
        with pytest.raises(ValidationError):
            PaymentReconciler(db_session).apply(order.id, "refunded")


class TestInventoryProperties:
    """Property: purchased_qty never exceeds target_qty, whatever gets paid."""

    @given(
        target_qty=st.integers(min_value=1, max_value=20),
        initial=st.integers(min_value=0, max_value=20),
        increments=st.lists(st.integers(min_value=1, max_value=8), max_size=6),
    )
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_purchased_never_exceeds_target(self, db_session, target_qty, initial, increments):
        initial = min(initial, target_qty)
        product = Product(name="Fralda", price_cents=100, target_qty=target_qty, purchased_qty=initial)
        db_session.add(product)
        db_session.commit()

        expected = initial
        for quantity in increments:
            fitted = increment_purchased_qty(db_session, product.id, quantity)
            db_session.commit()
            assert fitted == (expected + quantity <= target_qty)
            expected = min(expected + quantity, target_qty)

        db_session.refresh(product)
        assert product.purchased_qty == expected
        assert product.purchased_qty <= product.target_qty

    @given(
        target_qty=st.integers(min_value=1, max_value=10),
        quantities=st.lists(st.integers(min_value=1, max_value=5), min_size=1, max_size=5),
    )
    @settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_paying_every_order_respects_target(self, db_session, target_qty, quantities):
        product = Product(name="Body", price_cents=100, target_qty=target_qty, purchased_qty=0)
        db_session.add(product)
        db_session.commit()

        reconciler = PaymentReconciler(db_session)
        for quantity in quantities:
            order = Order(
                purchaser_name="Ana",
                purchaser_email="ana@example.com",
                payment_method="pix",
                amount_cents=100 * quantity,
            )
            db_session.add(order)
            db_session.flush()
            db_session.add(OrderItem(order_id=order.id, product_id=product.id, quantity=quantity, unit_price_cents=100))
            db_session.commit()
            reconciler.apply(order.id, OrderStatus.PAID)
            reconciler.apply(order.id, OrderStatus.PAID)

        db_session.refresh(product)
        assert product.purchased_qty == min(sum(quantities), target_qty)
