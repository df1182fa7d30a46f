"""
Tests for the cart reducer and its file-backed store.
"""

import json

import pytest

from enxoval_api.services.checkout.cart import (
    STORAGE_KEY,
    AddItem,
    CartError,
    CartItem,
    CartState,
    CartStore,
    ClearCart,
    LoadCart,
    RemoveItem,
    UpdateQuantity,
    cart_reducer,
    max_allowed_quantity,
)


def item(product_id=1, quantity=1, target_qty=10, purchased_qty=0, price_cents=3990, name="Body"):
    return CartItem(
        product_id=product_id,
        name=name,
        price_cents=price_cents,
        quantity=quantity,
        target_qty=target_qty,
        purchased_qty=purchased_qty,
    )


class TestMaxAllowedQuantity:
    @pytest.mark.parametrize(
        "target,purchased,expected",
        [(10, 0, 5), (5, 3, 2), (5, 5, 0), (3, 4, 0), (6, 1, 5)],
    )
    def test_ceiling(self, target, purchased, expected):
        assert max_allowed_quantity(target, purchased) == expected


class TestCartReducer:
    def test_add_new_line(self):
        state = cart_reducer(CartState(), AddItem(item(quantity=2)))

        assert state.item_count == 2
        assert state.total_cents == 7980
        assert state.get(1).subtotal_cents == 7980

    def test_add_does_not_mutate_input(self):
        before = CartState(items=(item(quantity=1),))
        after = cart_reducer(before, AddItem(item(quantity=1)))

        assert before.get(1).quantity == 1
        assert after.get(1).quantity == 2

    def test_add_merges_and_refreshes_snapshot(self):
        state = CartState(items=(item(quantity=1, price_cents=3990),))
        state = cart_reducer(state, AddItem(item(quantity=2, price_cents=4500)))

        assert len(state.items) == 1
        assert state.get(1).quantity == 3
        assert state.get(1).price_cents == 4500

    def test_add_beyond_remaining_stock(self):
        state = CartState(items=(item(quantity=1, target_qty=5, purchased_qty=3),))

        with pytest.raises(CartError) as exc_info:
            cart_reducer(state, AddItem(item(quantity=2, target_qty=5, purchased_qty=3)))
        assert exc_info.value.message == "Só restam 1 unidades disponíveis deste produto."
        assert exc_info.value.product_id == 1

    def test_add_beyond_per_order_cap(self):
        with pytest.raises(CartError) as exc_info:
            cart_reducer(CartState(), AddItem(item(quantity=6, target_qty=20)))
        assert exc_info.value.message == "Limite de 5 unidades por produto em cada pedido."

    def test_add_fully_gifted_product(self):
        with pytest.raises(CartError) as exc_info:
            cart_reducer(CartState(), AddItem(item(quantity=1, target_qty=4, purchased_qty=4)))
        assert exc_info.value.message == "Este produto já foi totalmente presenteado."

    def test_add_zero_quantity(self):
        with pytest.raises(CartError) as exc_info:
            cart_reducer(CartState(), AddItem(item(quantity=0)))
        assert exc_info.value.message == "A quantidade mínima é 1."

    def test_update_quantity(self):
        state = CartState(items=(item(quantity=1), item(product_id=2, quantity=1)))
        state = cart_reducer(state, UpdateQuantity(product_id=2, quantity=4))

        assert state.get(2).quantity == 4
        assert state.get(1).quantity == 1

    def test_update_to_zero_removes_line(self):
        state = CartState(items=(item(quantity=3),))
        assert cart_reducer(state, UpdateQuantity(product_id=1, quantity=0)).is_empty

    def test_update_unknown_product_is_unchanged(self):
        state = CartState(items=(item(quantity=3),))
        assert cart_reducer(state, UpdateQuantity(product_id=99, quantity=2)) is state

    def test_update_beyond_remaining_stock(self):
        state = CartState(items=(item(quantity=1, target_qty=5, purchased_qty=3),))

        with pytest.raises(CartError) as exc_info:
            cart_reducer(state, UpdateQuantity(product_id=1, quantity=3))
        assert exc_info.value.message == "Só restam 2 unidades disponíveis deste produto."

    def test_remove_and_clear(self):
        state = CartState(items=(item(), item(product_id=2)))

        assert [i.product_id for i in cart_reducer(state, RemoveItem(1)).items] == [2]
        assert cart_reducer(state, ClearCart()).is_empty

    def test_load_replaces_state(self):
        loaded = CartState(items=(item(product_id=7),))
        assert cart_reducer(CartState(items=(item(),)), LoadCart(loaded)) is loaded

    def test_to_dict_and_back(self):
        state = CartState(items=(item(quantity=2),))
        data = state.to_dict()

        assert data["total"] == 7980
        assert data["items"][0]["product_id"] == 1
        assert CartState.from_dict(data) == state


class TestCartStore:
    def test_persists_every_transition(self, tmp_path):
        path = tmp_path / "cart.json"
        store = CartStore(path)
        store.dispatch(AddItem(item(quantity=2)))

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved[STORAGE_KEY]["total"] == 7980
        assert CartStore(path).state.get(1).quantity == 2

    def test_keeps_other_keys(self, tmp_path):
        path = tmp_path / "cart.json"
        path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

        CartStore(path).dispatch(AddItem(item()))

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["theme"] == "dark"
        assert STORAGE_KEY in saved

    def test_missing_file_is_empty_cart(self, tmp_path):
        assert CartStore(tmp_path / "nested" / "cart.json").state.is_empty

    def test_corrupt_file_is_empty_cart(self, tmp_path):
        path = tmp_path / "cart.json"
        path.write_text("{not json", encoding="utf-8")

        assert CartStore(path).state.is_empty

    def test_unreadable_saved_cart_is_discarded(self, tmp_path):
        path = tmp_path / "cart.json"
        path.write_text(json.dumps({STORAGE_KEY: {"items": [{"unexpected": 1}]}}), encoding="utf-8")

        assert CartStore(path).state.is_empty

    def test_rejected_change_keeps_state(self, tmp_path):
        store = CartStore(tmp_path / "cart.json")
        store.dispatch(AddItem(item(quantity=5, target_qty=5)))

        with pytest.raises(CartError):
            store.dispatch(AddItem(item(quantity=1, target_qty=5)))
        assert store.state.get(1).quantity == 5

    def test_clear_is_persisted(self, tmp_path):
        path = tmp_path / "cart.json"
        store = CartStore(path)
        store.dispatch(AddItem(item()))
        store.dispatch(ClearCart())

        assert CartStore(path).state.is_empty
