"""
Tests for the terminal storefront commands.
"""

import json

import pytest
from typer.testing import CliRunner

import cli

runner = CliRunner()

CATALOG = {
    7: {
        "id": 7,
        "name": "Body manga curta",
        "price_cents": 3990,
        "target_qty": 3,
        "purchased_qty": 1,
        "image_url": None,
    },
}


@pytest.fixture
def cart_file(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "_fetch_product", lambda api_url, product_id: CATALOG[product_id])
    return tmp_path / "cart.json"


def invoke(*args):
    return runner.invoke(cli.app, list(args))


class TestCartCommands:
    def test_add_and_show(self, cart_file):
        result = invoke("cart-add", "7", "--quantity", "2", "--cart-file", str(cart_file))

        assert result.exit_code == 0
        assert "Body manga curta" in result.output
        assert "R$ 79,80" in result.output

        saved = json.loads(cart_file.read_text(encoding="utf-8"))
        assert len(saved) == 1
        [stored] = saved.values()
        assert stored["items"][0]["quantity"] == 2

        shown = invoke("cart-show", "--cart-file", str(cart_file))
        assert "R$ 79,80" in shown.output

    def test_add_over_remaining(self, cart_file):
        invoke("cart-add", "7", "--cart-file", str(cart_file))

        result = invoke("cart-add", "7", "--quantity", "2", "--cart-file", str(cart_file))

        assert result.exit_code == 1
        assert "Só restam 1 unidades disponíveis deste produto." in result.output

    def test_set_zero_removes(self, cart_file):
        invoke("cart-add", "7", "--cart-file", str(cart_file))

        result = invoke("cart-set", "7", "0", "--cart-file", str(cart_file))

        assert result.exit_code == 0
        assert "Carrinho vazio" in result.output

    def test_clear(self, cart_file):
        invoke("cart-add", "7", "--cart-file", str(cart_file))

        assert invoke("cart-clear", "--cart-file", str(cart_file)).exit_code == 0
        assert "Carrinho vazio" in invoke("cart-show", "--cart-file", str(cart_file)).output

    def test_checkout_with_empty_cart(self, cart_file):
        result = invoke("checkout", "--cart-file", str(cart_file))

        assert result.exit_code == 1
        assert "vazio" in result.output
