"""Tests for cookie cart parsing, mutation limits and reconciliation."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from petshop.core.errors import BadRequestError
from petshop.schemas.cart import CartItem
from petshop.services.cart import (
    add_item,
    dump_cart,
    parse_cart,
    reconcile,
    remove_item,
    total_quantity,
    update_item,
)


def _product(pid, price, name=None):
    return SimpleNamespace(
        id=pid,
        name=name or f"Producto {pid}",
        slug=f"producto-{pid}",
        image_url=None,
        price=Decimal(price),
    )


class TestParseCart:
    @pytest.mark.parametrize("raw", [None, "", "not json", "[]", '{"items": "x"}', "42"])
    def test_garbage_reads_as_empty(self, raw):
        assert parse_cart(raw) == []

    def test_drops_malformed_and_non_positive_entries(self):
        raw = (
            '{"items": [{"product_id": 1, "qty": 2}, {"product_id": "x", "qty": 1},'
            ' {"product_id": 3, "qty": 0}, {"product_id": 4, "qty": -1}, "junk", {"qty": 1}]}'
        )
        assert parse_cart(raw) == [CartItem(product_id=1, qty=2)]

    def test_dump_then_parse_keeps_lines(self):
        items = [CartItem(product_id=5, qty=1), CartItem(product_id=9, qty=3)]
        assert parse_cart(dump_cart(items)) == items


class TestMutations:
    def test_add_merges_existing_line(self):
        items = add_item([CartItem(product_id=1, qty=2)], 1, 3)
        assert items == [CartItem(product_id=1, qty=5)]

    def test_add_clamps_line_to_max_per_item(self):
        items = add_item([CartItem(product_id=1, qty=48)], 1, 10, max_per_item=50, max_items=100)
        assert items[0].qty == 50

    def test_add_does_not_mutate_input(self):
        original = [CartItem(product_id=1, qty=1)]
        add_item(original, 1, 1)
        assert original[0].qty == 1

    def test_total_above_limit_raises_cart_limit(self):
        items = [CartItem(product_id=i, qty=50) for i in range(1, 3)]
        with pytest.raises(BadRequestError) as exc:
            add_item(items, 3, 1, max_per_item=50, max_items=100)
        assert exc.value.code == "CART_LIMIT"
        assert exc.value.status_code == 400

    def test_update_sets_quantity(self):
        items = update_item([CartItem(product_id=1, qty=2)], 1, 7)
        assert items == [CartItem(product_id=1, qty=7)]

    def test_update_zero_removes_line(self):
        items = update_item([CartItem(product_id=1, qty=2), CartItem(product_id=2, qty=1)], 1, 0)
        assert items == [CartItem(product_id=2, qty=1)]

    def test_update_unknown_product_raises_key_error(self):
        with pytest.raises(KeyError):
            update_item([CartItem(product_id=1, qty=2)], 2, 1)

    def test_remove(self):
        items = remove_item([CartItem(product_id=1, qty=2), CartItem(product_id=2, qty=1)], 2)
        assert items == [CartItem(product_id=1, qty=2)]
        assert total_quantity(items) == 2


class TestReconcile:
    def test_subtotal_uses_live_prices(self):
        items = [CartItem(product_id=1, qty=2), CartItem(product_id=2, qty=3)]
        cart = reconcile(items, {1: _product(1, "10.50"), 2: _product(2, "0.10")})

        assert cart.subtotal == pytest.approx(21.30)
        assert [line.line_total for line in cart.enriched] == [pytest.approx(21.0), pytest.approx(0.3)]

    def test_missing_products_are_excluded(self):
        items = [CartItem(product_id=1, qty=2), CartItem(product_id=99, qty=5)]
        cart = reconcile(items, {1: _product(1, "4.00")})

        assert [line.product_id for line in cart.enriched] == [1]
        assert cart.subtotal == pytest.approx(8.0)
        assert len(cart.items) == 2

    def test_empty_cart(self):
        cart = reconcile([], {})
        assert cart.enriched == []
        assert cart.subtotal == 0
