"""Tests for cart item identity, hydration and order summary totals."""

import logging
from decimal import Decimal

import pytest
from bson import Decimal128, ObjectId

from app.cart import (
    cart_item_identity, merge_cart_item, remove_cart_items, set_cart_item_quantity,
    hydrate_cart, summarize_cart, build_cart_view
)
from app.schemas import HydratedCartItem
from shared.utils import Settings


def _cart_item(product="P1", qty=1, size=None, store="S1", product_type="Product"):
    item = {"product": product, "storeID": store, "quantity": qty, "productType": product_type}
    if size:
        item["selectedSize"] = {"size": size, "price": 1000, "quantity": 10}
    return item


def _product(product_id="P1", price=1000, **extra):
    product = {"id": product_id, "name": f"Product {product_id}", "slug": product_id.lower(), "price": price}
    product.update(extra)
    return product


def _line(price, qty=1):
    return HydratedCartItem(
        id="P1-nosize", product_id="P1", name="Product P1", image="/img.png",
        price=Decimal(price), quantity=qty,
    )


class TestMergeCartItem:

    def test_same_identity_increments_quantity(self):
        items = [_cart_item(size="M", qty=2)]
        merged = merge_cart_item(items, _cart_item(size="M", qty=1))
        assert len(merged) == 1
        assert merged[0]["quantity"] == 3

    @pytest.mark.parametrize("new_item", [
        _cart_item(size="L"),
        _cart_item(store="S2", size="M"),
        _cart_item(product_type="digitalproducts", size="M"),
        _cart_item(product="P2", size="M"),
    ])
    def test_different_identity_appends(self, new_item):
        merged = merge_cart_item([_cart_item(size="M", qty=2)], new_item)
        assert len(merged) == 2
        assert merged[0]["quantity"] == 2

    def test_identity_ignores_id_representation(self):
        oid = ObjectId()
        assert cart_item_identity(_cart_item(product=oid)) == cart_item_identity(_cart_item(product=str(oid)))

    def test_remove_by_product_and_size(self):
        items = [_cart_item(size="M"), _cart_item(size="L"), _cart_item(product="P2")]
        assert len(remove_cart_items(items, "P1", "M")) == 2
        assert len(remove_cart_items(items, "P1")) == 1

    def test_set_quantity(self):
        items = [_cart_item(size="M"), _cart_item(size="L")]
        assert set_cart_item_quantity(items, "P1", 5, "L") is True
        assert [i["quantity"] for i in items] == [1, 5]
        assert set_cart_item_quantity(items, "P9", 5) is False


class TestHydrateCart:

    def test_missing_product_is_skipped_with_warning(self, caplog):
        cart = {"items": [_cart_item("P1", qty=2), _cart_item("P2", qty=1)]}

        with caplog.at_level(logging.WARNING):
            items = hydrate_cart(cart, [_product("P1", price=1000)])

        assert [item.product_id for item in items] == ["P1"]
        assert summarize_cart(items).subtotal == 2000
        assert any("P2" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_nameless_product_is_skipped_with_warning(self, caplog, name):
        cart = {"items": [_cart_item("P1", qty=2), _cart_item("P2")]}
        products = [_product("P1", price=1000), _product("P2", price=500, name=name)]

        with caplog.at_level(logging.WARNING):
            items = hydrate_cart(cart, products)

        assert [item.product_id for item in items] == ["P1"]
        assert summarize_cart(items).subtotal == 2000
        assert any("P2" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    @pytest.mark.parametrize("price", [None, "1000", float("nan"), float("inf"), True, Decimal("NaN")])
    def test_malformed_price_is_skipped(self, price):
        cart = {"items": [_cart_item("P1")]}
        assert hydrate_cart(cart, [_product("P1", price=price)]) == []

    def test_decimal128_price_is_accepted(self):
        cart = {"items": [_cart_item("P1", qty=3)]}
        items = hydrate_cart(cart, [_product("P1", price=Decimal128("1500"))])
        assert items[0].price == 1500

    def test_display_defaults(self):
        cart = {"items": [_cart_item("P1")]}
        item = hydrate_cart(cart, [_product("P1")])[0]

        assert item.id == "P1-nosize"
        assert item.image == "/placeholder.svg"
        assert item.in_stock is True
        assert item.max_quantity == 99
        assert item.size is None

    def test_product_values_win_over_defaults(self):
        cart = {"items": [_cart_item("P1", size="M")]}
        product = _product("P1", image="/shirt.png", inStock=False, maxQuantity=4)

        item = hydrate_cart(cart, [product])[0]

        assert item.id == "P1-M"
        assert item.size == "M"
        assert item.image == "/shirt.png"
        assert item.in_stock is False
        assert item.max_quantity == 4

    def test_custom_placeholder_and_max_quantity(self):
        custom = Settings(PLACEHOLDER_IMAGE="/none.png", DEFAULT_MAX_QUANTITY=10)
        item = hydrate_cart({"items": [_cart_item("P1")]}, [_product("P1")], custom)[0]
        assert item.image == "/none.png"
        assert item.max_quantity == 10


class TestSummarizeCart:

    def test_shipping_charged_just_below_threshold(self):
        assert summarize_cart([_line(49999)]).shipping == 5000

    def test_free_shipping_at_threshold(self):
        assert summarize_cart([_line(50000)]).shipping == 0

    def test_tax(self):
        assert summarize_cart([_line(10000)]).tax == 750

    def test_tax_rounds_half_up(self):
        # 300 * 0.075 = 22.5
        assert summarize_cart([_line(300)]).tax == 23

    def test_totals(self):
        summary = summarize_cart([_line(1000, qty=2), _line(500, qty=3)])

        assert summary.subtotal == 3500
        assert summary.shipping == 5000
        assert summary.tax == 263
        assert summary.discount == 0
        assert summary.total == 3500 + 5000 + 263
        assert summary.item_count == 2

    def test_configured_rates(self):
        custom = Settings(FREE_SHIPPING_THRESHOLD=1000, SHIPPING_FEE=100, TAX_RATE=Decimal("0.1"))
        summary = summarize_cart([_line(999)], custom)
        assert summary.shipping == 100
        assert summary.tax == 100


class TestBuildCartView:

    def test_no_surviving_items_has_no_summary(self):
        view = build_cart_view("U1", {"items": [_cart_item("P2")]}, [])
        assert view.items == []
        assert view.summary is None

    def test_missing_cart(self):
        assert build_cart_view("U1", None, []).summary is None

    def test_summary_matches_items(self):
        view = build_cart_view("U1", {"items": [_cart_item("P1", qty=2)]}, [_product("P1")])
        assert view.summary.subtotal == 2000
        assert view.summary.item_count == 1
