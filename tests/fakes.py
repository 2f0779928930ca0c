"""In-memory stand-in for StorefrontRepository.

Implements the same async methods the endpoints call, keeping documents
in dicts. Orders are stored already populated, the way the real
repository hands them to the formatters.
"""

import copy
from datetime import datetime

from app.cart import merge_cart_item, remove_cart_items, set_cart_item_quantity
from app.population import reference_id


class FakeRepository:

    def __init__(self, products=None, orders=None):
        self.carts = {}
        self.products = {p["id"]: p for p in products or []}
        self.orders = {str(o["_id"]): o for o in orders or []}
        self.healthy = True

    async def ping(self):
        if not self.healthy:
            raise ConnectionError("database unreachable")

    async def get_cart_by_user_id(self, user_id):
        return self.carts.get(user_id)

    async def add_item_to_cart(self, user_id, item):
        new_item = item.model_dump(by_alias=True, exclude_none=True)
        cart = self.carts.get(user_id)
        if cart is None:
            cart = {"_id": f"cart-{user_id}", "user": user_id, "items": []}
            self.carts[user_id] = cart
        cart["items"] = merge_cart_item(cart["items"], new_item)
        cart["updatedAt"] = datetime.utcnow()
        return cart

    async def remove_item_from_cart(self, user_id, product_id, size=None):
        cart = self.carts.get(user_id)
        if cart is None:
            return None
        cart["items"] = remove_cart_items(cart["items"], product_id, size)
        return cart

    async def update_cart_item_quantity(self, user_id, product_id, quantity, size=None):
        cart = self.carts.get(user_id)
        if cart is None or not set_cart_item_quantity(cart["items"], product_id, quantity, size):
            return None
        return cart

    async def clear_cart(self, user_id):
        if user_id in self.carts:
            self.carts[user_id]["items"] = []

    async def get_products_by_ids(self, ids):
        return [self.products[i] for i in ids if i in self.products]

    async def get_order(self, order_id, with_user=False):
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def list_orders_for_user(self, user_id, skip=0, limit=10):
        orders = [o for o in self.orders.values() if reference_id(o["user"]) == user_id]
        return copy.deepcopy(orders[skip:skip + limit])

    async def list_orders_for_store(self, store_id, skip=0, limit=10):
        orders = [o for o in self.orders.values() if store_id in [str(s) for s in o["stores"]]]
        return copy.deepcopy(orders[skip:skip + limit])
