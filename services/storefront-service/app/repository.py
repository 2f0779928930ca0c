"""MongoDB access for carts, products and orders.

Orders come back with their references populated: sub-order stores, line
item products and, for store views, the buyer. A reference whose document
no longer exists is replaced by a ``Reference`` so the formatters can tell
it apart from a populated document.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId, Decimal128
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from shared.utils import str_to_oid

from app.cart import merge_cart_item, set_cart_item_quantity
from app.models import CartDB, CartItemDB, PRODUCT_COLLECTIONS
from app.population import Reference


def _as_oid(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _is_reference(value: Any) -> bool:
    return not isinstance(value, (dict, Reference)) and _as_oid(value) is not None


def product_record(doc: Dict[str, Any]) -> Dict[str, Any]:
    """The slice of a product document the cart page needs."""
    images = doc.get("images") or []
    stock = doc.get("stock")
    has_stock = isinstance(stock, int) and not isinstance(stock, bool)

    in_stock = doc.get("inStock")
    if in_stock is None and has_stock:
        in_stock = stock > 0
    max_quantity = doc.get("maxQuantity")
    if max_quantity is None and has_stock:
        max_quantity = stock

    price = doc.get("price")
    if isinstance(price, Decimal128):
        price = price.to_decimal()

    return {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "slug": doc.get("slug"),
        "image": images[0] if images else doc.get("image"),
        "price": price,
        "inStock": in_stock,
        "maxQuantity": max_quantity,
    }


class StorefrontRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def ping(self):
        await self.db.command("ping")

    # --- Carts ---

    async def get_cart_by_user_id(self, user_id: str) -> Optional[dict]:
        return await self.db.carts.find_one({"user": str_to_oid(user_id)})

    @staticmethod
    def _item_document(item: CartItemDB) -> dict:
        doc = item.model_dump(by_alias=True, exclude_none=True)
        doc["product"] = str_to_oid(item.product)
        doc["storeID"] = str_to_oid(item.store_id)
        size = doc.get("selectedSize")
        if size and size.get("price") is not None:
            size["price"] = Decimal128(str(size["price"]))
        return doc

    async def add_item_to_cart(self, user_id: str, item: CartItemDB) -> dict:
        user = str_to_oid(user_id)
        new_item = self._item_document(item)

        cart = await self.db.carts.find_one({"user": user})
        if not cart:
            cart = CartDB(user=user_id).model_dump(by_alias=True, exclude={"id"})
            cart["user"] = user
            cart["items"] = [new_item]
            result = await self.db.carts.insert_one(cart)
            cart["_id"] = result.inserted_id
            return cart

        items = merge_cart_item(cart.get("items", []), new_item)
        now = datetime.utcnow()
        await self.db.carts.update_one(
            {"_id": cart["_id"]},
            {"$set": {"items": items, "updatedAt": now}}
        )
        cart["items"] = items
        cart["updatedAt"] = now
        return cart

    async def remove_item_from_cart(self, user_id: str, product_id: str, size: Optional[str] = None) -> Optional[dict]:
        match = {"product": str_to_oid(product_id)}
        if size:
            match["selectedSize.size"] = size
        return await self.db.carts.find_one_and_update(
            {"user": str_to_oid(user_id)},
            {"$pull": {"items": match}, "$set": {"updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def update_cart_item_quantity(
        self, user_id: str, product_id: str, quantity: int, size: Optional[str] = None
    ) -> Optional[dict]:
        cart = await self.get_cart_by_user_id(user_id)
        if not cart:
            return None

        items = cart.get("items", [])
        if not set_cart_item_quantity(items, product_id, quantity, size):
            return None

        now = datetime.utcnow()
        await self.db.carts.update_one(
            {"_id": cart["_id"]},
            {"$set": {"items": items, "updatedAt": now}}
        )
        cart["updatedAt"] = now
        return cart

    async def clear_cart(self, user_id: str):
        await self.db.carts.update_one(
            {"user": str_to_oid(user_id)},
            {"$set": {"items": [], "updatedAt": datetime.utcnow()}}
        )

    # --- Products ---

    async def _fetch_by_ids(self, collection: str, ids: Iterable[ObjectId]) -> Dict[str, dict]:
        ids = list(set(ids))
        if not ids:
            return {}
        cursor = self.db[collection].find({"_id": {"$in": ids}})
        return {str(doc["_id"]): doc async for doc in cursor}

    async def _fetch_products(self, ids: Iterable[ObjectId]) -> Dict[str, dict]:
        # Physical and digital products live in separate collections
        ids = list(ids)
        found = {}
        for collection in PRODUCT_COLLECTIONS.values():
            found.update(await self._fetch_by_ids(collection, ids))
        return found

    async def get_products_by_ids(self, ids: List[str]) -> List[dict]:
        oids = [oid for oid in (_as_oid(i) for i in ids) if oid is not None]
        products = await self._fetch_products(oids)
        return [product_record(doc) for doc in products.values()]

    # --- Orders ---

    async def _populate_orders(self, orders: List[dict], with_user: bool = False) -> List[dict]:
        store_ids, product_ids, user_ids = set(), set(), set()
        for order in orders:
            if with_user and _is_reference(order.get("user")):
                user_ids.add(_as_oid(order["user"]))
            for sub_order in order.get("subOrders") or []:
                if _is_reference(sub_order.get("store")):
                    store_ids.add(_as_oid(sub_order["store"]))
                for item in sub_order.get("products") or []:
                    if _is_reference(item.get("Product")):
                        product_ids.add(_as_oid(item["Product"]))

        stores = await self._fetch_by_ids("stores", store_ids)
        products = await self._fetch_products(product_ids)
        users = await self._fetch_by_ids("users", user_ids)

        def expand(value, found, collection):
            if not _is_reference(value):
                return value
            key = str(value)
            return found.get(key) or Reference(id=key, collection=collection)

        for order in orders:
            if with_user:
                order["user"] = expand(order.get("user"), users, "users")
            for sub_order in order.get("subOrders") or []:
                sub_order["store"] = expand(sub_order.get("store"), stores, "stores")
                for item in sub_order.get("products") or []:
                    item["Product"] = expand(item.get("Product"), products, "products")
        return orders

    async def get_order(self, order_id: str, with_user: bool = False) -> Optional[dict]:
        order = await self.db.orders.find_one({"_id": str_to_oid(order_id)})
        if not order:
            return None
        populated = await self._populate_orders([order], with_user=with_user)
        return populated[0]

    async def _list_orders(self, query: dict, skip: int, limit: int, with_user: bool) -> List[dict]:
        cursor = self.db.orders.find(query).sort("createdAt", -1).skip(skip).limit(limit)
        orders = await cursor.to_list(length=limit)
        return await self._populate_orders(orders, with_user=with_user)

    async def list_orders_for_user(self, user_id: str, skip: int = 0, limit: int = 10) -> List[dict]:
        return await self._list_orders({"user": str_to_oid(user_id)}, skip, limit, with_user=False)

    async def list_orders_for_store(self, store_id: str, skip: int = 0, limit: int = 10) -> List[dict]:
        return await self._list_orders({"stores": str_to_oid(store_id)}, skip, limit, with_user=True)
