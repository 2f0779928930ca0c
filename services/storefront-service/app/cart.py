"""Cart line item identity and hydration.

Stored cart items only hold references; names, prices and images come from
the live product records at read time. Hydration is lenient: an item whose
product is gone or has a broken price is dropped with a warning, the rest
of the cart still renders.
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bson import Decimal128

from shared.utils import Settings, settings as default_settings, to_decimal

from app.schemas import CartView, HydratedCartItem, OrderSummary

logger = logging.getLogger("storefront-service.cart")


def _size_label(item: Mapping[str, Any]) -> Optional[str]:
    selected = item.get("selectedSize") or {}
    return selected.get("size")


def cart_item_identity(item: Mapping[str, Any]) -> Tuple[str, str, str, Optional[str]]:
    return (
        str(item["product"]),
        item.get("productType"),
        str(item["storeID"]),
        _size_label(item),
    )


def merge_cart_item(items: List[Dict[str, Any]], new_item: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Add ``new_item``, bumping the quantity of an identical line if there is one."""
    identity = cart_item_identity(new_item)
    for item in items:
        if cart_item_identity(item) == identity:
            item["quantity"] += new_item["quantity"]
            return items
    items.append(new_item)
    return items


def _matches(item: Mapping[str, Any], product_id: str, size: Optional[str]) -> bool:
    return str(item["product"]) == product_id and (not size or _size_label(item) == size)


def remove_cart_items(items: List[Dict[str, Any]], product_id: str, size: Optional[str] = None) -> List[Dict[str, Any]]:
    return [item for item in items if not _matches(item, product_id, size)]


def set_cart_item_quantity(items: List[Dict[str, Any]], product_id: str, quantity: int, size: Optional[str] = None) -> bool:
    for item in items:
        if _matches(item, product_id, size):
            item["quantity"] = quantity
            return True
    return False


def _valid_price(price: Any) -> bool:
    if isinstance(price, Decimal128):
        price = price.to_decimal()
    if isinstance(price, Decimal):
        return price.is_finite()
    if isinstance(price, bool) or not isinstance(price, Real):
        return False
    return math.isfinite(price)


def _valid_name(name: Any) -> bool:
    return isinstance(name, str) and bool(name.strip())


def hydrate_cart(cart: Mapping[str, Any], products: List[Mapping[str, Any]], settings: Settings = default_settings) -> List[HydratedCartItem]:
    products_by_id = {str(product["id"]): product for product in products}

    hydrated = []
    for cart_item in cart.get("items") or []:
        product_id = str(cart_item["product"])
        product = products_by_id.get(product_id)

        if product is None or not _valid_price(product.get("price")) or not _valid_name(product.get("name")):
            logger.warning(
                "Product not found or invalid data for cart item: %s", product_id,
                extra={"product_id": product_id},
            )
            continue

        size = _size_label(cart_item)
        in_stock = product.get("inStock")
        max_quantity = product.get("maxQuantity")
        hydrated.append(HydratedCartItem(
            id=f"{product_id}-{size or 'nosize'}",
            product_id=product_id,
            name=product["name"],
            slug=product.get("slug"),
            image=product.get("image") or settings.PLACEHOLDER_IMAGE,
            price=to_decimal(product["price"]),
            quantity=cart_item["quantity"],
            size=size,
            in_stock=True if in_stock is None else in_stock,
            max_quantity=settings.DEFAULT_MAX_QUANTITY if max_quantity is None else max_quantity,
        ))

    return hydrated


def summarize_cart(items: List[HydratedCartItem], settings: Settings = default_settings) -> OrderSummary:
    subtotal = sum((item.price * item.quantity for item in items), Decimal(0))
    shipping = Decimal(0) if subtotal >= settings.FREE_SHIPPING_THRESHOLD else Decimal(settings.SHIPPING_FEE)
    tax = (subtotal * settings.TAX_RATE).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    # Reserved for promotions
    discount = Decimal(0)

    return OrderSummary(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount=discount,
        total=subtotal + shipping + tax - discount,
        item_count=len(items),
    )


def build_cart_view(
    user_id: str,
    cart: Optional[Mapping[str, Any]],
    products: List[Mapping[str, Any]],
    settings: Settings = default_settings,
) -> CartView:
    """Hydrated items plus totals; no summary when nothing survives hydration."""
    items = hydrate_cart(cart, products, settings) if cart else []
    if not items:
        return CartView(user_id=user_id, items=[])
    return CartView(user_id=user_id, items=items, summary=summarize_cart(items, settings))
