"""Order document formatting.

Turns raw order documents, as returned by the repository with their
references populated, into client-safe ``FormattedOrder`` projections with
every ObjectId converted to a string. Formatting is strict: a single
unpopulated store or product fails the whole order.
"""

import logging
from decimal import Decimal
from typing import Any, List, Mapping

from shared.utils import to_decimal

from app.errors import (
    UnpopulatedStoreError, UnpopulatedProductError,
    EmptyOrderError, NoSubOrdersForStoreError, UnpopulatedUserError, MissingUserError,
    OrderBatchError
)
from app.models import DeliveryStatus, SelectedSize
from app.population import (
    is_populated_store, is_populated_product, is_populated_user, reference_id
)
from app.schemas import (
    FormattedOrder, FormattedSubOrder, FormattedOrderItem,
    ProductSummary, StoreSummary, UserSummary
)

logger = logging.getLogger("storefront-service.formatters")


def _format_item(item: Mapping[str, Any], item_index: int, sub_order_index: int, order_id: str) -> FormattedOrderItem:
    product = item.get("Product")
    if not is_populated_product(product):
        raise UnpopulatedProductError(order_id, sub_order_index, item_index)

    return FormattedOrderItem(
        id=str(item["_id"]),
        product=ProductSummary(
            id=reference_id(product),
            name=product["name"],
            images=product.get("images") or [],
            price=to_decimal(product["price"]),
            product_type=product.get("productType"),
            store_id=reference_id(product.get("storeID")),
        ),
        store=reference_id(item.get("store")),
        quantity=item["quantity"],
        price=to_decimal(item["price"]),
        selected_size=SelectedSize.from_document(item.get("selectedSize")),
    )


def format_sub_order(sub_order: Mapping[str, Any], index: int, order_id: str) -> FormattedSubOrder:
    """Format one store's portion of an order.

    ``index`` and ``order_id`` only feed error messages so a failure points
    at the exact nested record.
    """
    store = sub_order.get("store")
    if not is_populated_store(store):
        raise UnpopulatedStoreError(order_id, index)

    products = [
        _format_item(item, item_index, index, order_id)
        for item_index, item in enumerate(sub_order.get("products") or [])
    ]

    sub_order_id = sub_order.get("_id")
    return FormattedSubOrder(
        id=str(sub_order_id) if sub_order_id is not None else "",
        store=StoreSummary(
            id=reference_id(store),
            name=store["name"],
            store_email=store["storeEmail"],
            logo_url=store.get("logoUrl"),
        ),
        products=products,
        total_amount=to_decimal(sub_order["totalAmount"]),
        delivery_status=sub_order.get("deliveryStatus", DeliveryStatus.PENDING.value),
        shipping_method=sub_order.get("shippingMethod"),
        delivery_date=sub_order.get("deliveryDate"),
        customer_confirmed_delivery=bool(sub_order.get("customerConfirmedDelivery", False)),
        escrow=sub_order.get("escrow"),
        return_window=sub_order.get("returnWindow"),
    )


def _order_fields(raw_order: Mapping[str, Any]) -> dict:
    return {
        "id": str(raw_order["_id"]),
        "payment_status": raw_order.get("paymentStatus"),
        "payment_method": raw_order.get("paymentMethod"),
        "shipping_address": raw_order.get("shippingAddress"),
        "notes": raw_order.get("notes"),
        "created_at": raw_order.get("createdAt"),
        "updated_at": raw_order.get("updatedAt"),
    }


def format_order_document(raw_order: Mapping[str, Any]) -> FormattedOrder:
    """Format a full order. Any failing sub-order fails the whole order."""
    order_id = str(raw_order.get("_id"))
    sub_orders = raw_order.get("subOrders") or []
    if not sub_orders:
        raise EmptyOrderError(order_id)

    formatted_sub_orders = [
        format_sub_order(sub_order, index, order_id)
        for index, sub_order in enumerate(sub_orders)
    ]

    user_id = reference_id(raw_order.get("user"))
    if user_id is None:
        raise MissingUserError(order_id)

    return FormattedOrder(
        user=user_id,
        stores=[reference_id(store) for store in raw_order.get("stores") or []],
        total_amount=to_decimal(raw_order["totalAmount"]),
        sub_orders=formatted_sub_orders,
        **_order_fields(raw_order),
    )


def format_store_order_document(raw_order: Mapping[str, Any], store_id: str) -> FormattedOrder:
    """Format only the sub-orders belonging to ``store_id``.

    The returned total is the sum of those sub-orders, so a store only sees
    revenue attributable to itself. The buyer must be populated since the
    store needs contact details to fulfil the order.
    """
    order_id = str(raw_order.get("_id"))
    store_sub_orders = [
        sub_order for sub_order in raw_order.get("subOrders") or []
        if reference_id(sub_order.get("store")) == store_id
    ]
    if not store_sub_orders:
        raise NoSubOrdersForStoreError(order_id, store_id)

    formatted_sub_orders = [
        format_sub_order(sub_order, index, order_id)
        for index, sub_order in enumerate(store_sub_orders)
    ]

    user = raw_order.get("user")
    if not is_populated_user(user):
        raise UnpopulatedUserError(order_id)

    return FormattedOrder(
        user=UserSummary(
            id=reference_id(user),
            first_name=user["firstName"],
            last_name=user["lastName"],
            email=user["email"],
            phone_number=user.get("phoneNumber") or "unknown",
        ),
        stores=[store_id],
        total_amount=sum((s.total_amount for s in formatted_sub_orders), Decimal(0)),
        sub_orders=formatted_sub_orders,
        **_order_fields(raw_order),
    )


def _format_batch(raw_orders, format_one, skip_invalid: bool, **context) -> List[FormattedOrder]:
    formatted = []
    for index, order in enumerate(raw_orders):
        order_id = str(order.get("_id"))
        try:
            formatted.append(format_one(order))
        # KeyError or ValidationError from a malformed document is wrapped too
        except Exception as exc:
            extra = {"order_id": order_id, "index": index, **context}
            if skip_invalid:
                logger.warning("Skipping order at index %d: %s", index, exc, extra=extra)
                continue
            logger.error("Failed to format order at index %d: %s", index, exc, extra=extra)
            raise OrderBatchError(order_id, index, exc) from exc
    return formatted


def format_order_documents(raw_orders: List[Mapping[str, Any]], skip_invalid: bool = False) -> List[FormattedOrder]:
    """Format a list of orders.

    By default the first malformed order aborts the batch with an
    ``OrderBatchError`` naming it. Pass ``skip_invalid=True`` to log and
    drop malformed orders instead.
    """
    return _format_batch(raw_orders, format_order_document, skip_invalid)


def format_store_order_documents(
    raw_orders: List[Mapping[str, Any]], store_id: str, skip_invalid: bool = False
) -> List[FormattedOrder]:
    return _format_batch(
        raw_orders,
        lambda order: format_store_order_document(order, store_id),
        skip_invalid,
        store_id=store_id,
    )
