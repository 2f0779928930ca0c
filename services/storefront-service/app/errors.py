"""Order formatting errors.

Every error here means the input documents violated a precondition of the
formatter (a reference that should have been populated was not, or an
order has nothing to show). None of them are transient, so callers should
render an error or empty state instead of retrying.
"""

from typing import Optional


class OrderFormattingError(Exception):
    """Base class for all formatting failures."""

    kind = "order_formatting_error"

    def __init__(self, message: str, order_id: Optional[str] = None):
        super().__init__(message)
        self.order_id = order_id


class UnpopulatedStoreError(OrderFormattingError):
    kind = "unpopulated_store"

    def __init__(self, order_id: str, sub_order_index: int):
        super().__init__(
            f"Sub-order {sub_order_index} in order {order_id} has unpopulated store",
            order_id,
        )
        self.sub_order_index = sub_order_index


class UnpopulatedProductError(OrderFormattingError):
    kind = "unpopulated_product"

    def __init__(self, order_id: str, sub_order_index: int, item_index: int):
        super().__init__(
            f"Product {item_index} in sub-order {sub_order_index} of order {order_id} "
            f"has unpopulated Product",
            order_id,
        )
        self.sub_order_index = sub_order_index
        self.item_index = item_index


class EmptyOrderError(OrderFormattingError):
    kind = "empty_order"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} has no sub-orders", order_id)


class NoSubOrdersForStoreError(OrderFormattingError):
    kind = "no_sub_orders_for_store"

    def __init__(self, order_id: str, store_id: str):
        super().__init__(f"Order {order_id} has no sub-orders for store {store_id}", order_id)
        self.store_id = store_id


class UnpopulatedUserError(OrderFormattingError):
    kind = "unpopulated_user"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} has unpopulated user", order_id)


class MissingUserError(OrderFormattingError):
    kind = "missing_user"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} has no user", order_id)


class OrderBatchError(OrderFormattingError):
    """One order of a batch failed; the whole batch is aborted."""

    kind = "order_batch_error"

    def __init__(self, order_id: str, index: int, cause: Exception):
        super().__init__(f"Order formatting failed for order {order_id}: {cause}", order_id)
        self.index = index
        self.cause = cause
