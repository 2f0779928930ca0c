from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Union
from decimal import Decimal
from datetime import datetime
from shared.security_config import sanitize_input

from app.models import ProductType, SelectedSize


class CamelModel(BaseModel):
    """Base for client projections: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# --- Requests ---

class SelectedSizeIn(SelectedSize):
    @field_validator('size')
    def sanitize_size(cls, v):
        return sanitize_input(v)

class CartItemAdd(CamelModel):
    product: str
    store_id: str = Field(..., alias="storeID")
    quantity: int = Field(..., gt=0)
    product_type: ProductType = ProductType.PHYSICAL
    selected_size: Optional[SelectedSizeIn] = None

class CartItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0)

class ProductIdsRequest(BaseModel):
    ids: List[str] = Field(..., max_length=200)


# --- Order projections ---

class ProductSummary(CamelModel):
    id: str = Field(..., alias="_id")
    name: str
    images: List[str] = []
    price: Decimal
    product_type: Optional[str] = None
    store_id: Optional[str] = Field(None, alias="storeID")

class FormattedOrderItem(CamelModel):
    id: str = Field(..., alias="_id")
    product: ProductSummary = Field(..., alias="Product")
    store: str
    quantity: int
    price: Decimal
    selected_size: Optional[SelectedSize] = None

class StoreSummary(CamelModel):
    id: str = Field(..., alias="_id")
    name: str
    store_email: str
    logo_url: Optional[str] = None

class FormattedSubOrder(CamelModel):
    id: str = Field(..., alias="_id")
    store: StoreSummary
    products: List[FormattedOrderItem]
    total_amount: Decimal
    delivery_status: Optional[str] = None
    shipping_method: Optional[str] = None
    delivery_date: Optional[datetime] = None
    customer_confirmed_delivery: bool = False
    escrow: Optional[Any] = None
    return_window: Optional[datetime] = None

class UserSummary(CamelModel):
    id: str = Field(..., alias="_id")
    first_name: str
    last_name: str
    email: str
    phone_number: str = "unknown"

class FormattedOrder(CamelModel):
    id: str = Field(..., alias="_id")
    user: Union[UserSummary, str]
    stores: List[str]
    total_amount: Decimal
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    shipping_address: Optional[Any] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sub_orders: List[FormattedSubOrder]


# --- Cart projections ---

class CartItemResponse(CamelModel):
    product: str
    store_id: str = Field(..., alias="storeID")
    quantity: int
    product_type: str
    selected_size: Optional[SelectedSize] = None

class CartResponse(CamelModel):
    id: Optional[str] = Field(None, alias="_id")
    user: str
    items: List[CartItemResponse]
    updated_at: Optional[datetime] = None

class CartProduct(CamelModel):
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None
    image: Optional[str] = None
    price: Optional[Any] = None
    in_stock: Optional[bool] = None
    max_quantity: Optional[int] = None

class HydratedCartItem(CamelModel):
    id: str
    product_id: str
    name: str
    slug: Optional[str] = None
    image: str
    price: Decimal
    quantity: int
    size: Optional[str] = None
    in_stock: bool = True
    max_quantity: int = 99

class OrderSummary(CamelModel):
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    item_count: int

class CartView(CamelModel):
    user_id: str
    items: List[HydratedCartItem]
    # None means "render the empty cart", never a zero-total order
    summary: Optional[OrderSummary] = None
