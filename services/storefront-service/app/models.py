from datetime import datetime
from enum import Enum
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from shared.utils import to_decimal

class ProductType(str, Enum):
    """Discriminator for the collection a product reference points at."""
    PHYSICAL = "Product"
    DIGITAL = "digitalproducts"

PRODUCT_COLLECTIONS = {
    ProductType.PHYSICAL.value: "products",
    ProductType.DIGITAL.value: "digitalproducts",
}

class DeliveryStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    RETURNED = "returned"

class SelectedSize(BaseModel):
    size: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = None

    @classmethod
    def from_document(cls, raw: Optional[dict]) -> Optional["SelectedSize"]:
        if not raw:
            return None
        price = raw.get("price")
        return cls(
            size=raw.get("size"),
            price=to_decimal(price) if price is not None else None,
            quantity=raw.get("quantity"),
        )

class CartItemDB(BaseModel):
    product: str
    store_id: str = Field(..., alias="storeID")
    quantity: int
    product_type: ProductType = ProductType.PHYSICAL
    selected_size: Optional[SelectedSize] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True

class CartDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user: str
    items: List[CartItemDB] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
