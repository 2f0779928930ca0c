from fastapi import FastAPI, Depends, HTTPException, status, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Optional, List
import os
import sys

# Add the parent directory to sys.path to resolve shared imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../")))

from shared.utils import (
    get_db_client, settings, SuccessResponse, ErrorResponse,
    NotFoundException, HealthResponse
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware, limiter, sanitize_input

from app.cart import build_cart_view
from app.errors import OrderFormattingError, OrderBatchError
from app.formatters import (
    format_order_document, format_order_documents,
    format_store_order_document, format_store_order_documents
)
from app.models import CartItemDB, SelectedSize
from app.repository import StorefrontRepository
from app.schemas import (
    CartItemAdd, CartItemUpdate, CartResponse, CartView, CartProduct,
    ProductIdsRequest, FormattedOrder
)

# Setup Logging
logger = setup_logging("storefront-service")

app = FastAPI(title="Storefront Service")

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name="storefront-service")

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.DATABASE_NAME]
    # Indexes
    await app.mongodb.carts.create_index("user", unique=True)
    await app.mongodb.orders.create_index("user")
    await app.mongodb.orders.create_index("stores")

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()

# --- Dependencies ---
def get_repository() -> StorefrontRepository:
    return StorefrontRepository(app.mongodb)

# --- Error Handlers ---
@app.exception_handler(OrderFormattingError)
async def order_formatting_error_handler(request: Request, exc: OrderFormattingError):
    details = {"kind": exc.kind, "order_id": exc.order_id}
    if isinstance(exc, OrderBatchError):
        details["index"] = exc.index
        details["cause"] = getattr(exc.cause, "kind", type(exc.cause).__name__)
    logger.warning(
        "Order formatting failed: %s", exc,
        extra={"order_id": exc.order_id, "request_id": getattr(request.state, "request_id", None)},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(error=str(exc), details=details).model_dump(),
    )

# --- Helpers ---
def cart_response(cart: dict) -> CartResponse:
    return CartResponse(
        id=str(cart["_id"]) if cart.get("_id") else None,
        user=str(cart["user"]),
        items=[
            {
                "product": str(item["product"]),
                "store_id": str(item["storeID"]),
                "quantity": item["quantity"],
                "product_type": item.get("productType"),
                "selected_size": SelectedSize.from_document(item.get("selectedSize")),
            }
            for item in cart.get("items", [])
        ],
        updated_at=cart.get("updatedAt"),
    )

# --- Endpoints ---

# Cart
@app.get("/cart/{user_id}", response_model=SuccessResponse[Optional[CartResponse]])
@limiter.limit(settings.RATE_LIMIT)
async def get_cart(request: Request, user_id: str, repo: StorefrontRepository = Depends(get_repository)):
    cart = await repo.get_cart_by_user_id(user_id)
    if not cart:
        return SuccessResponse(data=None, message="Cart is empty")
    return SuccessResponse(data=cart_response(cart))

@app.get("/cart/{user_id}/view", response_model=SuccessResponse[CartView])
@limiter.limit(settings.RATE_LIMIT)
async def get_cart_view(request: Request, user_id: str, repo: StorefrontRepository = Depends(get_repository)):
    # fetch cart -> fetch its products -> hydrate
    cart = await repo.get_cart_by_user_id(user_id)
    products = []
    if cart and cart.get("items"):
        product_ids = [str(item["product"]) for item in cart["items"]]
        products = await repo.get_products_by_ids(product_ids)
    return SuccessResponse(data=build_cart_view(user_id, cart, products))

@app.post("/cart/{user_id}/items", response_model=SuccessResponse[CartResponse])
async def add_to_cart(user_id: str, item: CartItemAdd, repo: StorefrontRepository = Depends(get_repository)):
    cart = await repo.add_item_to_cart(user_id, CartItemDB(**item.model_dump()))
    return SuccessResponse(data=cart_response(cart), message="Item added to cart")

@app.put("/cart/{user_id}/items/{product_id}", response_model=SuccessResponse[CartResponse])
async def update_cart_item(
    user_id: str,
    product_id: str,
    update: CartItemUpdate,
    size: Optional[str] = None,
    repo: StorefrontRepository = Depends(get_repository)
):
    cart = await repo.update_cart_item_quantity(user_id, product_id, update.quantity, sanitize_input(size))
    if not cart:
        raise NotFoundException("Item not found in cart")
    return SuccessResponse(data=cart_response(cart))

@app.delete("/cart/{user_id}/items/{product_id}", response_model=SuccessResponse[CartResponse])
async def remove_cart_item(
    user_id: str,
    product_id: str,
    size: Optional[str] = None,
    repo: StorefrontRepository = Depends(get_repository)
):
    cart = await repo.remove_item_from_cart(user_id, product_id, sanitize_input(size))
    if not cart:
        raise NotFoundException("Cart not found")
    return SuccessResponse(data=cart_response(cart))

@app.delete("/cart/{user_id}", response_model=SuccessResponse[dict])
async def clear_cart(user_id: str, repo: StorefrontRepository = Depends(get_repository)):
    await repo.clear_cart(user_id)
    return SuccessResponse(message="Cart cleared")

# Products
@app.post("/products/batch", response_model=SuccessResponse[List[CartProduct]])
@limiter.limit(settings.RATE_LIMIT)
async def get_products_by_ids(request: Request, body: ProductIdsRequest, repo: StorefrontRepository = Depends(get_repository)):
    products = await repo.get_products_by_ids(body.ids)
    return SuccessResponse(data=[CartProduct(**product) for product in products])

# Orders
@app.get("/users/{user_id}/orders", response_model=SuccessResponse[List[FormattedOrder]])
@limiter.limit(settings.RATE_LIMIT)
async def list_user_orders(
    request: Request,
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    repo: StorefrontRepository = Depends(get_repository)
):
    skip = (page - 1) * limit
    orders = await repo.list_orders_for_user(user_id, skip=skip, limit=limit)
    return SuccessResponse(data=format_order_documents(orders))

@app.get("/orders/{order_id}", response_model=SuccessResponse[FormattedOrder])
async def get_order(order_id: str, repo: StorefrontRepository = Depends(get_repository)):
    order = await repo.get_order(order_id)
    if not order:
        raise NotFoundException("Order not found")
    return SuccessResponse(data=format_order_document(order))

@app.get("/stores/{store_id}/orders", response_model=SuccessResponse[List[FormattedOrder]])
@limiter.limit(settings.RATE_LIMIT)
async def list_store_orders(
    request: Request,
    store_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    skip_invalid: bool = False,
    repo: StorefrontRepository = Depends(get_repository)
):
    skip = (page - 1) * limit
    orders = await repo.list_orders_for_store(store_id, skip=skip, limit=limit)
    return SuccessResponse(data=format_store_order_documents(orders, store_id, skip_invalid=skip_invalid))

@app.get("/stores/{store_id}/orders/{order_id}", response_model=SuccessResponse[FormattedOrder])
async def get_store_order(store_id: str, order_id: str, repo: StorefrontRepository = Depends(get_repository)):
    order = await repo.get_order(order_id, with_user=True)
    if not order:
        raise NotFoundException("Order not found")
    return SuccessResponse(data=format_store_order_document(order, store_id))

@app.get("/health", response_model=HealthResponse)
async def health_check(repo: StorefrontRepository = Depends(get_repository)):
    try:
        await repo.ping()
        db_status = "connected"
    except Exception:
        logger.exception("Database ping failed")
        db_status = "disconnected"

    if db_status != "connected":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Unhealthy"
        )

    return HealthResponse(
        service="storefront-service",
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
    )
