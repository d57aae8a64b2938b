# storefront/domain/schemas.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from storefront.domain.enums import (
    FulfillmentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

T = TypeVar("T")


# =====================================================
# ENVELOPE
# =====================================================
class ErrorBody(BaseModel):
    message: str | List[Any]
    code: str | int | None = None


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapped around every JSON response."""

    success: bool
    data: T | None = None
    error: ErrorBody | None = None
    message: str | None = None
    statusCode: int | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    path: str | None = None

    @classmethod
    def ok(cls, data: Any, message: str | None = None, status_code: int = 200, path: str | None = None):
        return cls(success=True, data=data, message=message, statusCode=status_code, path=path)

    @classmethod
    def fail(cls, error: ErrorBody, status_code: int, path: str | None = None):
        return cls(success=False, error=error, statusCode=status_code, path=path)


class MessageOut(BaseModel):
    message: str


# =====================================================
# CUSTOMERS
# =====================================================
class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class CustomerRead(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class AddressCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=3)
    line1: str = Field(..., min_length=1)
    line2: str | None = None
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2)
    postal_code: str = Field(..., min_length=1)


class AddressRead(AddressCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# CART
# =====================================================
class ItemIn(BaseModel):
    """Add a variant to the cart."""

    variant_id: int = Field(..., gt=0)
    qty: int = Field(..., gt=0)


class ItemQtyIn(BaseModel):
    """New quantity for a cart line; 0 removes the line."""

    qty: int = Field(..., ge=0)


class CartItemOut(BaseModel):
    id: int
    variant_id: int
    sku: str
    name: str
    quantity: int
    unit_price: Decimal | None = None
    line_total: Decimal | None = None


class CartOut(BaseModel):
    cart_id: int
    customer_id: int
    currency: str
    items: List[CartItemOut]
    total_items: int
    subtotal: Decimal


class CartCountOut(BaseModel):
    count: int


# =====================================================
# ORDERS
# =====================================================
class CheckoutIn(BaseModel):
    billing_address_id: int = Field(..., gt=0)
    shipping_address_id: int = Field(..., gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    payment_method: PaymentMethod = PaymentMethod.CARD


class PaymentIntentIn(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CARD


class OrderAddressOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    phone: str
    line1: str
    line2: str | None = None
    city: str
    country: str
    postal_code: str

    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(BaseModel):
    id: int
    variant_id: int
    name_snapshot: str
    sku_snapshot: str
    unit_price: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_no: str
    customer_id: int
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    payment_method: PaymentMethod
    subtotal: Decimal
    total: Decimal
    items: List[OrderItemOut]
    billing_address: OrderAddressOut
    shipping_address: OrderAddressOut
    placed_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckoutOut(BaseModel):
    order: OrderOut
    payment_method: PaymentMethod
    payment_url: str | None = None
    message: str


class PaymentIntentOut(BaseModel):
    order_id: int
    payment_method: PaymentMethod
    payment_url: str | None = None


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class OrdersPageOut(BaseModel):
    orders: List[OrderOut]
    meta: PageMeta


class OrderStatusIn(BaseModel):
    status: OrderStatus


class PaymentStatusIn(BaseModel):
    status: PaymentStatus


class FulfillmentStatusIn(BaseModel):
    status: FulfillmentStatus


# =====================================================
# PAYMENTS
# =====================================================
class CashPaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)


class PaymentOut(BaseModel):
    id: int
    order_id: int
    provider: str
    provider_ref: str
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    captured_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
