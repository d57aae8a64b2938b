# storefront/api/routers/orders.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.api.deps import (
    get_current_customer_id,
    get_db,
    get_lock_service,
    get_notification_service,
    get_payment_provider,
    require_admin,
)
from storefront.api.responses import ok
from storefront.domain.enums import FulfillmentStatus, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import PaymentGatewayError
from storefront.domain.schemas import (
    ApiResponse,
    CheckoutIn,
    CheckoutOut,
    FulfillmentStatusIn,
    OrderOut,
    OrdersPageOut,
    OrderStatusIn,
    PaymentIntentIn,
    PaymentIntentOut,
    PaymentStatusIn,
)
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_providers import PaymentProvider
from storefront.services.payment_service import PaymentService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, notification_service=notifications)


def get_payment_service(
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
    lock_service: LockService = Depends(get_lock_service),
    orders: OrderService = Depends(get_service),
) -> PaymentService:
    return PaymentService(db, provider, lock_service, order_service=orders)


def _filters(status, payment_status, fulfillment_status) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    if status is not None:
        filters["status"] = status.value
    if payment_status is not None:
        filters["payment_status"] = payment_status.value
    if fulfillment_status is not None:
        filters["fulfillment_status"] = fulfillment_status.value
    return filters


# =====================================================
# CHECKOUT
# =====================================================
@router.post("/checkout-session/{cart_id}", response_model=ApiResponse[CheckoutOut], status_code=201)
def checkout(
    cart_id: int,
    payload: CheckoutIn,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    orders: OrderService = Depends(get_service),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Creates a PENDING order from the cart and starts the payment.
    Card and wallet return a payment_url; cash returns none.
    If the gateway is down the order stays PENDING and can be paid
    later through /{order_id}/payment-intent.
    """
    order = orders.checkout(
        customer_id=customer_id,
        cart_id=cart_id,
        billing_address_id=payload.billing_address_id,
        shipping_address_id=payload.shipping_address_id,
        currency=payload.currency,
        payment_method=payload.payment_method,
    )

    payment_url = None
    if payload.payment_method == PaymentMethod.CASH:
        payments.create_payment_intent(order, payload.payment_method)
        message = "Order placed, pay cash on delivery"
    else:
        try:
            payment_url = payments.create_payment_intent(order, payload.payment_method)
            message = "Order created, complete the payment"
        except PaymentGatewayError as e:
            logger.warning(f"Payment not started for order {order.order_no}: {e.message}")
            message = "Order created, but the payment could not be started. Please retry"

    data = CheckoutOut(
        order=orders.get_order(order.id),
        payment_method=payload.payment_method,
        payment_url=payment_url,
        message=message,
    )
    return ok(request, data, status_code=201, message=message)


@router.post("/{order_id}/payment-intent", response_model=ApiResponse[PaymentIntentOut], status_code=201)
def create_payment_intent(
    order_id: int,
    payload: PaymentIntentIn,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    payments: PaymentService = Depends(get_payment_service),
):
    payment_url = payments.retry_payment(customer_id, order_id, payload.payment_method)
    data = PaymentIntentOut(order_id=order_id, payment_method=payload.payment_method, payment_url=payment_url)
    return ok(request, data, status_code=201)


# =====================================================
# CUSTOMER
# =====================================================
@router.get("/my-orders", response_model=ApiResponse[OrdersPageOut])
def my_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = None,
    customer_id: int = Depends(get_current_customer_id),
    orders: OrderService = Depends(get_service),
):
    filters = _filters(status, None, None)
    filters["customer_id"] = customer_id
    return ok(request, orders.list_orders(filters, page, limit))


@router.get("/my-orders/number/{order_no}", response_model=ApiResponse[OrderOut])
def my_order_by_number(
    order_no: str,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.get_order_by_number(order_no, customer_id))


@router.get("/my-orders/{order_id}", response_model=ApiResponse[OrderOut])
def my_order(
    order_id: int,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.get_order(order_id, customer_id))


@router.patch("/my-orders/{order_id}/cancel", response_model=ApiResponse[OrderOut])
def cancel_order(
    order_id: int,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.cancel_order(customer_id, order_id), message="Order cancelled")


# =====================================================
# ADMIN
# =====================================================
@router.get("/admin/all", response_model=ApiResponse[OrdersPageOut], dependencies=[Depends(require_admin)])
def all_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    fulfillment_status: FulfillmentStatus | None = None,
    customer_id: int | None = None,
    order_no: str | None = None,
    orders: OrderService = Depends(get_service),
):
    filters = _filters(status, payment_status, fulfillment_status)
    if customer_id is not None:
        filters["customer_id"] = customer_id
    if order_no:
        filters["order_no"] = order_no
    return ok(request, orders.list_orders(filters, page, limit))


@router.get(
    "/admin/number/{order_no}", response_model=ApiResponse[OrderOut], dependencies=[Depends(require_admin)]
)
def admin_get_order_by_number(order_no: str, request: Request, orders: OrderService = Depends(get_service)):
    return ok(request, orders.get_order_by_number(order_no))


@router.get("/admin/{order_id}", response_model=ApiResponse[OrderOut], dependencies=[Depends(require_admin)])
def admin_get_order(order_id: int, request: Request, orders: OrderService = Depends(get_service)):
    return ok(request, orders.get_order(order_id))


@router.patch(
    "/admin/{order_id}/status", response_model=ApiResponse[OrderOut], dependencies=[Depends(require_admin)]
)
def update_status(
    order_id: int,
    payload: OrderStatusIn,
    request: Request,
    force: bool = False,
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.update_order_status(order_id, payload.status, force=force))


@router.patch(
    "/admin/{order_id}/payment-status", response_model=ApiResponse[OrderOut], dependencies=[Depends(require_admin)]
)
def update_payment_status(
    order_id: int,
    payload: PaymentStatusIn,
    request: Request,
    force: bool = False,
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.update_payment_status(order_id, payload.status, force=force))


@router.patch(
    "/admin/{order_id}/fulfillment-status",
    response_model=ApiResponse[OrderOut],
    dependencies=[Depends(require_admin)],
)
def update_fulfillment_status(
    order_id: int,
    payload: FulfillmentStatusIn,
    request: Request,
    force: bool = False,
    orders: OrderService = Depends(get_service),
):
    return ok(request, orders.update_fulfillment_status(order_id, payload.status, force=force))
