# storefront/services/order_service.py
from datetime import datetime, timezone
from decimal import Decimal
from math import ceil
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.customer import AddressModel
from storefront.data.models.order import OrderAddressModel, OrderItemModel, OrderModel
from storefront.domain.enums import (
    FulfillmentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from storefront.domain.errors import ConflictError, NotFoundError, ValidationError
from storefront.domain.schemas import OrderOut, OrdersPageOut, PageMeta
from storefront.domain.state_machine import (
    CANCELLABLE_ORDER_STATUSES,
    FULFILLMENT_TRANSITIONS,
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    can_transition,
    check_fulfillment_transition,
    check_order_transition,
    check_payment_transition,
    coerce,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.customer_repo import CustomerRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.utils.settings import DEFAULT_CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# order status implied by fulfillment progress
_FULFILLMENT_ORDER_STATUS = {
    FulfillmentStatus.SHIPPED: OrderStatus.SHIPPED,
    FulfillmentStatus.DELIVERED: OrderStatus.DELIVERED,
}
_ORDER_PROGRESS = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


def _snapshot_address(address: AddressModel) -> OrderAddressModel:
    return OrderAddressModel(
        source_address_id=address.id,
        first_name=address.first_name,
        last_name=address.last_name,
        phone=address.phone,
        line1=address.line1,
        line2=address.line2,
        city=address.city,
        country=address.country,
        postal_code=address.postal_code,
    )


class OrderService:
    """
    Order domain: building orders from carts and moving the three
    independent status fields (order, payment, fulfillment).
    Status writes go through optimistic locking on orders.version.
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.customers = CustomerRepo(db)
        self.cart_service = CartService(db)
        self.notification_service = notification_service or NotificationService()

    # =====================================================
    # CHECKOUT
    # =====================================================
    def checkout(
        self,
        customer_id: int,
        cart_id: int,
        billing_address_id: int,
        shipping_address_id: int,
        currency: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.CARD,
    ) -> OrderModel:
        """
        Use case: turn a cart into an order.

        1. Cart must exist, belong to the customer and hold items
        2. Both addresses must belong to the customer
        3. Every line is re-checked (active, priced in currency, in stock)
        4. Name/SKU/price and both addresses are copied onto the order
        The cart is kept until the payment is confirmed so a failed payment can be retried.
        """
        cart = self.cart_service.get_owned_cart(customer_id, cart_id)

        # an empty cart fails the same way whatever the addresses are
        items = self.carts.get_cart_items(cart.id)
        if not items:
            raise ValidationError("Cart is empty")

        billing = self.customers.get_address(billing_address_id)
        shipping = self.customers.get_address(shipping_address_id)
        if not billing or not shipping:
            raise NotFoundError("Address not found")
        if billing.customer_id != customer_id or shipping.customer_id != customer_id:
            raise ValidationError("Address does not belong to the customer")

        currency = (currency or DEFAULT_CURRENCY).upper()

        order_items = []
        subtotal = Decimal("0.00")
        for item in items:
            variant = item.variant
            if not variant or not variant.is_available:
                raise ValidationError(f"Product variant {item.variant_id} is no longer available")

            name = variant.product.name
            if variant.stock_on_hand is not None and variant.stock_on_hand < item.quantity:
                raise ValidationError(
                    f'Insufficient stock for "{name}". Only {variant.stock_on_hand} available'
                )

            price = variant.price_for(currency)
            if price is None:
                raise ValidationError(f'Price not available for "{name}" in {currency}')

            subtotal += price * item.quantity
            order_items.append(
                OrderItemModel(
                    variant_id=variant.id,
                    name_snapshot=name,
                    sku_snapshot=variant.sku,
                    unit_price=price,
                    quantity=item.quantity,
                )
            )

        order = OrderModel(
            order_no=self._next_order_no(),
            customer_id=customer_id,
            cart_id=cart.id,
            currency=currency,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
            payment_method=PaymentMethod(payment_method).value,
            subtotal=subtotal,
            # no shipping or tax yet
            total=subtotal,
            billing_address=_snapshot_address(billing),
            shipping_address=_snapshot_address(shipping),
            items=order_items,
        )

        try:
            self.repo.create_order(order)
            self.repo.commit()
        except IntegrityError:
            self.repo.rollback()
            logger.warning(f"Order number collision for customer {customer_id}")
            raise ConflictError("Could not allocate an order number, please retry")

        logger.info(
            f"Order {order.order_no} created from cart {cart.id} for customer {customer_id}, "
            f"total {order.total} {currency}"
        )
        return order

    def _next_order_no(self) -> str:
        # ORD-YYYY-NNNNNN, sequence restarts every year
        prefix = f"ORD-{datetime.now(timezone.utc).year}-"
        latest = self.repo.latest_order_no(prefix)
        next_number = int(latest.rsplit("-", 1)[1]) + 1 if latest else 1
        return f"{prefix}{next_number:06d}"

    # =====================================================
    # QUERY
    # =====================================================
    def load_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def load_customer_order(self, customer_id: int, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        # someone else's order is reported as missing
        if not order or order.customer_id != customer_id:
            raise NotFoundError("Order not found")
        return order

    def get_order(self, order_id: int, customer_id: int | None = None) -> OrderOut:
        if customer_id is None:
            return OrderOut.model_validate(self.load_order(order_id))
        return OrderOut.model_validate(self.load_customer_order(customer_id, order_id))

    def get_order_by_number(self, order_no: str, customer_id: int | None = None) -> OrderOut:
        order = self.repo.get_order_by_number(order_no)
        if not order or (customer_id is not None and order.customer_id != customer_id):
            raise NotFoundError("Order not found")
        return OrderOut.model_validate(order)

    def list_orders(self, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> OrdersPageOut:
        orders, total = self.repo.list_orders(filters, page, limit)
        return OrdersPageOut(
            orders=[OrderOut.model_validate(o) for o in orders],
            meta=PageMeta(
                total=total,
                page=page,
                limit=limit,
                total_pages=ceil(total / limit) if limit else 0,
            ),
        )

    # =====================================================
    # STATE MACHINE
    # =====================================================
    def apply_payment_result(self, order: OrderModel, result: PaymentStatus) -> bool:
        """
        Applies a PAID/FAILED payment outcome to the order, without committing.
        Returns True when this call confirmed the payment (side effects ran),
        so the caller knows to notify after commit.
        """
        current = PaymentStatus(order.payment_status)

        if result == PaymentStatus.FAILED:
            if current in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                # a late failure of an older attempt never downgrades a captured payment
                logger.warning(
                    f"Ignoring FAILED payment for order {order.order_no}, payment status is {current.value}"
                )
                return False
            if current != PaymentStatus.FAILED:
                self._write(order, {"payment_status": PaymentStatus.FAILED.value})
            logger.info(f"Order {order.order_no} payment FAILED, order status unchanged")
            return False

        if current == PaymentStatus.REFUNDED:
            logger.warning(f"Ignoring PAID payment for refunded order {order.order_no}")
            return False

        return self._mark_paid(order)

    def _mark_paid(self, order: OrderModel) -> bool:
        values: Dict[str, Any] = {}
        if order.payment_status != PaymentStatus.PAID.value:
            values["payment_status"] = PaymentStatus.PAID.value
        if order.status == OrderStatus.PENDING.value:
            values["status"] = OrderStatus.CONFIRMED.value

        if order.status == OrderStatus.CANCELLED.value:
            logger.warning(f"Payment captured for cancelled order {order.order_no}, refund needed")

        confirmed = not order.stock_reserved and order.status != OrderStatus.CANCELLED.value
        if confirmed:
            values["stock_reserved"] = True

        if values:
            self._write(order, values)

        if confirmed:
            for item in order.items:
                self.catalog.adjust_stock(item.variant_id, -item.quantity)
            self.cart_service.clear_after_payment(order.cart_id)
            logger.info(f"Order {order.order_no} CONFIRMED, stock reserved and cart cleared")

        return confirmed

    def start_payment_attempt(self, order: OrderModel, method: PaymentMethod) -> None:
        values: Dict[str, Any] = {}
        if order.payment_method != method.value:
            values["payment_method"] = method.value
        if order.payment_status == PaymentStatus.FAILED.value:
            # new attempt: FAILED -> UNPAID
            values["payment_status"] = PaymentStatus.UNPAID.value
        if values:
            self._write(order, values)
            self.repo.commit()

    def notify_confirmed(self, order: OrderModel) -> None:
        try:
            self.notification_service.send_order_confirmation(order.customer_id, order.id, order.order_no)
        except Exception:
            # the payment is already committed; a lost notification must not fail the request
            logger.exception(f"Failed to enqueue confirmation for order {order.order_no}")

    def update_order_status(self, order_id: int, status, force: bool = False) -> OrderOut:
        order = self.load_order(order_id)
        target = self._guard(
            ORDER_TRANSITIONS, check_order_transition, OrderStatus, order, order.status, status, force
        )
        if target.value == order.status:
            return OrderOut.model_validate(order)

        values: Dict[str, Any] = {"status": target.value}
        release = target == OrderStatus.CANCELLED and order.stock_reserved
        if release:
            values["stock_reserved"] = False

        self._write(order, values)
        if release:
            self._restock(order)
        self.repo.commit()

        logger.info(f"Order {order.order_no} status updated to {target.value}")
        return OrderOut.model_validate(self.load_order(order_id))

    def update_payment_status(self, order_id: int, status, force: bool = False) -> OrderOut:
        order = self.load_order(order_id)
        target = self._guard(
            PAYMENT_TRANSITIONS, check_payment_transition, PaymentStatus, order, order.payment_status, status, force
        )
        if target.value == order.payment_status:
            return OrderOut.model_validate(order)

        confirmed = False
        if target == PaymentStatus.PAID:
            confirmed = self._mark_paid(order)
        else:
            self._write(order, {"payment_status": target.value})
        self.repo.commit()

        if confirmed:
            self.notify_confirmed(order)

        logger.info(f"Order {order.order_no} payment status updated to {target.value}")
        return OrderOut.model_validate(self.load_order(order_id))

    def update_fulfillment_status(self, order_id: int, status, force: bool = False) -> OrderOut:
        order = self.load_order(order_id)
        target = self._guard(
            FULFILLMENT_TRANSITIONS,
            check_fulfillment_transition,
            FulfillmentStatus,
            order,
            order.fulfillment_status,
            status,
            force,
        )
        if target.value == order.fulfillment_status:
            return OrderOut.model_validate(order)

        current_order_status = OrderStatus(order.status)
        if current_order_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED) and not force:
            raise ValidationError(f"Cannot fulfil an order in status {current_order_status.value}")

        values: Dict[str, Any] = {"fulfillment_status": target.value}
        implied = _FULFILLMENT_ORDER_STATUS.get(target)
        if (
            implied is not None
            and current_order_status in _ORDER_PROGRESS
            and _ORDER_PROGRESS.index(implied) > _ORDER_PROGRESS.index(current_order_status)
        ):
            values["status"] = implied.value

        self._write(order, values)
        self.repo.commit()

        logger.info(f"Order {order.order_no} fulfillment status updated to {target.value}")
        return OrderOut.model_validate(self.load_order(order_id))

    def cancel_order(self, customer_id: int, order_id: int) -> OrderOut:
        """Customer cancellation, allowed until the order is shipped."""
        order = self.load_customer_order(customer_id, order_id)

        if OrderStatus(order.status) not in CANCELLABLE_ORDER_STATUSES:
            raise ValidationError("Order cannot be cancelled at this stage")

        values: Dict[str, Any] = {"status": OrderStatus.CANCELLED.value}
        if order.payment_status == PaymentStatus.PAID.value:
            values["payment_status"] = PaymentStatus.REFUNDED.value
        release = bool(order.stock_reserved)
        if release:
            values["stock_reserved"] = False

        self._write(order, values)
        if release:
            self._restock(order)
        self.repo.commit()

        logger.info(f"Order {order.order_no} cancelled by customer {customer_id}")
        return OrderOut.model_validate(self.load_order(order_id))

    # =====================================================
    # HELPERS
    # =====================================================
    @staticmethod
    def _guard(table, check, enum_cls, order: OrderModel, current, target, force: bool):
        if not force:
            return check(current, target)

        target = coerce(enum_cls, target)
        if not can_transition(table, enum_cls(current), target):
            logger.warning(
                f"Forced {enum_cls.__name__} change on order {order.order_no}: {current} -> {target.value}"
            )
        return target

    def _write(self, order: OrderModel, values: Dict[str, Any]) -> None:
        # Optimistic locking: UPDATE ... WHERE id = :id AND version = :version
        rowcount = self.repo.update_order_version(order.id, order.version, values)
        if rowcount == 0:
            self.repo.rollback()
            raise ConflictError("Order was modified by another operation, please retry")
        self.repo.refresh(order)

    def _restock(self, order: OrderModel) -> None:
        for item in order.items:
            self.catalog.adjust_stock(item.variant_id, item.quantity)
        logger.info(f"Stock released for order {order.order_no}")
