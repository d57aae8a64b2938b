# storefront/domain/state_machine.py
"""Allowed transitions for the three independent order status fields.

Each field is guarded by its own table. Writing the current value again is
always allowed and treated as a no-op by the callers.
"""
from enum import Enum
from typing import Dict, FrozenSet, Type

from storefront.domain.enums import FulfillmentStatus, OrderStatus, PaymentStatus
from storefront.domain.errors import ValidationError

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# FAILED -> UNPAID is a new payment attempt
PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.UNPAID, PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

FULFILLMENT_TRANSITIONS: Dict[FulfillmentStatus, FrozenSet[FulfillmentStatus]] = {
    FulfillmentStatus.UNFULFILLED: frozenset(
        {FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED}
    ),
    FulfillmentStatus.SHIPPED: frozenset({FulfillmentStatus.DELIVERED}),
    FulfillmentStatus.DELIVERED: frozenset(),
}

CANCELLABLE_ORDER_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
)


def coerce(enum_cls: Type[Enum], value) -> Enum:
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {enum_cls.__name__} value: {value}")


def can_transition(table: Dict, current, target) -> bool:
    if current == target:
        return True
    return target in table.get(current, frozenset())


def check_transition(table: Dict, enum_cls: Type[Enum], current, target) -> Enum:
    """Return the target as an enum member or raise ValidationError."""
    current = coerce(enum_cls, current)
    target = coerce(enum_cls, target)
    if not can_transition(table, current, target):
        raise ValidationError(
            f"{enum_cls.__name__} cannot move from {current.value} to {target.value}"
        )
    return target


def check_order_transition(current, target) -> OrderStatus:
    return check_transition(ORDER_TRANSITIONS, OrderStatus, current, target)


def check_payment_transition(current, target) -> PaymentStatus:
    return check_transition(PAYMENT_TRANSITIONS, PaymentStatus, current, target)


def check_fulfillment_transition(current, target) -> FulfillmentStatus:
    return check_transition(FULFILLMENT_TRANSITIONS, FulfillmentStatus, current, target)
