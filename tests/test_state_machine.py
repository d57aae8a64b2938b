import pytest

from storefront.domain.enums import FulfillmentStatus, OrderStatus, PaymentStatus
from storefront.domain.errors import ValidationError
from storefront.domain.state_machine import (
    ORDER_TRANSITIONS,
    can_transition,
    check_fulfillment_transition,
    check_order_transition,
    check_payment_transition,
    coerce,
)


class TestOrderTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.REFUNDED),
        ],
    )
    def test_allowed(self, current, target):
        assert check_order_transition(current, target) == target

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.CONFIRMED),
            (OrderStatus.DELIVERED, OrderStatus.PENDING),
            (OrderStatus.REFUNDED, OrderStatus.DELIVERED),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(ValidationError):
            check_order_transition(current, target)

    def test_same_status_is_allowed(self):
        assert can_transition(ORDER_TRANSITIONS, OrderStatus.SHIPPED, OrderStatus.SHIPPED)

    def test_accepts_raw_strings(self):
        assert check_order_transition("PENDING", "CONFIRMED") == OrderStatus.CONFIRMED


class TestPaymentTransitions:
    def test_failed_can_retry(self):
        assert check_payment_transition(PaymentStatus.FAILED, PaymentStatus.UNPAID) == PaymentStatus.UNPAID

    def test_paid_cannot_fail(self):
        with pytest.raises(ValidationError):
            check_payment_transition(PaymentStatus.PAID, PaymentStatus.FAILED)

    def test_refunded_is_terminal(self):
        with pytest.raises(ValidationError):
            check_payment_transition(PaymentStatus.REFUNDED, PaymentStatus.PAID)


class TestFulfillmentTransitions:
    def test_unfulfilled_to_delivered(self):
        assert (
            check_fulfillment_transition(FulfillmentStatus.UNFULFILLED, FulfillmentStatus.DELIVERED)
            == FulfillmentStatus.DELIVERED
        )

    def test_no_going_back(self):
        with pytest.raises(ValidationError):
            check_fulfillment_transition(FulfillmentStatus.DELIVERED, FulfillmentStatus.SHIPPED)


def test_coerce_unknown_value():
    with pytest.raises(ValidationError):
        coerce(OrderStatus, "LOST")
