from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.domain.enums import FulfillmentStatus, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import ForbiddenError, NotFoundError, ValidationError


def _checkout(order_service, seed, cart, **kwargs):
    params = dict(
        customer_id=seed.customer.id,
        cart_id=cart.id,
        billing_address_id=seed.billing.id,
        shipping_address_id=seed.shipping.id,
    )
    params.update(kwargs)
    return order_service.checkout(**params)


class TestCheckout:
    def test_builds_pending_order_with_snapshots(self, seed, filled_cart, order_service):
        order = _checkout(order_service, seed, filled_cart)

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.fulfillment_status == FulfillmentStatus.UNFULFILLED.value
        assert order.currency == "EGP"
        assert order.subtotal == Decimal("130.00")
        assert order.total == Decimal("130.00")

        lines = {item.sku_snapshot: item for item in order.items}
        assert lines["SHIRT-M"].name_snapshot == "Shirt"
        assert lines["SHIRT-M"].unit_price == Decimal("50.00")
        assert lines["SHIRT-M"].quantity == 2
        assert lines["MUG-1"].quantity == 1

        assert order.billing_address.first_name == "Mona"
        assert order.shipping_address.first_name == "Omar"
        assert order.billing_address.source_address_id == seed.billing.id

    def test_order_number_sequence(self, seed, filled_cart, order_service):
        year = datetime.now(timezone.utc).year
        first = _checkout(order_service, seed, filled_cart)
        second = _checkout(order_service, seed, filled_cart)

        assert first.order_no == f"ORD-{year}-000001"
        assert second.order_no == f"ORD-{year}-000002"

    def test_cart_is_kept_until_payment(self, seed, filled_cart, order_service, cart_service):
        _checkout(order_service, seed, filled_cart)
        assert cart_service.count_items(seed.customer.id) == 3

    def test_snapshot_survives_price_change(self, seed, db, filled_cart, order_service):
        order = _checkout(order_service, seed, filled_cart)

        seed.variant_a.prices[0].amount = Decimal("99.00")
        seed.variant_a.product.name = "Renamed"
        db.commit()

        reloaded = order_service.get_order(order.id)
        line = next(i for i in reloaded.items if i.sku_snapshot == "SHIRT-M")
        assert line.unit_price == Decimal("50.00")
        assert line.name_snapshot == "Shirt"

    def test_cash_method_is_recorded(self, seed, filled_cart, order_service):
        order = _checkout(order_service, seed, filled_cart, payment_method=PaymentMethod.CASH)
        assert order.payment_method == PaymentMethod.CASH.value

    def test_empty_cart(self, seed, cart_service, order_service):
        cart = cart_service.ensure_cart(seed.customer.id)
        with pytest.raises(ValidationError):
            _checkout(order_service, seed, cart)

    def test_empty_cart_is_checked_before_addresses(self, seed, cart_service, order_service):
        cart = cart_service.ensure_cart(seed.customer.id)
        with pytest.raises(ValidationError, match="Cart is empty"):
            _checkout(order_service, seed, cart, billing_address_id=99999)

    def test_foreign_cart(self, seed, cart_service, order_service):
        foreign = cart_service.ensure_cart(seed.other.id)
        cart_service.add_item(seed.other.id, foreign.id, seed.variant_b.id, 1)
        with pytest.raises(ForbiddenError):
            _checkout(order_service, seed, foreign)

    def test_unknown_address(self, seed, filled_cart, order_service):
        with pytest.raises(NotFoundError):
            _checkout(order_service, seed, filled_cart, billing_address_id=9999)

    def test_address_of_another_customer(self, seed, filled_cart, order_service):
        with pytest.raises(ValidationError):
            _checkout(order_service, seed, filled_cart, shipping_address_id=seed.other_address.id)

    def test_stock_is_checked_again(self, seed, db, filled_cart, order_service):
        seed.variant_a.stock_on_hand = 1
        db.commit()
        with pytest.raises(ValidationError, match="Insufficient stock"):
            _checkout(order_service, seed, filled_cart)

    def test_variant_disabled_after_adding(self, seed, db, filled_cart, order_service):
        seed.variant_b.is_active = False
        db.commit()
        with pytest.raises(ValidationError, match="no longer available"):
            _checkout(order_service, seed, filled_cart)

    def test_missing_price_in_currency(self, seed, filled_cart, order_service):
        with pytest.raises(ValidationError, match="Price not available"):
            _checkout(order_service, seed, filled_cart, currency="USD")


class TestOrderQueries:
    def test_foreign_order_is_not_found(self, seed, placed_order, order_service):
        with pytest.raises(NotFoundError):
            order_service.get_order(placed_order.id, customer_id=seed.other.id)

    def test_by_number(self, seed, placed_order, order_service):
        found = order_service.get_order_by_number(placed_order.order_no, seed.customer.id)
        assert found.id == placed_order.id

    def test_list_with_filters_and_meta(self, seed, filled_cart, order_service):
        for _ in range(3):
            _checkout(order_service, seed, filled_cart)

        page = order_service.list_orders({"customer_id": seed.customer.id}, page=1, limit=2)
        assert page.meta.total == 3
        assert page.meta.total_pages == 2
        assert len(page.orders) == 2

        assert order_service.list_orders({"status": "CONFIRMED"}).meta.total == 0
        assert order_service.list_orders({"customer_id": seed.other.id}).orders == []


class TestManualStatusUpdates:
    def test_invalid_order_transition(self, placed_order, order_service):
        with pytest.raises(ValidationError):
            order_service.update_order_status(placed_order.id, OrderStatus.DELIVERED)

    def test_force_bypasses_guard(self, placed_order, order_service):
        updated = order_service.update_order_status(placed_order.id, OrderStatus.DELIVERED, force=True)
        assert updated.status == OrderStatus.DELIVERED

    def test_unknown_status_value(self, placed_order, order_service):
        with pytest.raises(ValidationError):
            order_service.update_order_status(placed_order.id, "LOST", force=True)

    def test_manual_paid_confirms_and_notifies(self, seed, db, placed_order, order_service, notifier):
        updated = order_service.update_payment_status(placed_order.id, PaymentStatus.PAID)

        assert updated.payment_status == PaymentStatus.PAID
        assert updated.status == OrderStatus.CONFIRMED
        assert notifier.sent == [(seed.customer.id, placed_order.id, placed_order.order_no)]
        db.refresh(seed.variant_a)
        assert seed.variant_a.stock_on_hand == 8

    def test_shipping_moves_order_status(self, placed_order, order_service):
        order_service.update_payment_status(placed_order.id, PaymentStatus.PAID)
        shipped = order_service.update_fulfillment_status(placed_order.id, FulfillmentStatus.SHIPPED)

        assert shipped.fulfillment_status == FulfillmentStatus.SHIPPED
        assert shipped.status == OrderStatus.SHIPPED

        delivered = order_service.update_fulfillment_status(placed_order.id, FulfillmentStatus.DELIVERED)
        assert delivered.status == OrderStatus.DELIVERED

    def test_cannot_ship_cancelled_order(self, placed_order, order_service):
        order_service.update_order_status(placed_order.id, OrderStatus.CANCELLED)
        with pytest.raises(ValidationError):
            order_service.update_fulfillment_status(placed_order.id, FulfillmentStatus.SHIPPED)

    def test_status_writes_bump_version(self, placed_order, order_service):
        order_service.update_order_status(placed_order.id, OrderStatus.PROCESSING)
        assert order_service.load_order(placed_order.id).version == 2


class TestCancel:
    def test_cancel_paid_order_refunds_and_restocks(self, seed, db, placed_order, order_service):
        order_service.update_payment_status(placed_order.id, PaymentStatus.PAID)

        cancelled = order_service.cancel_order(seed.customer.id, placed_order.id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.payment_status == PaymentStatus.REFUNDED
        db.refresh(seed.variant_a)
        assert seed.variant_a.stock_on_hand == 10

    def test_cancel_unpaid_order_keeps_stock(self, seed, db, placed_order, order_service):
        cancelled = order_service.cancel_order(seed.customer.id, placed_order.id)

        assert cancelled.payment_status == PaymentStatus.UNPAID
        db.refresh(seed.variant_a)
        assert seed.variant_a.stock_on_hand == 10

    def test_cannot_cancel_shipped_order(self, seed, placed_order, order_service):
        order_service.update_payment_status(placed_order.id, PaymentStatus.PAID)
        order_service.update_fulfillment_status(placed_order.id, FulfillmentStatus.SHIPPED)
        with pytest.raises(ValidationError):
            order_service.cancel_order(seed.customer.id, placed_order.id)

    def test_cannot_cancel_someone_elses_order(self, seed, placed_order, order_service):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(seed.other.id, placed_order.id)
