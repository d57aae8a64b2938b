# storefront/services/payment_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment import PaymentModel
from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import (
    ConflictError,
    NotFoundError,
    SignatureInvalidError,
    ValidationError,
)
from storefront.repos.customer_repo import CustomerRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.payment_providers import BillingDetails, ParsedWebhookData, PaymentProvider
from storefront.utils.settings import WEBHOOK_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CASH_PROVIDER = "cash"


class PaymentService:
    """
    Payment use cases on top of a PaymentProvider:
    - payment intent creation (redirect URL, None for cash)
    - gateway webhooks, idempotent per (provider, transaction id)
    - cash payments recorded by staff, no provider involved
    """

    def __init__(
        self,
        db: Session,
        provider: PaymentProvider,
        lock_service: LockService,
        order_service: OrderService | None = None,
    ):
        self.db = db
        self.provider = provider
        self.lock_service = lock_service
        self.repo = PaymentRepo(db)
        self.customers = CustomerRepo(db)
        self.order_service = order_service or OrderService(db)

    # =====================================================
    # INTENT
    # =====================================================
    def create_payment_intent(self, order: OrderModel, method: PaymentMethod) -> str | None:
        method = PaymentMethod(method)
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise ValidationError(f"Order {order.order_no} is {order.status}")
        if order.payment_status == PaymentStatus.PAID.value:
            raise ValidationError(f"Order {order.order_no} is already paid")

        if method == PaymentMethod.CASH:
            logger.info(f"Cash on delivery for order {order.order_no}")
            self.order_service.start_payment_attempt(order, method)
            return None

        if Decimal(order.total) <= 0:
            raise ValidationError("Payment amount must be greater than zero")

        payment_url = self.provider.create_payment_intent(
            amount=Decimal(order.total),
            currency=order.currency,
            method=method,
            billing_address=self._billing_details(order),
            order_ref=str(order.id),
        )
        self.order_service.start_payment_attempt(order, method)

        logger.info(
            f"Payment intent created for order {order.order_no} via {self.provider.provider_name} ({method.value})"
        )
        return payment_url

    def retry_payment(self, customer_id: int, order_id: int, method: PaymentMethod) -> str | None:
        order = self.order_service.load_customer_order(customer_id, order_id)
        return self.create_payment_intent(order, method)

    def _billing_details(self, order: OrderModel) -> BillingDetails:
        address = order.billing_address
        customer = self.customers.get_customer(order.customer_id)
        return BillingDetails(
            first_name=address.first_name,
            last_name=address.last_name,
            phone=address.phone,
            line1=address.line1,
            line2=address.line2,
            city=address.city,
            country=address.country,
            postal_code=address.postal_code,
            email=customer.email if customer else None,
        )

    # =====================================================
    # WEBHOOK
    # =====================================================
    def handle_webhook(
        self,
        raw_payload: bytes | str | Mapping[str, Any],
        signature: str,
        headers: Mapping[str, str],
    ) -> str:
        """Returns a short message for the gateway; duplicates are successes."""
        try:
            data = self.provider.handle_webhook(raw_payload, signature, headers)
        except SignatureInvalidError:
            logger.warning(
                f"Rejected {self.provider.provider_name} webhook with invalid signature"
            )
            raise

        logger.info(
            f"Webhook received for order {data.order_id}, transaction {data.transaction_id}, "
            f"status {data.status.value}"
        )

        key = LockService.webhook_key(self.provider.provider_name, data.transaction_id)
        owner = uuid4().hex
        if not self.lock_service.acquire(key, owner, WEBHOOK_LOCK_TTL_SECONDS):
            # nothing recorded yet, the gateway must deliver again
            logger.info(f"Transaction {data.transaction_id} is being processed by another request")
            raise ConflictError("Webhook is being processed, retry later")

        try:
            return self._apply_webhook(data)
        finally:
            self.lock_service.release(key, owner)

    def _apply_webhook(self, data: ParsedWebhookData) -> str:
        provider = self.provider.provider_name
        if self.repo.get_by_provider_ref(provider, data.transaction_id):
            logger.info(f"Payment {provider}/{data.transaction_id} already recorded, skipping")
            return "Webhook already processed"

        order = self._order_for_webhook(data.order_id)
        if data.amount != Decimal(order.total) or data.currency != order.currency:
            logger.warning(
                f"Webhook amount {data.amount} {data.currency} differs from order "
                f"{order.order_no} total {order.total} {order.currency}"
            )

        return self._save_payment(
            order,
            PaymentModel(
                order_id=order.id,
                provider=provider,
                provider_ref=data.transaction_id,
                amount=data.amount,
                currency=data.currency,
                method=data.method.value,
                status=data.status.value,
                captured_at=data.captured_at,
            ),
        )

    def _order_for_webhook(self, order_ref: str) -> OrderModel:
        try:
            order_id = int(order_ref)
        except (TypeError, ValueError):
            raise NotFoundError(f"Order {order_ref} not found")
        return self.order_service.load_order(order_id)

    def _save_payment(self, order: OrderModel, payment: PaymentModel) -> str:
        """Payment row and order status change commit together."""
        try:
            self.repo.add_payment(payment)
            confirmed = self.order_service.apply_payment_result(order, PaymentStatus(payment.status))
            self.db.commit()
        except IntegrityError:
            # lost the race on u_payment_provider_ref, the other request recorded it
            self.db.rollback()
            logger.info(f"Payment {payment.provider}/{payment.provider_ref} recorded concurrently, skipping")
            return "Webhook already processed"

        if confirmed:
            self.order_service.notify_confirmed(order)

        logger.info(
            f"Payment {payment.provider}/{payment.provider_ref} saved for order {order.order_no} "
            f"({payment.status})"
        )
        return "Webhook processed successfully"

    # =====================================================
    # CASH
    # =====================================================
    def record_cash_payment(self, order_id: int, amount: Decimal, currency: str) -> PaymentModel:
        """Cash collected on delivery. Goes straight to PAID, no provider call."""
        order = self.order_service.load_order(order_id)

        if Decimal(amount) <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise ValidationError(f"Order {order.order_no} is {order.status}")
        if self.repo.find_for_order(order.id, method=PaymentMethod.CASH.value):
            raise ValidationError(f"Cash payment already recorded for order {order.order_no}")

        now = datetime.now(timezone.utc)
        payment = PaymentModel(
            order_id=order.id,
            provider=CASH_PROVIDER,
            provider_ref=f"CASH-{order.id}-{int(now.timestamp() * 1000)}",
            amount=Decimal(amount),
            currency=currency.upper(),
            method=PaymentMethod.CASH.value,
            status=PaymentStatus.PAID.value,
            captured_at=now,
        )
        self._save_payment(order, payment)

        logger.info(f"Cash payment recorded for order {order.order_no}")
        return payment

    # =====================================================
    # REFUND
    # =====================================================
    def refund_payment(self, payment_id: str, amount: Decimal) -> bool:
        return self.provider.refund_payment(payment_id, amount)
