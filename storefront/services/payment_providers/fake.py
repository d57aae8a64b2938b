# storefront/services/payment_providers/fake.py
"""Configurable fake provider for development and tests.

Webhook payloads are already in the normalised shape:
{"order_id", "transaction_id", "amount", "currency", "status", "method", "captured_at"}
"""
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import uuid4

from storefront.domain.enums import PaymentMethod, PaymentStatus
from storefront.domain.errors import PaymentGatewayError, SignatureInvalidError, ValidationError
from storefront.services.payment_providers.base import (
    BillingDetails,
    ParsedWebhookData,
    PaymentProvider,
)


class FakeProvider(PaymentProvider):
    provider_name = "FAKE"
    signature_header = "x-gateway-signature"

    def __init__(self, webhook_signature: str = "test-signature") -> None:
        self.webhook_signature = webhook_signature
        self.should_succeed: bool = True
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool) -> None:
        self.should_succeed = should_succeed

    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
        billing_address: BillingDetails | None = None,
        order_ref: str | None = None,
    ) -> str | None:
        self.calls.append(
            {
                "method": "create_payment_intent",
                "amount": amount,
                "currency": currency,
                "payment_method": method,
                "order_ref": order_ref,
            }
        )
        if method == PaymentMethod.CASH:
            return None
        if not self.should_succeed:
            raise PaymentGatewayError("Fake gateway configured to fail")
        return f"https://pay.fake.test/{method.value.lower()}/{order_ref}?token={uuid4().hex[:12]}"

    def handle_webhook(
        self,
        raw_payload: bytes | str | Mapping[str, Any],
        signature: str,
        headers: Mapping[str, str],
    ) -> ParsedWebhookData:
        self.calls.append({"method": "handle_webhook", "signature": signature})
        if signature != self.webhook_signature:
            raise SignatureInvalidError("Invalid webhook signature")

        try:
            payload = json.loads(raw_payload) if isinstance(raw_payload, (bytes, str)) else raw_payload
            status = PaymentStatus(payload["status"])
            if status not in (PaymentStatus.PAID, PaymentStatus.FAILED):
                raise ValueError(f"unexpected status {status.value}")
            captured = payload.get("captured_at")
            return ParsedWebhookData(
                order_id=str(payload["order_id"]),
                transaction_id=str(payload["transaction_id"]),
                amount=Decimal(str(payload["amount"])),
                currency=payload.get("currency", "EGP"),
                status=status,
                method=PaymentMethod(payload.get("method", "CARD")),
                captured_at=datetime.fromisoformat(captured) if captured else datetime.now(timezone.utc),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation, AttributeError) as e:
            raise ValidationError(f"Invalid webhook payload: {e}")

    def refund_payment(self, payment_id: str, amount: Decimal) -> bool:
        self.calls.append({"method": "refund_payment", "payment_id": payment_id, "amount": amount})
        return self.should_succeed
