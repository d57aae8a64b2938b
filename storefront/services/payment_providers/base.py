# storefront/services/payment_providers/base.py
"""Payment provider contract.

Every gateway adapter implements the same three capabilities so the payment
service and the order state machine never see provider-specific payloads.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from storefront.domain.enums import PaymentMethod, PaymentStatus


@dataclass(frozen=True)
class BillingDetails:
    first_name: str
    last_name: str
    phone: str
    line1: str
    city: str
    country: str
    postal_code: str
    line2: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class ParsedWebhookData:
    """Provider-neutral outcome of a payment attempt."""

    order_id: str
    transaction_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus  # PAID or FAILED
    method: PaymentMethod  # CARD or WALLET
    captured_at: datetime


class PaymentProvider(ABC):
    provider_name: str = ""
    # request header carrying the webhook signature
    signature_header: str = "x-signature"

    @abstractmethod
    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
        billing_address: BillingDetails | None = None,
        order_ref: str | None = None,
    ) -> str | None:
        """Return the URL the payer is redirected to, or None for cash on delivery."""
        ...

    @abstractmethod
    def handle_webhook(
        self,
        raw_payload: bytes | str | Mapping[str, Any],
        signature: str,
        headers: Mapping[str, str],
    ) -> ParsedWebhookData:
        """Verify the signature, then normalise the payload."""
        ...

    @abstractmethod
    def refund_payment(self, payment_id: str, amount: Decimal) -> bool:
        ...
