# storefront/services/payment_providers/paymob.py
"""Paymob Accept adapter.

Card payments: auth token -> Paymob order -> payment key -> iframe URL.
Wallet payments: same payment key with the wallet integration, then
/acceptance/payments/pay returns the wallet redirect URL.
Transaction webhooks are signed with HMAC-SHA512 over the compact JSON body.
"""
import hashlib
import hmac
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import uuid4

import requests
from requests import RequestException

from storefront.domain.enums import PaymentMethod, PaymentStatus
from storefront.domain.errors import PaymentGatewayError, SignatureInvalidError, ValidationError
from storefront.services.payment_providers.base import (
    BillingDetails,
    ParsedWebhookData,
    PaymentProvider,
)
from storefront.utils import settings
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry

logger = get_logger(__name__)

PAYMENT_KEY_EXPIRATION_SECONDS = 3600

# separates our order id from the per-attempt suffix in merchant_order_id
_REF_SEPARATOR = "-"


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def sign_payload(payload: Mapping[str, Any], secret: str) -> str:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hmac.new(secret.encode(), body.encode(), hashlib.sha512).hexdigest()


class PaymobProvider(PaymentProvider):
    provider_name = "PAYMOB"
    signature_header = "x-paymob-signature"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        hmac_secret: str | None = None,
        iframe_id: int | None = None,
        card_integration_id: int | None = None,
        wallet_integration_id: int | None = None,
        timeout: int | None = None,
    ):
        self.base_url = (base_url or settings.PAYMOB_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.PAYMOB_API_KEY
        self.hmac_secret = hmac_secret if hmac_secret is not None else settings.PAYMOB_HMAC_SECRET
        self.iframe_id = iframe_id or settings.PAYMOB_IFRAME_ID
        self.card_integration_id = card_integration_id or settings.PAYMOB_CARD_INTEGRATION_ID
        self.wallet_integration_id = wallet_integration_id or settings.PAYMOB_WALLET_INTEGRATION_ID
        self.timeout = timeout or settings.PAYMOB_TIMEOUT

    # =====================================================
    # CONTRACT
    # =====================================================
    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
        billing_address: BillingDetails | None = None,
        order_ref: str | None = None,
    ) -> str | None:
        if method == PaymentMethod.CASH:
            return None
        if method not in (PaymentMethod.CARD, PaymentMethod.WALLET):
            raise ValidationError(f"Unsupported payment method: {method}")

        auth_token = self._authenticate()
        paymob_order_id = self._create_order(auth_token, amount, currency, order_ref)

        if method == PaymentMethod.CARD:
            payment_key = self._payment_key(
                auth_token, paymob_order_id, amount, currency, billing_address, self.card_integration_id
            )
            return f"{self.base_url}/acceptance/iframes/{self.iframe_id}?payment_token={payment_key}"

        payment_key = self._payment_key(
            auth_token, paymob_order_id, amount, currency, billing_address, self.wallet_integration_id
        )
        data = self._call(
            "/acceptance/payments/pay",
            {
                "source": {
                    "identifier": billing_address.phone if billing_address else None,
                    "subtype": "WALLET",
                },
                "payment_token": payment_key,
            },
            "create wallet payment",
        )
        return data["redirect_url"]

    def handle_webhook(
        self,
        raw_payload: bytes | str | Mapping[str, Any],
        signature: str,
        headers: Mapping[str, str],
    ) -> ParsedWebhookData:
        try:
            payload = json.loads(raw_payload) if isinstance(raw_payload, (bytes, str)) else raw_payload
        except ValueError:
            raise ValidationError("Invalid webhook payload: body is not JSON")

        expected = sign_payload(payload, self.hmac_secret)
        # compare bytes, str compare_digest rejects non-ASCII input with TypeError
        if not signature or not hmac.compare_digest(
            expected.encode(), signature.encode("utf-8", "surrogateescape")
        ):
            raise SignatureInvalidError("Invalid webhook signature")

        return self.parse_transaction(payload)

    def refund_payment(self, payment_id: str, amount: Decimal) -> bool:
        raise NotImplementedError("Paymob refunds are not implemented yet")

    # =====================================================
    # PARSING
    # =====================================================
    @staticmethod
    def parse_transaction(payload: Mapping[str, Any]) -> ParsedWebhookData:
        obj = payload.get("obj") if isinstance(payload, Mapping) else None
        if not obj:
            raise ValidationError("Invalid webhook payload: missing obj")

        try:
            status = (
                PaymentStatus.PAID
                if obj.get("success") and not obj.get("pending")
                else PaymentStatus.FAILED
            )

            source = obj.get("source_data") or {}
            source_type = (source.get("type") or "").lower()
            sub_type = (source.get("sub_type") or "").lower()
            method = PaymentMethod.CARD
            if source_type == "wallet" or "wallet" in sub_type or "cash" in sub_type:
                method = PaymentMethod.WALLET

            order = obj.get("order") or {}
            merchant_ref = order.get("merchant_order_id")
            order_id = (
                str(merchant_ref).split(_REF_SEPARATOR, 1)[0]
                if merchant_ref
                else str(order["id"])
            )

            created_at = obj.get("created_at")
            captured_at = (
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else datetime.now(timezone.utc)
            )

            return ParsedWebhookData(
                order_id=order_id,
                transaction_id=str(obj["id"]),
                amount=Decimal(str(obj["amount_cents"])) / 100,
                currency=obj["currency"],
                status=status,
                method=method,
                captured_at=captured_at,
            )
        except (KeyError, TypeError, ValueError, InvalidOperation, AttributeError) as e:
            raise ValidationError(f"Invalid webhook payload: {e}")

    # =====================================================
    # HTTP
    # =====================================================
    @http_retry()
    def _post(self, path: str, body: dict) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"Paymob POST {url}")
        resp = requests.post(url, json=body, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _call(self, path: str, body: dict, action: str) -> dict:
        try:
            return self._post(path, body)
        except RequestException as e:
            logger.error(f"Failed to {action} with Paymob: {e}")
            raise PaymentGatewayError(f"Failed to {action}")

    def _authenticate(self) -> str:
        data = self._call("/auth/tokens", {"api_key": self.api_key}, "authenticate")
        return data["token"]

    def _create_order(self, auth_token: str, amount: Decimal, currency: str, order_ref: str | None):
        body = {
            "auth_token": auth_token,
            "delivery_needed": False,
            "amount_cents": to_cents(amount),
            "currency": currency,
            "items": [],
        }
        if order_ref:
            # Paymob rejects a reused merchant_order_id, every attempt gets a suffix
            body["merchant_order_id"] = f"{order_ref}{_REF_SEPARATOR}{uuid4().hex[:8]}"
        data = self._call("/ecommerce/orders", body, "create payment order")
        return data["id"]

    def _payment_key(
        self,
        auth_token: str,
        paymob_order_id,
        amount: Decimal,
        currency: str,
        billing_address: BillingDetails | None,
        integration_id: int,
    ) -> str:
        data = self._call(
            "/acceptance/payment_keys",
            {
                "auth_token": auth_token,
                "amount_cents": to_cents(amount),
                "expiration": PAYMENT_KEY_EXPIRATION_SECONDS,
                "order_id": paymob_order_id,
                "billing_data": self.billing_data(billing_address),
                "currency": currency,
                "integration_id": integration_id,
                "lock_order_when_paid": "false",
            },
            "generate payment key",
        )
        return data["token"]

    @staticmethod
    def billing_data(billing: BillingDetails | None) -> dict:
        """Paymob requires every key to be present, "NA" fills the gaps."""
        fields = {
            "first_name": "NA",
            "last_name": "NA",
            "email": "NA",
            "phone_number": "NA",
            "apartment": "NA",
            "floor": "NA",
            "street": "NA",
            "building": "NA",
            "shipping_method": "NA",
            "postal_code": "NA",
            "city": "NA",
            "country": "NA",
            "state": "NA",
        }
        if billing is None:
            return fields

        fields.update(
            first_name=billing.first_name,
            last_name=billing.last_name,
            email=billing.email or "NA",
            phone_number=billing.phone,
            apartment=billing.line2 or "NA",
            street=billing.line1,
            postal_code=billing.postal_code,
            city=billing.city,
            country=billing.country,
        )
        return fields
