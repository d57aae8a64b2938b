# storefront/services/payment_providers/__init__.py
from storefront.services.payment_providers.base import (
    BillingDetails,
    ParsedWebhookData,
    PaymentProvider,
)
from storefront.services.payment_providers.fake import FakeProvider
from storefront.services.payment_providers.paymob import PaymobProvider
from storefront.utils.settings import PAYMENT_PROVIDER

_PROVIDERS = {
    "paymob": PaymobProvider,
    "fake": FakeProvider,
}


def build_payment_provider(name: str | None = None) -> PaymentProvider:
    """Instantiate the provider selected by PAYMENT_PROVIDER."""
    key = (name or PAYMENT_PROVIDER).lower()
    try:
        return _PROVIDERS[key]()
    except KeyError:
        raise ValueError(f"Unknown payment provider: {key}")


__all__ = [
    "BillingDetails",
    "ParsedWebhookData",
    "PaymentProvider",
    "FakeProvider",
    "PaymobProvider",
    "build_payment_provider",
]
