import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from storefront.domain.enums import PaymentMethod, PaymentStatus
from storefront.domain.errors import PaymentGatewayError, SignatureInvalidError, ValidationError
from storefront.services.payment_providers import BillingDetails, PaymobProvider
from storefront.services.payment_providers.paymob import sign_payload, to_cents

POST = "storefront.services.payment_providers.paymob.requests.post"


@pytest.fixture()
def paymob():
    return PaymobProvider(
        base_url="https://paymob.test/api/",
        api_key="api-key",
        hmac_secret="hmac-secret",
        iframe_id=42,
        card_integration_id=111,
        wallet_integration_id=222,
        timeout=5,
    )


@pytest.fixture()
def billing():
    return BillingDetails(
        first_name="Mona",
        last_name="Hassan",
        phone="+201000000000",
        line1="12 Nile St",
        line2=None,
        city="Cairo",
        country="EG",
        postal_code="11511",
        email="mona@example.com",
    )


def _response(body):
    resp = MagicMock()
    resp.json.return_value = body
    resp.raise_for_status.return_value = None
    return resp


def _transaction(**overrides):
    obj = {
        "id": 987654,
        "success": True,
        "pending": False,
        "amount_cents": 13000,
        "currency": "EGP",
        "created_at": "2024-05-01T10:00:00",
        "order": {"id": 555, "merchant_order_id": "17-a1b2c3d4"},
        "source_data": {"type": "card", "sub_type": "MasterCard"},
    }
    obj.update(overrides)
    return {"type": "TRANSACTION", "obj": obj}


def test_to_cents():
    assert to_cents(Decimal("130.00")) == 13000
    assert to_cents(Decimal("0.1")) == 10


class TestCreatePaymentIntent:
    def test_card_returns_iframe_url(self, paymob, billing):
        responses = [_response({"token": "auth"}), _response({"id": 555}), _response({"token": "pay-key"})]
        with patch(POST, side_effect=responses) as post:
            url = paymob.create_payment_intent(
                Decimal("130.00"), "EGP", PaymentMethod.CARD, billing_address=billing, order_ref="17"
            )

        assert url == "https://paymob.test/api/acceptance/iframes/42?payment_token=pay-key"
        urls = [c.args[0] for c in post.call_args_list]
        assert urls == [
            "https://paymob.test/api/auth/tokens",
            "https://paymob.test/api/ecommerce/orders",
            "https://paymob.test/api/acceptance/payment_keys",
        ]
        order_body = post.call_args_list[1].kwargs["json"]
        assert order_body["amount_cents"] == 13000
        assert order_body["merchant_order_id"].startswith("17-")
        key_body = post.call_args_list[2].kwargs["json"]
        assert key_body["integration_id"] == 111
        assert key_body["billing_data"]["first_name"] == "Mona"
        assert key_body["billing_data"]["apartment"] == "NA"

    def test_wallet_returns_redirect_url(self, paymob, billing):
        responses = [
            _response({"token": "auth"}),
            _response({"id": 555}),
            _response({"token": "pay-key"}),
            _response({"redirect_url": "https://wallet.test/redirect"}),
        ]
        with patch(POST, side_effect=responses) as post:
            url = paymob.create_payment_intent(
                Decimal("130.00"), "EGP", PaymentMethod.WALLET, billing_address=billing, order_ref="17"
            )

        assert url == "https://wallet.test/redirect"
        assert post.call_args_list[2].kwargs["json"]["integration_id"] == 222
        pay_body = post.call_args_list[3].kwargs["json"]
        assert pay_body["source"] == {"identifier": "+201000000000", "subtype": "WALLET"}

    def test_cash_makes_no_call(self, paymob):
        with patch(POST) as post:
            assert paymob.create_payment_intent(Decimal("10"), "EGP", PaymentMethod.CASH) is None
        post.assert_not_called()

    def test_client_error_becomes_gateway_error(self, paymob):
        denied = MagicMock()
        denied.status_code = 401
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.HTTPError(response=denied)
        with patch(POST, return_value=resp) as post:
            with pytest.raises(PaymentGatewayError):
                paymob.create_payment_intent(Decimal("10"), "EGP", PaymentMethod.CARD)
        # 4xx is not retried
        assert post.call_count == 1


class TestWebhook:
    def test_valid_signature(self, paymob):
        payload = _transaction()
        data = paymob.handle_webhook(payload, sign_payload(payload, "hmac-secret"), {})

        assert data.order_id == "17"
        assert data.transaction_id == "987654"
        assert data.amount == Decimal("130")
        assert data.currency == "EGP"
        assert data.status == PaymentStatus.PAID
        assert data.method == PaymentMethod.CARD

    def test_raw_bytes_body(self, paymob):
        raw = b'{"type":"TRANSACTION","obj":{"id":1,"success":false,"pending":false,"amount_cents":500,' \
              b'"currency":"EGP","order":{"id":9}}}'
        payload = json.loads(raw)
        data = paymob.handle_webhook(raw, sign_payload(payload, "hmac-secret"), {})
        assert data.status == PaymentStatus.FAILED
        assert data.order_id == "9"
        assert data.amount == Decimal("5")

    def test_bad_signature(self, paymob):
        payload = _transaction()
        with pytest.raises(SignatureInvalidError):
            paymob.handle_webhook(payload, sign_payload(payload, "wrong-secret"), {})

    def test_missing_signature(self, paymob):
        with pytest.raises(SignatureInvalidError):
            paymob.handle_webhook(_transaction(), "", {})

    def test_non_ascii_signature_is_rejected(self, paymob):
        with pytest.raises(SignatureInvalidError):
            paymob.handle_webhook(_transaction(), "\u00e9\u00e9", {})

    def test_tampered_body(self, paymob):
        payload = _transaction()
        signature = sign_payload(payload, "hmac-secret")
        payload["obj"]["amount_cents"] = 100
        with pytest.raises(SignatureInvalidError):
            paymob.handle_webhook(payload, signature, {})

    def test_not_json(self, paymob):
        with pytest.raises(ValidationError):
            paymob.handle_webhook(b"not-json", "sig", {})


class TestParseTransaction:
    def test_pending_is_not_paid(self):
        data = PaymobProvider.parse_transaction(_transaction(pending=True))
        assert data.status == PaymentStatus.FAILED

    def test_wallet_source(self):
        data = PaymobProvider.parse_transaction(
            _transaction(source_data={"type": "wallet", "sub_type": "WALLET"})
        )
        assert data.method == PaymentMethod.WALLET

    def test_missing_obj(self):
        with pytest.raises(ValidationError):
            PaymobProvider.parse_transaction({"type": "TRANSACTION"})

    def test_missing_amount(self):
        payload = _transaction()
        del payload["obj"]["amount_cents"]
        with pytest.raises(ValidationError):
            PaymobProvider.parse_transaction(payload)
