"""
Stripe gateway client tests.

Verifies:
- PaymentIntent create/retrieve map the API response
- Gateway errors and unreadable responses surface as GatewayError
"""

import httpx
import pytest

from mdesk.services.payment_gateway import StripeGateway, GatewayError


def _gateway(handler) -> StripeGateway:
    return StripeGateway(
        "sk_test_123",
        api_base="https://stripe.test/v1",
        currency="inr",
        transport=httpx.MockTransport(handler),
    )


class TestStripeGateway:

    def test_create_payment_intent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={
                "id": "pi_1",
                "status": "requires_payment_method",
                "amount": 75000,
                "currency": "inr",
                "client_secret": "pi_1_secret",
            })

        intent = _gateway(handler).create_payment_intent(
            amount_cents=75000, receipt_email="asha@example.com", metadata={"order_id": 7}
        )

        assert intent.client_secret == "pi_1_secret"
        assert seen["path"] == "/v1/payment_intents"
        assert "amount=75000" in seen["body"]
        assert "metadata%5Border_id%5D=7" in seen["body"]

    def test_api_error_message_is_kept(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"message": "No such payment_intent"}})

        with pytest.raises(GatewayError) as exc:
            _gateway(handler).retrieve_payment_intent("pi_missing")

        assert str(exc.value) == "No such payment_intent"
        assert exc.value.status_code == 404

    def test_non_json_response_is_gateway_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        with pytest.raises(GatewayError) as exc:
            _gateway(handler).retrieve_payment_intent("pi_1")

        assert exc.value.status_code == 502

    def test_unreachable_gateway(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError) as exc:
            _gateway(handler).retrieve_payment_intent("pi_1")

        assert str(exc.value) == "Payment gateway unreachable: ConnectError"

    def test_missing_key(self):
        gateway = StripeGateway("", api_base="https://stripe.test/v1", currency="inr")

        with pytest.raises(GatewayError):
            gateway.retrieve_payment_intent("pi_1")
