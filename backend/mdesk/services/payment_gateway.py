# Overview: Card payment gateway client (Stripe PaymentIntents over HTTPS).

"""
Payment Gateway

Only two calls are needed: create a PaymentIntent when an order is placed
and retrieve it when the client reports the payment as done. The client is
registered on the app (app.extensions["payment_gateway"]) so tests can swap
in a fake with the same two methods.
"""
from __future__ import annotations

from dataclasses import dataclass

import httpx
from flask import current_app


EXTENSION_KEY = "payment_gateway"


class GatewayError(Exception):
    """Raised when the gateway is unreachable or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    receipt_email: str | None = None
    created: int | None = None

    @classmethod
    def from_api(cls, data: dict) -> "PaymentIntent":
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            amount=int(data.get("amount", 0)),
            currency=data.get("currency", ""),
            client_secret=data.get("client_secret"),
            receipt_email=data.get("receipt_email"),
            created=data.get("created"),
        )


class StripeGateway:
    """Thin client for the Stripe REST API (form-encoded requests, JSON responses)."""

    def __init__(
        self,
        secret_key: str,
        *,
        api_base: str,
        currency: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config) -> "StripeGateway":
        return cls(
            config.get("STRIPE_SECRET_KEY", ""),
            api_base=config.get("STRIPE_API_BASE", "https://api.stripe.com/v1"),
            currency=config.get("PAYMENT_CURRENCY", "inr"),
            timeout=config.get("STRIPE_TIMEOUT_SECONDS", 10.0),
        )

    def _request(self, method: str, path: str, *, data: dict | None = None) -> dict:
        if not self.secret_key:
            raise GatewayError("Payment gateway is not configured")
        try:
            with httpx.Client(
                base_url=self.api_base,
                auth=(self.secret_key, ""),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.request(method, path, data=data)
        except httpx.HTTPError as e:
            raise GatewayError(f"Payment gateway unreachable: {e.__class__.__name__}") from e

        try:
            payload = response.json() if response.content else {}
        except ValueError as e:
            raise GatewayError(
                f"Payment gateway returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e
        if response.status_code >= 400:
            message = (payload.get("error") or {}).get("message") or "Payment gateway request failed"
            raise GatewayError(message, status_code=response.status_code)
        return payload

    def create_payment_intent(
        self,
        *,
        amount_cents: int,
        receipt_email: str | None,
        metadata: dict,
    ) -> PaymentIntent:
        data = {
            "amount": str(amount_cents),
            "currency": self.currency,
            "automatic_payment_methods[enabled]": "true",
        }
        if receipt_email:
            data["receipt_email"] = receipt_email
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = str(value)

        return PaymentIntent.from_api(self._request("POST", "/payment_intents", data=data))

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        return PaymentIntent.from_api(self._request("GET", f"/payment_intents/{intent_id}"))


def init_app(app) -> None:
    app.extensions.setdefault(EXTENSION_KEY, StripeGateway.from_config(app.config))


def get_gateway():
    return current_app.extensions[EXTENSION_KEY]
