"""Hosted-checkout order creation."""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import uuid4

import stripe
from pydantic import BaseModel

from fundbridge.config import settings
from fundbridge.services.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class GatewayOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str
    client_secret: str | None = None


class OrderGateway(Protocol):
    def create_order(self, *, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """``amount`` is in minor units."""
        ...


class InMemoryOrderGateway(OrderGateway):
    """Issues local order ids; used when no gateway key is configured."""

    def __init__(self) -> None:
        self.orders: dict[str, GatewayOrder] = {}

    def create_order(self, *, amount: int, currency: str, receipt: str) -> GatewayOrder:
        order = GatewayOrder(
            id=f"order_{uuid4().hex[:14]}", amount=amount, currency=currency, receipt=receipt
        )
        self.orders[order.id] = order
        return order


class StripeOrderGateway(OrderGateway):
    """Creates a Stripe PaymentIntent per order."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("STRIPE_SECRET_KEY is required for the Stripe gateway.")
        self._api_key = api_key

    def create_order(self, *, amount: int, currency: str, receipt: str) -> GatewayOrder:
        stripe.api_key = self._api_key
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                metadata={"receipt": receipt},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as exc:
            logger.warning("stripe.order.failed", extra={"error": str(exc), "receipt": receipt})
            raise PaymentGatewayError("Failed to create order with payment gateway.") from exc
        logger.info("stripe.order.created", extra={"order_id": intent["id"], "amount": amount})
        return GatewayOrder(
            id=intent["id"],
            amount=amount,
            currency=currency,
            receipt=receipt,
            client_secret=intent.get("client_secret"),
        )


def build_order_gateway() -> OrderGateway:
    if settings.stripe_secret_key:
        return StripeOrderGateway(settings.stripe_secret_key)
    logger.info("billing.gateway.initialized", extra={"backend": "memory"})
    return InMemoryOrderGateway()
