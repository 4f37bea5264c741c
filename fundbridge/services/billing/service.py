"""Subscription purchase flow: order, signature validation, activation, cancel."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from uuid import UUID

from pydantic import BaseModel

from fundbridge.config import settings
from fundbridge.models.subscription import Subscription, SubscriptionStatus
from fundbridge.observability.metrics import metrics
from fundbridge.services.billing.gateway import GatewayOrder, OrderGateway, build_order_gateway
from fundbridge.services.billing.plans import PLANS, Plan, get_plan, to_minor_units
from fundbridge.services.billing.repositories import (
    SubscriptionRepository,
    build_subscription_repository,
)
from fundbridge.services.errors import AuthorizationError, NotFoundError, PaymentValidationFailed
from fundbridge.services.funding.payments import HmacPaymentVerifier, PaymentVerifier

logger = logging.getLogger(__name__)


class CheckoutOrder(BaseModel):
    order: GatewayOrder
    subscription: Subscription
    plan: Plan


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionService:
    def __init__(
        self,
        *,
        repository: SubscriptionRepository | None = None,
        gateway: OrderGateway | None = None,
        verifier: PaymentVerifier | None = None,
        period_days: int | None = None,
    ) -> None:
        self._repository = repository or build_subscription_repository()
        self._gateway = gateway or build_order_gateway()
        self._verifier = verifier or HmacPaymentVerifier()
        self._period = timedelta(days=period_days or settings.subscription_period_days)

    @staticmethod
    def plans() -> list[Plan]:
        return list(PLANS)

    def create_order(self, user_id: UUID, plan_id: str) -> CheckoutOrder:
        plan = get_plan(plan_id)
        order = self._gateway.create_order(
            amount=to_minor_units(plan.price),
            currency=plan.currency,
            receipt=f"receipt_{user_id}_{int(time.time() * 1000)}",
        )
        now = _utcnow()
        subscription = self._repository.create(
            Subscription(
                user_id=user_id,
                plan=plan.id,
                order_id=order.id,
                amount=plan.price,
                currency=plan.currency,
                current_period_start=now,
                current_period_end=now + self._period,
            )
        )
        metrics.increment("billing.order.created", tags={"plan": plan.id})
        logger.info(
            "billing.order.created",
            extra={"user_id": str(user_id), "plan": plan.id, "order_id": order.id, "amount_minor": order.amount},
        )
        return CheckoutOrder(order=order, subscription=subscription, plan=plan)

    def validate_payment(
        self, user_id: UUID, order_id: str, payment_id: str, signature: str
    ) -> Subscription:
        if not self._verifier.verify(order_id, payment_id, signature):
            metrics.increment("billing.payment.invalid_signature")
            logger.warning(
                "billing.payment.invalid_signature",
                extra={"user_id": str(user_id), "order_id": order_id},
            )
            raise PaymentValidationFailed("Payment validation failed.")

        pending = self._repository.find_by_order(user_id, order_id)
        if pending is None:
            raise NotFoundError("Subscription not found.")
        now = _utcnow()
        activated = self._repository.update(
            pending.id,
            {
                "status": SubscriptionStatus.ACTIVE,
                "payment_id": payment_id,
                "payment_signature": signature,
                "current_period_start": now,
                "current_period_end": now + self._period,
                "updated_at": now,
            },
        )
        if activated is None:
            raise NotFoundError("Subscription not found.")
        metrics.increment("billing.subscription.activated", tags={"plan": activated.plan})
        logger.info(
            "billing.subscription.activated",
            extra={"subscription_id": str(activated.id), "user_id": str(user_id), "plan": activated.plan},
        )
        return activated

    def current(self, user_id: UUID) -> Subscription | None:
        return self._repository.latest_active(user_id)

    def cancel(self, subscription_id: UUID, user_id: UUID) -> Subscription:
        subscription = self._repository.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found.")
        if subscription.user_id != user_id:
            raise AuthorizationError("Not authorized to cancel this subscription.")
        canceled = self._repository.update(
            subscription_id,
            {
                "status": SubscriptionStatus.CANCELED,
                "cancel_at_period_end": True,
                "updated_at": _utcnow(),
            },
        )
        if canceled is None:
            raise NotFoundError("Subscription not found.")
        logger.info(
            "billing.subscription.canceled",
            extra={"subscription_id": str(subscription_id), "user_id": str(user_id)},
        )
        return canceled


_SERVICE_INSTANCE: SubscriptionService | None = None


def get_subscription_service() -> SubscriptionService:
    """Singleton accessor used by API routes."""
    global _SERVICE_INSTANCE  # noqa: PLW0603
    if _SERVICE_INSTANCE is None:
        _SERVICE_INSTANCE = SubscriptionService()
    return _SERVICE_INSTANCE
