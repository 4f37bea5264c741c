"""Subscription billing endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fundbridge.api.deps import get_current_user, raise_api_error
from fundbridge.models.subscription import Subscription
from fundbridge.models.user import UserProfile
from fundbridge.services.billing.plans import Plan
from fundbridge.services.billing.service import (
    CheckoutOrder,
    SubscriptionService,
    get_subscription_service,
)
from fundbridge.services.errors import FundBridgeError

router = APIRouter()
logger = logging.getLogger(__name__)


class OrderRequest(BaseModel):
    plan: str


class PaymentValidationRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class CancelRequest(BaseModel):
    subscription_id: UUID


@router.get("/plans", response_model=list[Plan])
def list_plans(service: SubscriptionService = Depends(get_subscription_service)) -> list[Plan]:
    return service.plans()


@router.post("/orders", response_model=CheckoutOrder)
def create_order(
    payload: OrderRequest,
    user: UserProfile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> CheckoutOrder:
    try:
        return service.create_order(user.id, payload.plan)
    except FundBridgeError as exc:
        raise_api_error(exc, "billing.api_error", user_id=user.id, plan=payload.plan)


@router.post("/validate", response_model=Subscription)
def validate_payment(
    payload: PaymentValidationRequest,
    user: UserProfile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> Subscription:
    try:
        return service.validate_payment(user.id, payload.order_id, payload.payment_id, payload.signature)
    except FundBridgeError as exc:
        raise_api_error(exc, "billing.api_error", user_id=user.id, order_id=payload.order_id)


@router.get("/subscription", response_model=Subscription | None)
def current_subscription(
    user: UserProfile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> Subscription | None:
    return service.current(user.id)


@router.post("/cancel", response_model=Subscription)
def cancel_subscription(
    payload: CancelRequest,
    user: UserProfile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> Subscription:
    try:
        return service.cancel(payload.subscription_id, user.id)
    except FundBridgeError as exc:
        raise_api_error(exc, "billing.api_error", user_id=user.id, subscription_id=payload.subscription_id)
