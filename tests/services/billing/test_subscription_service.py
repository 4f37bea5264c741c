from types import SimpleNamespace
from uuid import uuid4

import pytest
import stripe

from fundbridge.models.subscription import SubscriptionStatus
from fundbridge.services.billing import gateway as gateway_module
from fundbridge.services.billing.gateway import InMemoryOrderGateway, StripeOrderGateway
from fundbridge.services.billing.plans import from_minor_units, get_plan, to_minor_units
from fundbridge.services.billing.repositories import InMemorySubscriptionRepository
from fundbridge.services.billing.service import SubscriptionService
from fundbridge.services.errors import (
    AuthorizationError,
    NotFoundError,
    PaymentGatewayError,
    PaymentValidationFailed,
    ValidationError,
)
from fundbridge.services.funding.payments import HmacPaymentVerifier, sign_payment
from tests.helpers.factories import PAYMENT_SECRET


def _service(gateway=None) -> SubscriptionService:
    return SubscriptionService(
        repository=InMemorySubscriptionRepository(),
        gateway=gateway or InMemoryOrderGateway(),
        verifier=HmacPaymentVerifier(secret=PAYMENT_SECRET),
        period_days=30,
    )


def test_plans_catalogue():
    service = _service()

    assert [plan.id for plan in service.plans()] == ["basic", "premium", "enterprise"]
    assert get_plan("premium").price == 799
    with pytest.raises(ValidationError):
        get_plan("platinum")


def test_minor_unit_conversion():
    assert to_minor_units(299) == 29_900
    assert to_minor_units(19.99) == 1_999
    assert from_minor_units(29_900) == 299


def test_create_order_uses_minor_units_and_stores_pending():
    gateway = InMemoryOrderGateway()
    service = _service(gateway)
    user_id = uuid4()

    checkout = service.create_order(user_id, "basic")

    assert checkout.order.amount == 29_900
    assert gateway.orders[checkout.order.id].currency == "INR"
    assert checkout.subscription.status is SubscriptionStatus.PENDING
    assert checkout.subscription.amount == 299
    assert checkout.subscription.order_id == checkout.order.id
    assert service.current(user_id) is None


def test_validate_payment_activates_subscription():
    service = _service()
    user_id = uuid4()
    checkout = service.create_order(user_id, "premium")
    order_id = checkout.order.id

    activated = service.validate_payment(
        user_id, order_id, "pay_1", sign_payment(PAYMENT_SECRET, order_id, "pay_1")
    )

    assert activated.status is SubscriptionStatus.ACTIVE
    assert activated.payment_id == "pay_1"
    assert (activated.current_period_end - activated.current_period_start).days == 30
    assert service.current(user_id).id == activated.id


def test_validate_payment_rejects_bad_signature():
    service = _service()
    user_id = uuid4()
    checkout = service.create_order(user_id, "basic")

    with pytest.raises(PaymentValidationFailed):
        service.validate_payment(user_id, checkout.order.id, "pay_1", "forged")
    with pytest.raises(PaymentValidationFailed):
        service.validate_payment(user_id, checkout.order.id, "pay_1", "é" * 64)
    assert service.current(user_id) is None


def test_validate_payment_for_unknown_order():
    service = _service()

    with pytest.raises(NotFoundError):
        service.validate_payment(uuid4(), "order_x", "pay_1", sign_payment(PAYMENT_SECRET, "order_x", "pay_1"))


def test_cancel_requires_owner():
    service = _service()
    user_id = uuid4()
    subscription = service.create_order(user_id, "basic").subscription

    with pytest.raises(AuthorizationError):
        service.cancel(subscription.id, uuid4())
    with pytest.raises(NotFoundError):
        service.cancel(uuid4(), user_id)

    canceled = service.cancel(subscription.id, user_id)
    assert canceled.status is SubscriptionStatus.CANCELED
    assert canceled.cancel_at_period_end is True


def test_stripe_gateway_creates_payment_intent(monkeypatch):
    captured = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return {"id": "pi_123", "client_secret": "secret_123"}

    monkeypatch.setattr(gateway_module.stripe, "PaymentIntent", SimpleNamespace(create=_create))

    order = StripeOrderGateway("sk_test").create_order(amount=29_900, currency="INR", receipt="r1")

    assert order.id == "pi_123"
    assert order.client_secret == "secret_123"
    assert captured["amount"] == 29_900
    assert captured["currency"] == "inr"


def test_stripe_gateway_wraps_errors(monkeypatch):
    def _create(**_):
        raise stripe.StripeError("card network down")

    monkeypatch.setattr(gateway_module.stripe, "PaymentIntent", SimpleNamespace(create=_create))

    with pytest.raises(PaymentGatewayError):
        StripeOrderGateway("sk_test").create_order(amount=100, currency="INR", receipt="r1")
