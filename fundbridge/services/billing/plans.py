"""Subscription plan catalogue."""

from __future__ import annotations

from typing import Final

from pydantic import BaseModel

from fundbridge.services.errors import ValidationError

MINOR_UNITS_PER_MAJOR = 100


class Plan(BaseModel):
    id: str
    name: str
    price: int
    currency: str = "INR"
    period: str = "month"
    features: list[str]


PLANS: Final[tuple[Plan, ...]] = (
    Plan(
        id="basic",
        name="Basic",
        price=299,
        features=[
            "Access to basic startup profiles",
            "Limited messaging (50 messages/month)",
            "Basic analytics",
            "Email support",
        ],
    ),
    Plan(
        id="premium",
        name="Premium",
        price=799,
        features=[
            "Full startup profile access",
            "Unlimited messaging",
            "Advanced analytics & insights",
            "Priority support",
            "Video call integration",
            "Investment opportunity alerts",
        ],
    ),
    Plan(
        id="enterprise",
        name="Enterprise",
        price=1999,
        features=[
            "All Premium features",
            "Dedicated account manager",
            "Custom reporting",
            "API access",
            "White-label solutions",
            "24/7 phone support",
            "Advanced security features",
        ],
    ),
)


def get_plan(plan_id: str) -> Plan:
    for plan in PLANS:
        if plan.id == plan_id:
            return plan
    raise ValidationError(f"Invalid plan selected: {plan_id!r}.")


def to_minor_units(amount: float) -> int:
    """Whole currency units to gateway minor units (rupees to paise).

    Only gateway order amounts use minor units; fund request amounts never do.
    """
    return int(round(amount * MINOR_UNITS_PER_MAJOR))


def from_minor_units(amount: int) -> float:
    return amount / MINOR_UNITS_PER_MAJOR
