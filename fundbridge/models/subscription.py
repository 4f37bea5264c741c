"""Subscription billing models."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

import sqlalchemy as sa
from pydantic import BaseModel
from pydantic import Field as PydanticField
from sqlalchemy import Boolean, Column, DateTime, Float, String, Uuid
from sqlmodel import Field, SQLModel


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Subscription(BaseModel):
    """A plan purchase; ``amount`` is in whole currency units."""

    id: UUID = PydanticField(default_factory=uuid4)
    user_id: UUID
    plan: str
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    order_id: str
    payment_id: str | None = None
    payment_signature: str | None = None
    amount: float
    currency: str = "INR"
    current_period_start: datetime = PydanticField(default_factory=_utcnow)
    current_period_end: datetime
    cancel_at_period_end: bool = False
    created_at: datetime = PydanticField(default_factory=_utcnow)
    updated_at: datetime = PydanticField(default_factory=_utcnow)


class SubscriptionRecord(SQLModel, table=True):
    """Persisted subscription state."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        sa.Index("ix_subscriptions_user_status", "user_id", "status"),
        sa.Index("ix_subscriptions_order_id", "order_id"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    user_id: UUID = Field(sa_column=Column(Uuid(as_uuid=True), nullable=False))
    plan: str = Field(sa_column=Column(String(length=32), nullable=False))
    status: str = Field(sa_column=Column(String(length=32), nullable=False))
    order_id: str = Field(sa_column=Column(String(length=255), nullable=False))
    payment_id: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    payment_signature: str | None = Field(
        default=None, sa_column=Column(String(length=255), nullable=True)
    )
    amount: float = Field(sa_column=Column(Float, nullable=False))
    currency: str = Field(sa_column=Column(String(length=8), nullable=False))
    current_period_start: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    current_period_end: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    cancel_at_period_end: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, server_default=sa.false())
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    )

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> SubscriptionRecord:
        payload = subscription.model_dump()
        payload["status"] = subscription.status.value
        return cls(**payload)

    def to_subscription(self) -> Subscription:
        return Subscription(
            id=self.id,
            user_id=self.user_id,
            plan=self.plan,
            status=SubscriptionStatus(self.status),
            order_id=self.order_id,
            payment_id=self.payment_id,
            payment_signature=self.payment_signature,
            amount=self.amount,
            currency=self.currency,
            current_period_start=_as_utc(self.current_period_start),
            current_period_end=_as_utc(self.current_period_end),
            cancel_at_period_end=self.cancel_at_period_end,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )
