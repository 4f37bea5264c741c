"""Persistence backends for subscriptions."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Protocol
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from fundbridge.core import database
from fundbridge.core.database import session_scope
from fundbridge.models.subscription import Subscription, SubscriptionRecord, SubscriptionStatus
from fundbridge.services.errors import PersistenceError

logger = logging.getLogger(__name__)


class SubscriptionRepository(Protocol):
    def create(self, subscription: Subscription) -> Subscription:
        ...

    def get(self, subscription_id: UUID) -> Subscription | None:
        ...

    def find_by_order(self, user_id: UUID, order_id: str) -> Subscription | None:
        ...

    def latest_active(self, user_id: UUID) -> Subscription | None:
        ...

    def update(self, subscription_id: UUID, changes: dict[str, Any]) -> Subscription | None:
        ...


class InMemorySubscriptionRepository(SubscriptionRepository):
    def __init__(self) -> None:
        self._subscriptions: dict[UUID, Subscription] = {}
        self._lock = Lock()

    def create(self, subscription: Subscription) -> Subscription:
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        return subscription

    def get(self, subscription_id: UUID) -> Subscription | None:
        with self._lock:
            return self._subscriptions.get(subscription_id)

    def find_by_order(self, user_id: UUID, order_id: str) -> Subscription | None:
        with self._lock:
            for subscription in self._subscriptions.values():
                if subscription.user_id == user_id and subscription.order_id == order_id:
                    return subscription
        return None

    def latest_active(self, user_id: UUID) -> Subscription | None:
        with self._lock:
            active = [
                entry
                for entry in self._subscriptions.values()
                if entry.user_id == user_id and entry.status is SubscriptionStatus.ACTIVE
            ]
        return max(active, key=lambda entry: entry.created_at, default=None)

    def update(self, subscription_id: UUID, changes: dict[str, Any]) -> Subscription | None:
        with self._lock:
            current = self._subscriptions.get(subscription_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._subscriptions[subscription_id] = updated
            return updated


class SqlSubscriptionRepository(SubscriptionRepository):
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(self, subscription: Subscription) -> Subscription:
        record = SubscriptionRecord.from_subscription(subscription)
        try:
            with session_scope(self._engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                return record.to_subscription()
        except SQLAlchemyError as exc:
            logger.exception("billing.persistence.error", extra={"subscription_id": str(subscription.id)})
            raise PersistenceError("Failed to persist subscription.") from exc

    def get(self, subscription_id: UUID) -> Subscription | None:
        return self._first(
            select(SubscriptionRecord).where(SubscriptionRecord.id == subscription_id)
        )

    def find_by_order(self, user_id: UUID, order_id: str) -> Subscription | None:
        return self._first(
            select(SubscriptionRecord).where(
                SubscriptionRecord.user_id == user_id,
                SubscriptionRecord.order_id == order_id,
            )
        )

    def latest_active(self, user_id: UUID) -> Subscription | None:
        return self._first(
            select(SubscriptionRecord)
            .where(
                SubscriptionRecord.user_id == user_id,
                SubscriptionRecord.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(SubscriptionRecord.created_at.desc())
        )

    def update(self, subscription_id: UUID, changes: dict[str, Any]) -> Subscription | None:
        values = {
            key: getattr(value, "value", value) if key == "status" else value
            for key, value in changes.items()
        }
        try:
            with session_scope(self._engine) as session:
                result = session.execute(
                    sa.update(SubscriptionRecord)
                    .where(SubscriptionRecord.id == subscription_id)
                    .values(**values)
                )
                session.commit()
                if result.rowcount != 1:
                    return None
                record = session.get(SubscriptionRecord, subscription_id, populate_existing=True)
                return record.to_subscription() if record else None
        except SQLAlchemyError as exc:
            logger.exception("billing.persistence.error", extra={"subscription_id": str(subscription_id)})
            raise PersistenceError("Failed to update subscription.") from exc

    def _first(self, statement) -> Subscription | None:
        try:
            with session_scope(self._engine) as session:
                record = session.exec(statement).first()
                return record.to_subscription() if record else None
        except SQLAlchemyError as exc:
            logger.exception("billing.persistence.error")
            raise PersistenceError("Failed to load subscription.") from exc


def build_subscription_repository(engine: Engine | None = None) -> SubscriptionRepository:
    resolved = engine or database.init_database()
    if resolved is None:
        return InMemorySubscriptionRepository()
    return SqlSubscriptionRepository(resolved)
