"""Persistence backends for fund requests.

Status changes go through ``update(..., expected_status=...)``, a compare-and-swap
that only applies when the stored status still matches. ``None`` means the swap
lost; callers re-read to learn the status that won.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from threading import Lock
from typing import Any, Protocol
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from fundbridge.core import database
from fundbridge.core.database import session_scope
from fundbridge.models.fund_request import FundRequest, FundRequestStatus
from fundbridge.models.fund_request_record import FundRequestRecord, column_changes
from fundbridge.observability.metrics import metrics
from fundbridge.services.errors import PersistenceError

logger = logging.getLogger(__name__)


class FundRequestStore(Protocol):
    """Persistence contract for fund requests."""

    def create(self, request: FundRequest) -> FundRequest:
        ...

    def get(self, request_id: UUID) -> FundRequest | None:
        ...

    def update(
        self,
        request_id: UUID,
        changes: dict[str, Any],
        *,
        expected_status: FundRequestStatus,
    ) -> FundRequest | None:
        ...

    def list_for_user(
        self, user_id: UUID, *, status: FundRequestStatus | None = None
    ) -> list[FundRequest]:
        ...

    def list_for_startup(
        self,
        startup_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        ...

    def list_for_investor(
        self,
        investor_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        ...


def _newest_first(requests: Iterable[FundRequest]) -> list[FundRequest]:
    return sorted(requests, key=lambda entry: entry.created_at, reverse=True)


class InMemoryFundRequestStore(FundRequestStore):
    """Thread-safe store used for API/local development."""

    def __init__(self) -> None:
        self._requests: dict[UUID, FundRequest] = {}
        self._lock = Lock()

    def create(self, request: FundRequest) -> FundRequest:
        with self._lock:
            if request.id in self._requests:
                raise PersistenceError("Fund request already exists.", code="409_CONFLICT")
            self._requests[request.id] = request
        metrics.increment("fund_requests.persistence.persisted", tags={"repository": "memory"})
        return request

    def get(self, request_id: UUID) -> FundRequest | None:
        with self._lock:
            return self._requests.get(request_id)

    def update(
        self,
        request_id: UUID,
        changes: dict[str, Any],
        *,
        expected_status: FundRequestStatus,
    ) -> FundRequest | None:
        with self._lock:
            current = self._requests.get(request_id)
            if current is None or current.status is not expected_status:
                return None
            updated = current.model_copy(update=changes)
            self._requests[request_id] = updated
            return updated

    def list_for_user(
        self, user_id: UUID, *, status: FundRequestStatus | None = None
    ) -> list[FundRequest]:
        with self._lock:
            matches = [
                entry
                for entry in self._requests.values()
                if user_id in (entry.startup_id, entry.investor_id)
                and (status is None or entry.status is status)
            ]
        return _newest_first(matches)

    def list_for_startup(
        self,
        startup_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        return self._filter("startup_id", startup_id, statuses, since)

    def list_for_investor(
        self,
        investor_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        return self._filter("investor_id", investor_id, statuses, since)

    def _filter(
        self,
        field: str,
        owner_id: UUID,
        statuses: Iterable[FundRequestStatus] | None,
        since: datetime | None,
    ) -> list[FundRequest]:
        allowed = set(statuses) if statuses is not None else None
        with self._lock:
            matches = [
                entry
                for entry in self._requests.values()
                if getattr(entry, field) == owner_id
                and (allowed is None or entry.status in allowed)
                and (since is None or entry.created_at >= since)
            ]
        return _newest_first(matches)


class SqlFundRequestStore(FundRequestStore):
    """SQLModel-backed store for the ``fund_requests`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._metrics_tags = {"repository": engine.dialect.name}

    def create(self, request: FundRequest) -> FundRequest:
        record = FundRequestRecord.from_fund_request(request)
        try:
            with session_scope(self._engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                persisted = record.to_fund_request()
        except IntegrityError as exc:
            logger.warning(
                "fund_requests.persistence.conflict",
                extra={"fund_request_id": str(request.id), "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Fund request already exists.", code="409_CONFLICT") from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "fund_requests.persistence.error",
                extra={"fund_request_id": str(request.id), "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Failed to persist fund request.") from exc
        metrics.increment("fund_requests.persistence.persisted", tags=self._metrics_tags)
        return persisted

    def get(self, request_id: UUID) -> FundRequest | None:
        try:
            with session_scope(self._engine) as session:
                record = session.get(FundRequestRecord, request_id)
                return record.to_fund_request() if record else None
        except SQLAlchemyError as exc:
            logger.exception("fund_requests.persistence.error", extra={"fund_request_id": str(request_id)})
            raise PersistenceError("Failed to load fund request.") from exc

    def update(
        self,
        request_id: UUID,
        changes: dict[str, Any],
        *,
        expected_status: FundRequestStatus,
    ) -> FundRequest | None:
        statement = (
            sa.update(FundRequestRecord)
            .where(
                FundRequestRecord.id == request_id,
                FundRequestRecord.status == expected_status.value,
            )
            .values(**column_changes(changes))
        )
        try:
            with session_scope(self._engine) as session:
                result = session.execute(statement)
                session.commit()
                if result.rowcount != 1:
                    return None
                record = session.get(FundRequestRecord, request_id, populate_existing=True)
                return record.to_fund_request() if record else None
        except SQLAlchemyError as exc:
            logger.exception(
                "fund_requests.persistence.error",
                extra={"fund_request_id": str(request_id), "expected_status": expected_status.value},
            )
            raise PersistenceError("Failed to update fund request.") from exc

    def list_for_user(
        self, user_id: UUID, *, status: FundRequestStatus | None = None
    ) -> list[FundRequest]:
        conditions = [
            sa.or_(FundRequestRecord.startup_id == user_id, FundRequestRecord.investor_id == user_id)
        ]
        if status is not None:
            conditions.append(FundRequestRecord.status == status.value)
        return self._select(conditions, context={"user_id": str(user_id)})

    def list_for_startup(
        self,
        startup_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        conditions = [FundRequestRecord.startup_id == startup_id]
        conditions.extend(_window_conditions(statuses, since))
        return self._select(conditions, context={"startup_id": str(startup_id)})

    def list_for_investor(
        self,
        investor_id: UUID,
        *,
        statuses: Iterable[FundRequestStatus] | None = None,
        since: datetime | None = None,
    ) -> list[FundRequest]:
        conditions = [FundRequestRecord.investor_id == investor_id]
        conditions.extend(_window_conditions(statuses, since))
        return self._select(conditions, context={"investor_id": str(investor_id)})

    def _select(self, conditions: list[Any], *, context: dict[str, str]) -> list[FundRequest]:
        statement = (
            select(FundRequestRecord)
            .where(*conditions)
            .order_by(FundRequestRecord.created_at.desc())
        )
        try:
            with session_scope(self._engine) as session:
                records = session.exec(statement).all()
                return [record.to_fund_request() for record in records]
        except SQLAlchemyError as exc:
            logger.exception("fund_requests.persistence.error", extra=context)
            raise PersistenceError("Failed to list fund requests.") from exc


def _window_conditions(
    statuses: Iterable[FundRequestStatus] | None, since: datetime | None
) -> list[Any]:
    conditions: list[Any] = []
    if statuses is not None:
        conditions.append(FundRequestRecord.status.in_([status.value for status in statuses]))
    if since is not None:
        conditions.append(FundRequestRecord.created_at >= since)
    return conditions


def build_fund_request_store(engine: Engine | None = None) -> FundRequestStore:
    """Instantiate a FundRequestStore using the shared engine when available."""
    resolved = engine or database.init_database()
    if resolved is None:
        logger.info("fund_requests.store.initialized", extra={"backend": "memory"})
        return InMemoryFundRequestStore()
    logger.info("fund_requests.store.initialized", extra={"backend": resolved.dialect.name})
    return SqlFundRequestStore(resolved)


_STORE_INSTANCE: FundRequestStore | None = None


def get_fund_request_store() -> FundRequestStore:
    """Process-wide store shared by the lifecycle and analytics services."""
    global _STORE_INSTANCE  # noqa: PLW0603
    if _STORE_INSTANCE is None:
        _STORE_INSTANCE = build_fund_request_store()
    return _STORE_INSTANCE
