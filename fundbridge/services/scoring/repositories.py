"""Persistence backends for startup analyses."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from fundbridge.core import database
from fundbridge.core.database import session_scope
from fundbridge.models.analysis_record import AnalysisRecord
from fundbridge.models.startup import StartupAnalysis
from fundbridge.observability.metrics import metrics
from fundbridge.services.errors import PersistenceError

logger = logging.getLogger(__name__)


class AnalysisRepository(Protocol):
    """Persistence contract for analysis snapshots."""

    def save(self, analysis: StartupAnalysis) -> StartupAnalysis:
        ...

    def get(self, analysis_id: UUID) -> StartupAnalysis | None:
        ...

    def list_for_user(
        self, user_id: UUID, *, offset: int = 0, limit: int | None = None
    ) -> tuple[list[StartupAnalysis], int]:
        ...

    def delete(self, analysis_id: UUID) -> bool:
        ...


class InMemoryAnalysisRepository(AnalysisRepository):
    """Thread-safe repository used for API/local development."""

    def __init__(self) -> None:
        self._analyses: dict[UUID, StartupAnalysis] = {}
        self._lock = Lock()

    def save(self, analysis: StartupAnalysis) -> StartupAnalysis:
        with self._lock:
            self._analyses[analysis.id] = analysis
        metrics.increment("analyses.persistence.persisted", tags={"repository": "memory"})
        logger.info(
            "analyses.persistence.persisted",
            extra={"analysis_id": str(analysis.id), "score": analysis.result.score, "backend": "memory"},
        )
        return analysis

    def get(self, analysis_id: UUID) -> StartupAnalysis | None:
        with self._lock:
            return self._analyses.get(analysis_id)

    def list_for_user(
        self, user_id: UUID, *, offset: int = 0, limit: int | None = None
    ) -> tuple[list[StartupAnalysis], int]:
        with self._lock:
            owned = [entry for entry in self._analyses.values() if entry.user_id == user_id]
        ordered = sorted(owned, key=lambda entry: entry.created_at, reverse=True)
        window = ordered[max(0, offset) :]
        if limit is not None:
            window = window[: max(0, limit)]
        return window, len(ordered)

    def delete(self, analysis_id: UUID) -> bool:
        with self._lock:
            return self._analyses.pop(analysis_id, None) is not None


class SqlAnalysisRepository(AnalysisRepository):
    """SQLModel-backed repository for the ``startup_analyses`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._metrics_tags = {"repository": engine.dialect.name}

    def save(self, analysis: StartupAnalysis) -> StartupAnalysis:
        record = AnalysisRecord.from_analysis(analysis)
        try:
            with session_scope(self._engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                persisted = record.to_analysis()
        except IntegrityError as exc:
            logger.warning(
                "analyses.persistence.conflict",
                extra={"analysis_id": str(analysis.id), "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Analysis already exists.", code="409_CONFLICT") from exc
        except SQLAlchemyError as exc:
            logger.exception(
                "analyses.persistence.error",
                extra={"analysis_id": str(analysis.id), "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Failed to persist analysis.") from exc
        metrics.increment("analyses.persistence.persisted", tags=self._metrics_tags)
        logger.info(
            "analyses.persistence.persisted",
            extra={
                "analysis_id": str(persisted.id),
                "score": persisted.result.score,
                "backend": self._metrics_tags["repository"],
            },
        )
        return persisted

    def get(self, analysis_id: UUID) -> StartupAnalysis | None:
        try:
            with session_scope(self._engine) as session:
                record = session.get(AnalysisRecord, analysis_id)
                return record.to_analysis() if record else None
        except SQLAlchemyError as exc:
            logger.exception("analyses.persistence.error", extra={"analysis_id": str(analysis_id)})
            raise PersistenceError("Failed to load analysis.") from exc

    def list_for_user(
        self, user_id: UUID, *, offset: int = 0, limit: int | None = None
    ) -> tuple[list[StartupAnalysis], int]:
        try:
            with session_scope(self._engine) as session:
                total = session.exec(
                    select(func.count()).select_from(AnalysisRecord).where(AnalysisRecord.user_id == user_id)
                ).one()
                statement = (
                    select(AnalysisRecord)
                    .where(AnalysisRecord.user_id == user_id)
                    .order_by(AnalysisRecord.created_at.desc())
                    .offset(max(0, offset))
                )
                if limit is not None:
                    statement = statement.limit(max(0, limit))
                records = session.exec(statement).all()
                return [record.to_analysis() for record in records], int(total)
        except SQLAlchemyError as exc:
            logger.exception("analyses.persistence.error", extra={"user_id": str(user_id)})
            raise PersistenceError("Failed to list analyses.") from exc

    def delete(self, analysis_id: UUID) -> bool:
        try:
            with session_scope(self._engine) as session:
                record = session.get(AnalysisRecord, analysis_id)
                if record is None:
                    return False
                session.delete(record)
                session.commit()
                return True
        except SQLAlchemyError as exc:
            logger.exception("analyses.persistence.error", extra={"analysis_id": str(analysis_id)})
            raise PersistenceError("Failed to delete analysis.") from exc


def build_analysis_repository(engine: Engine | None = None) -> AnalysisRepository:
    """Instantiate an AnalysisRepository using the shared engine when available."""
    resolved = engine or database.init_database()
    if resolved is None:
        logger.info("analyses.repository.initialized", extra={"backend": "memory"})
        return InMemoryAnalysisRepository()
    logger.info("analyses.repository.initialized", extra={"backend": resolved.dialect.name})
    return SqlAnalysisRepository(resolved)
