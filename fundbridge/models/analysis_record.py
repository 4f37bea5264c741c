"""SQLModel mapping for stored startup analyses."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from fundbridge.models.startup import AnalysisResult, StartupAnalysis, StartupSubmission


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSON_BACKING_TYPE = sa.JSON().with_variant(JSONB(astext_type=sa.Text()), "postgresql")


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


class AnalysisRecord(SQLModel, table=True):
    """ORM model for persisted StartupAnalysis rows."""

    __tablename__ = "startup_analyses"
    __table_args__ = (
        sa.Index("ix_startup_analyses_user_created", "user_id", "created_at"),
        sa.Index("ix_startup_analyses_score", "score"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    user_id: UUID = Field(sa_column=Column(Uuid(as_uuid=True), nullable=False))
    name: str = Field(sa_column=Column(String(length=255), nullable=False))
    score: int = Field(sa_column=Column(Integer, nullable=False))
    verdict: str = Field(sa_column=Column(String(length=16), nullable=False))
    submission: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    result: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=UtcNow(),
        ),
    )

    @classmethod
    def from_analysis(cls, analysis: StartupAnalysis) -> AnalysisRecord:
        """Convert an in-memory StartupAnalysis into a persistence row."""
        return cls(
            id=analysis.id,
            user_id=analysis.user_id,
            name=analysis.submission.name,
            score=analysis.result.score,
            verdict=analysis.result.verdict.value,
            submission=analysis.submission.model_dump(mode="json"),
            result=analysis.result.model_dump(mode="json"),
            created_at=analysis.created_at,
        )

    def to_analysis(self) -> StartupAnalysis:
        """Hydrate a StartupAnalysis from the stored JSON payloads."""
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return StartupAnalysis(
            id=self.id,
            user_id=self.user_id,
            submission=StartupSubmission(**self.submission),
            result=AnalysisResult(**self.result),
            created_at=created_at,
        )
