"""Startup analysis orchestration: score, project, advise, comment, persist."""

from __future__ import annotations

import logging
import math
import time
from uuid import UUID, uuid4

from pydantic import BaseModel

from fundbridge.config import settings
from fundbridge.models.startup import (
    AnalysisResult,
    Projection,
    ScoreBreakdown,
    StartupAnalysis,
    StartupSubmission,
)
from fundbridge.observability.metrics import metrics
from fundbridge.services.errors import AuthorizationError, FundBridgeError, NotFoundError, ValidationError
from fundbridge.services.scoring.commentary import CommentaryWriter
from fundbridge.services.scoring.projection import project_profit_loss
from fundbridge.services.scoring.repositories import AnalysisRepository, build_analysis_repository
from fundbridge.services.scoring.scorer import compute_final_score
from fundbridge.services.scoring.suggestions import generate_suggestions

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AnalysisPage(BaseModel):
    analyses: list[StartupAnalysis]
    pagination: Pagination


def evaluate_submission(
    submission: StartupSubmission, *, months: int | None = None
) -> tuple[AnalysisResult, ScoreBreakdown, Projection]:
    """Run the pure pipeline and return the result plus breakdown and projection."""
    breakdown = compute_final_score(submission)
    growth = submission.expected_monthly_growth_pct
    projection = project_profit_loss(
        monthly_revenue=submission.monthly_revenue,
        monthly_burn=submission.monthly_burn,
        growth_rate_pct=settings.default_growth_rate_pct if growth is None else growth,
        months=months or settings.projection_months,
    )
    suggestions, verdict = generate_suggestions(
        breakdown.components, breakdown.total, submission, projection
    )
    result = AnalysisResult(
        score=breakdown.total,
        verdict=verdict,
        suggestions=suggestions,
        projection=projection,
        components=breakdown.components,
    )
    return result, breakdown, projection


class StartupAnalysisService:
    """Scores submissions and keeps an immutable snapshot of every result."""

    def __init__(
        self,
        *,
        repository: AnalysisRepository | None = None,
        commentary: CommentaryWriter | None = None,
    ) -> None:
        self._repository = repository or build_analysis_repository()
        self._commentary = commentary or CommentaryWriter()

    def analyze(self, submission: StartupSubmission, user_id: UUID) -> StartupAnalysis:
        if not submission.name or not submission.name.strip():
            raise ValidationError("Startup name is required.")

        start = time.perf_counter()
        outcome = "error"
        try:
            result, breakdown, projection = evaluate_submission(submission)
            commentary = self._commentary.write(submission, breakdown, projection)
            analysis = StartupAnalysis(
                id=uuid4(),
                user_id=user_id,
                submission=submission,
                result=result.model_copy(update={"commentary": commentary}),
            )
            persisted = self._repository.save(analysis)
            outcome = persisted.result.verdict.value
            logger.info(
                "analyses.scored",
                extra={
                    "analysis_id": str(persisted.id),
                    "user_id": str(user_id),
                    "score": persisted.result.score,
                    "verdict": outcome,
                },
            )
            return persisted
        except FundBridgeError as exc:
            metrics.increment("analyses.errors", tags={"code": exc.code})
            raise
        finally:
            metrics.timing(
                "analyses.latency_ms",
                (time.perf_counter() - start) * 1000,
                tags={"verdict": outcome},
            )

    def list_for_user(
        self, user_id: UUID, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE
    ) -> AnalysisPage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        analyses, total = self._repository.list_for_user(
            user_id, offset=(page - 1) * limit, limit=limit
        )
        return AnalysisPage(
            analyses=analyses,
            pagination=Pagination(
                page=page, limit=limit, total=total, pages=math.ceil(total / limit)
            ),
        )

    def get(self, analysis_id: UUID) -> StartupAnalysis:
        analysis = self._repository.get(analysis_id)
        if analysis is None:
            raise NotFoundError("Startup analysis not found.")
        return analysis

    def delete(self, analysis_id: UUID, user_id: UUID) -> None:
        analysis = self.get(analysis_id)
        if analysis.user_id != user_id:
            raise AuthorizationError("Not authorized to delete this analysis.")
        self._repository.delete(analysis_id)
        logger.info(
            "analyses.deleted",
            extra={"analysis_id": str(analysis_id), "user_id": str(user_id)},
        )


_SERVICE_INSTANCE: StartupAnalysisService | None = None


def get_analysis_service() -> StartupAnalysisService:
    """Singleton accessor used by API routes."""
    global _SERVICE_INSTANCE  # noqa: PLW0603
    if _SERVICE_INSTANCE is None:
        _SERVICE_INSTANCE = StartupAnalysisService()
    return _SERVICE_INSTANCE
