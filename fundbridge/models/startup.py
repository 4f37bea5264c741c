"""Domain models for startup viability analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, confloat, conint


class Verdict(str, Enum):
    VIABLE = "viable"
    CAUTION = "caution"
    RISKY = "risky"


class RevenueModel(str, Enum):
    SAAS = "SaaS"
    MARKETPLACE = "Marketplace"
    AD = "Ad"
    SUBSCRIPTION = "Subscription"
    TRANSACTION_FEE = "Transaction fee"
    OTHER = "Other"


class StartupMetrics(BaseModel):
    """Raw metrics a startup submits for scoring.

    Optional fields stay ``None`` when not reported so the suggestion rules can
    tell "zero" from "unknown"; the scorer treats ``None`` as zero.
    """

    market_size_estimate_usd: confloat(ge=0) | None = None  # type: ignore[valid-type]
    cac: confloat(ge=0) | None = None  # type: ignore[valid-type]
    ltv: confloat(ge=0) | None = None  # type: ignore[valid-type]
    runway_months: confloat(ge=0) | None = None  # type: ignore[valid-type]
    monthly_burn: confloat(ge=0) = 0  # type: ignore[valid-type]
    monthly_revenue: confloat(ge=0) = 0  # type: ignore[valid-type]
    competition_level: conint(ge=1, le=10) = 5  # type: ignore[valid-type]
    team_experience_rating: conint(ge=1, le=10) = 5  # type: ignore[valid-type]
    expected_monthly_growth_pct: confloat(ge=0) | None = None  # type: ignore[valid-type]


class StartupSubmission(StartupMetrics):
    """Metrics plus the descriptive fields stored alongside an analysis."""

    name: str
    description: str | None = None
    founder_names: list[str] = Field(default_factory=list)
    revenue_model: RevenueModel = RevenueModel.SAAS


class ScoreComponents(BaseModel):
    market: int
    unit: int
    runway: int
    comp: int
    team: int


class ScoreBreakdown(BaseModel):
    """Rounded components plus the total computed from unrounded ones."""

    components: ScoreComponents
    total: conint(ge=0, le=100)  # type: ignore[valid-type]


class ProjectionMonth(BaseModel):
    month: int
    revenue: int
    burn: int
    profit: int


class Projection(BaseModel):
    monthly: list[ProjectionMonth]
    break_even_month: int | None = None


class AnalysisResult(BaseModel):
    score: conint(ge=0, le=100)  # type: ignore[valid-type]
    verdict: Verdict
    suggestions: list[str] = Field(min_length=1)
    projection: Projection
    components: ScoreComponents
    commentary: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StartupAnalysis(BaseModel):
    """Persisted snapshot of one analysis submission; never recalculated."""

    id: UUID
    user_id: UUID
    submission: StartupSubmission
    result: AnalysisResult
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}
