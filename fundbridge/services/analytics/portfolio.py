"""Investor-side portfolio aggregates over completed fund requests."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Final
from uuid import UUID

from pydantic import BaseModel, Field

from fundbridge.models.fund_request import FundingType, FundRequest
from fundbridge.models.user import UserProfile
from fundbridge.services.analytics.governance import DEBT_TYPES, SECONDS_PER_MONTH, month_key

UNKNOWN_SECTOR = "Unknown"
RECENT_ACTIVITY_SIZE = 5
TOP_SECTORS_SIZE = 5

_SECTOR_KEYWORDS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("Technology", ("tech", "technology", "software", "it ")),
    ("Healthcare", ("health", "medical", "pharma", "biotech")),
    ("Finance", ("fin", "bank", "invest", "pay")),
    ("Education", ("edu", "learn", "course")),
    ("E-commerce", ("ecom", "retail", "shop", "store")),
    ("Real Estate", ("real", "estate", "property")),
    ("Food & Beverage", ("food", "beverage", "restaurant")),
    ("Manufacturing", ("manufact", "factory", "production")),
)

# upper bound (inclusive, whole INR) per bucket; None closes the range
SIZE_BUCKETS: Final[tuple[tuple[str, float | None], ...]] = (
    ("0-1L", 100_000),
    ("1L-5L", 500_000),
    ("5L-10L", 1_000_000),
    ("10L-25L", 2_500_000),
    ("25L-50L", 5_000_000),
    ("50L-1Cr", 10_000_000),
    ("1Cr+", None),
)


def normalize_sector(domain: str | None) -> str:
    """Map a free-text domain onto a sector bucket by keyword, first match wins."""
    if not domain or not domain.strip():
        return UNKNOWN_SECTOR
    lowered = domain.lower().strip()
    for sector, keywords in _SECTOR_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return sector
    return domain[:1].upper() + domain[1:].lower()


def size_bucket(amount: float) -> str:
    for label, upper in SIZE_BUCKETS:
        if upper is None or amount <= upper:
            return label
    return SIZE_BUCKETS[-1][0]  # pragma: no cover - last bucket is open-ended


class StartupHolding(BaseModel):
    startup_id: UUID
    startup: UserProfile | None = None
    total_invested: float


class PortfolioStatistics(BaseModel):
    total_invested: float = 0
    total_startups: int = 0
    total_investments: int = 0
    average_investment: float = 0
    average_per_startup: float = 0
    startups: list[StartupHolding] = Field(default_factory=list)


class PortfolioTimelinePoint(BaseModel):
    date: datetime
    amount: float
    funding_type: FundingType
    startup_name: str | None = None
    startup_sector: str


class PortfolioAnalytics(BaseModel):
    funding_type_breakdown: dict[str, float] = Field(default_factory=dict)
    currency_breakdown: dict[str, float] = Field(default_factory=dict)
    monthly_investment: dict[str, float] = Field(default_factory=dict)
    investment_timeline: list[PortfolioTimelinePoint] = Field(default_factory=list)
    sector_breakdown: dict[str, float] = Field(default_factory=dict)
    investment_size_distribution: dict[str, int] = Field(default_factory=dict)


class RecentInvestment(BaseModel):
    amount: float
    startup_name: str | None = None
    funding_type: FundingType
    date: datetime


class PortfolioTrends(BaseModel):
    total_growth: float = 0
    monthly_average: float = 0
    projected_annual: float = 0
    investment_frequency: float = 0
    recent_activity: list[RecentInvestment] = Field(default_factory=list)
    total_months: float = 0


class EquityVsDebt(BaseModel):
    equity: float = 0
    debt: float = 0
    equity_count: int = 0
    debt_count: int = 0


class SectorCount(BaseModel):
    sector: str
    count: int


class PerformanceMetrics(BaseModel):
    equity_vs_debt: EquityVsDebt = Field(default_factory=EquityVsDebt)
    avg_equity_percentage: float = 0
    avg_interest_rate: float = 0
    top_sectors: list[SectorCount] = Field(default_factory=list)
    diversification_score: int = 0


class StartupBreakdown(BaseModel):
    startup_id: UUID
    startup: UserProfile | None = None
    sector: str
    total_invested: float
    investments: list[FundRequest]
    funding_types: list[FundingType]
    first_investment: datetime
    last_investment: datetime
    investment_count: int


class PortfolioView:
    """Completed investments of one investor joined with the startup profiles."""

    def __init__(
        self, investments: Sequence[FundRequest], startups: dict[UUID, UserProfile] | None = None
    ) -> None:
        self.investments = sorted(investments, key=lambda entry: entry.created_at)
        self.startups = startups or {}

    def startup_name(self, entry: FundRequest) -> str | None:
        profile = self.startups.get(entry.startup_id)
        return profile.name if profile else entry.company_name

    def sector(self, entry: FundRequest) -> str:
        profile = self.startups.get(entry.startup_id)
        domain = profile.domain if profile and profile.domain else entry.domain
        return normalize_sector(domain)


def calculate_portfolio_statistics(view: PortfolioView) -> PortfolioStatistics:
    investments = view.investments
    if not investments:
        return PortfolioStatistics()
    totals: dict[UUID, float] = defaultdict(float)
    for entry in investments:
        totals[entry.startup_id] += entry.amount
    total = sum(totals.values())
    holdings = sorted(
        (
            StartupHolding(startup_id=startup_id, startup=view.startups.get(startup_id), total_invested=amount)
            for startup_id, amount in totals.items()
        ),
        key=lambda holding: holding.total_invested,
        reverse=True,
    )
    return PortfolioStatistics(
        total_invested=total,
        total_startups=len(totals),
        total_investments=len(investments),
        average_investment=total / len(investments),
        average_per_startup=total / len(totals),
        startups=holdings,
    )


def calculate_portfolio_analytics(view: PortfolioView) -> PortfolioAnalytics:
    by_type: dict[str, float] = defaultdict(float)
    by_currency: dict[str, float] = defaultdict(float)
    by_month: dict[str, float] = defaultdict(float)
    by_sector: dict[str, float] = defaultdict(float)
    distribution = {label: 0 for label, _ in SIZE_BUCKETS} if view.investments else {}
    timeline: list[PortfolioTimelinePoint] = []

    for entry in view.investments:
        sector = view.sector(entry)
        by_type[entry.funding_type.value] += entry.amount
        by_currency[entry.currency] += entry.amount
        by_month[month_key(entry.created_at)] += entry.amount
        by_sector[sector] += entry.amount
        distribution[size_bucket(entry.amount)] += 1
        timeline.append(
            PortfolioTimelinePoint(
                date=entry.created_at,
                amount=entry.amount,
                funding_type=entry.funding_type,
                startup_name=view.startup_name(entry),
                startup_sector=sector,
            )
        )

    return PortfolioAnalytics(
        funding_type_breakdown=dict(by_type),
        currency_breakdown=dict(by_currency),
        monthly_investment=dict(by_month),
        investment_timeline=timeline,
        sector_breakdown=dict(by_sector),
        investment_size_distribution=distribution,
    )


def calculate_portfolio_trends(view: PortfolioView) -> PortfolioTrends:
    """Growth compares the later half of the investments against the earlier half."""
    investments = view.investments
    if not investments:
        return PortfolioTrends()

    months = (
        investments[-1].created_at - investments[0].created_at
    ).total_seconds() / SECONDS_PER_MONTH
    total = sum(entry.amount for entry in investments)
    monthly_average = total / months if months > 0 else total

    growth = 0.0
    if len(investments) >= 2:
        middle = len(investments) // 2
        first_half = sum(entry.amount for entry in investments[:middle])
        second_half = sum(entry.amount for entry in investments[middle:])
        if first_half > 0:
            growth = (second_half - first_half) / first_half * 100

    recent = sorted(investments, key=lambda entry: entry.created_at, reverse=True)
    return PortfolioTrends(
        total_growth=round(growth, 2),
        monthly_average=monthly_average,
        projected_annual=monthly_average * 12,
        investment_frequency=round(len(investments) / months, 2) if months > 0 else 0,
        recent_activity=[
            RecentInvestment(
                amount=entry.amount,
                startup_name=view.startup_name(entry),
                funding_type=entry.funding_type,
                date=entry.created_at,
            )
            for entry in recent[:RECENT_ACTIVITY_SIZE]
        ],
        total_months=round(months, 1),
    )


def calculate_diversification_score(view: PortfolioView) -> int:
    """min(startups*10, 40) + min(sectors*10, 30) + min(types*10, 30)."""
    investments = view.investments
    if not investments:
        return 0
    startups = len({entry.startup_id for entry in investments})
    sectors = len({view.sector(entry) for entry in investments})
    types = len({entry.funding_type for entry in investments})
    return min(min(startups * 10, 40) + min(sectors * 10, 30) + min(types * 10, 30), 100)


def calculate_performance_metrics(view: PortfolioView) -> PerformanceMetrics:
    investments = view.investments
    equity = [entry for entry in investments if entry.funding_type is FundingType.EQUITY]
    debt = [entry for entry in investments if entry.funding_type in DEBT_TYPES]

    avg_equity = (
        sum(entry.equity_percentage or 0 for entry in equity) / len(equity) if equity else 0
    )
    avg_interest = sum(entry.interest_rate or 0 for entry in debt) / len(debt) if debt else 0

    sector_counts = Counter(view.sector(entry) for entry in investments)
    top_sectors = [
        SectorCount(sector=sector, count=count)
        for sector, count in sector_counts.most_common(TOP_SECTORS_SIZE)
    ]
    return PerformanceMetrics(
        equity_vs_debt=EquityVsDebt(
            equity=sum(entry.amount for entry in equity),
            debt=sum(entry.amount for entry in debt),
            equity_count=len(equity),
            debt_count=len(debt),
        ),
        avg_equity_percentage=round(avg_equity, 2),
        avg_interest_rate=round(avg_interest, 2),
        top_sectors=top_sectors,
        diversification_score=calculate_diversification_score(view),
    )


def calculate_startup_breakdown(view: PortfolioView) -> list[StartupBreakdown]:
    grouped: dict[UUID, list[FundRequest]] = {}
    for entry in view.investments:
        grouped.setdefault(entry.startup_id, []).append(entry)

    breakdown: list[StartupBreakdown] = []
    for startup_id, investments in grouped.items():
        funding_types: list[FundingType] = []
        for entry in investments:
            if entry.funding_type not in funding_types:
                funding_types.append(entry.funding_type)
        breakdown.append(
            StartupBreakdown(
                startup_id=startup_id,
                startup=view.startups.get(startup_id),
                sector=view.sector(investments[0]),
                total_invested=sum(entry.amount for entry in investments),
                investments=investments,
                funding_types=funding_types,
                first_investment=investments[0].created_at,
                last_investment=investments[-1].created_at,
                investment_count=len(investments),
            )
        )
    return breakdown
