"""Startup-side funding aggregates: statistics, trends, investor concentration.

Every function takes the fund requests to aggregate and performs no I/O. Only
``completed`` requests count as real investment; callers filter before calling.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from fundbridge.models.fund_request import FundingType, FundRequest, FundRequestStatus
from fundbridge.models.user import UserProfile

DAYS_PER_MONTH = 30
SECONDS_PER_MONTH = DAYS_PER_MONTH * 24 * 60 * 60
LOW_CONCENTRATION_HHI = 1500
MODERATE_CONCENTRATION_HHI = 2500
DEBT_TYPES = frozenset({FundingType.DEBT, FundingType.VENTURE_DEBT})


class Timeframe(str, Enum):
    ALL = "all"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class TimelinePoint(BaseModel):
    date: datetime
    amount: float
    funding_type: FundingType
    investor_id: UUID
    completed_at: datetime | None = None


class InvestmentStatistics(BaseModel):
    total_investment: float = 0
    total_investors: int = 0
    total_transactions: int = 0
    average_investment: float = 0
    equity_total: float = 0
    debt_total: float = 0
    funding_type_breakdown: dict[str, float] = Field(default_factory=dict)
    currency_breakdown: dict[str, float] = Field(default_factory=dict)
    monthly_investment: dict[str, float] = Field(default_factory=dict)
    investment_timeline: list[TimelinePoint] = Field(default_factory=list)
    largest_investment: float = 0
    smallest_investment: float = 0


class InvestmentTrends(BaseModel):
    monthly_average: float = 0
    average_growth_rate: float = 0
    investor_growth: int = 0
    time_span_months: float = 0


class InvestorSummary(BaseModel):
    investor_id: UUID
    investor: UserProfile | None = None
    total_invested: float
    investments: list[FundRequest]
    funding_types: list[FundingType]
    first_investment: datetime
    last_investment: datetime
    investment_count: int


class ConcentrationShare(BaseModel):
    investor_id: UUID
    amount: float
    percentage: float


class ConcentrationLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class ConcentrationReport(BaseModel):
    total_investment: float = 0
    total_investors: int = 0
    concentration: list[ConcentrationShare] = Field(default_factory=list)
    hhi: float = 0
    concentration_level: ConcentrationLevel = ConcentrationLevel.LOW


def only_completed(requests: Iterable[FundRequest]) -> list[FundRequest]:
    return [entry for entry in requests if entry.status is FundRequestStatus.COMPLETED]


def month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def subtract_months(moment: datetime, months: int) -> datetime:
    """Calendar-aware month subtraction, clamping the day to the target month."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def timeframe_start(timeframe: Timeframe, now: datetime) -> datetime | None:
    if timeframe is Timeframe.MONTH:
        return subtract_months(now, 1)
    if timeframe is Timeframe.QUARTER:
        return subtract_months(now, 3)
    if timeframe is Timeframe.YEAR:
        return subtract_months(now, 12)
    return None


def _accumulate(requests: Iterable[FundRequest], key) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for entry in requests:
        totals[key(entry)] += entry.amount
    return dict(totals)


def calculate_investment_statistics(requests: Sequence[FundRequest]) -> InvestmentStatistics:
    if not requests:
        return InvestmentStatistics()

    chronological = sorted(requests, key=lambda entry: entry.created_at)
    amounts = [entry.amount for entry in chronological]
    total = sum(amounts)
    return InvestmentStatistics(
        total_investment=total,
        total_investors=len({entry.investor_id for entry in chronological}),
        total_transactions=len(chronological),
        average_investment=total / len(chronological),
        equity_total=sum(e.amount for e in chronological if e.funding_type is FundingType.EQUITY),
        debt_total=sum(e.amount for e in chronological if e.funding_type in DEBT_TYPES),
        funding_type_breakdown=_accumulate(chronological, lambda e: e.funding_type.value),
        currency_breakdown=_accumulate(chronological, lambda e: e.currency),
        monthly_investment=_accumulate(chronological, lambda e: month_key(e.created_at)),
        investment_timeline=[
            TimelinePoint(
                date=entry.created_at,
                amount=entry.amount,
                funding_type=entry.funding_type,
                investor_id=entry.investor_id,
                completed_at=entry.completed_at,
            )
            for entry in chronological
        ],
        largest_investment=max(amounts),
        smallest_investment=min(amounts),
    )


def calculate_investment_trends(requests: Sequence[FundRequest]) -> InvestmentTrends:
    """Trends over the full completed history, independent of any timeframe filter."""
    if len(requests) < 2:
        return InvestmentTrends()

    chronological = sorted(requests, key=lambda entry: entry.created_at)
    span = chronological[-1].created_at - chronological[0].created_at
    months = span.total_seconds() / SECONDS_PER_MONTH
    total = sum(entry.amount for entry in chronological)

    growth_rates: list[float] = []
    cumulative = chronological[0].amount
    for entry in chronological[1:]:
        previous = cumulative
        cumulative += entry.amount
        if previous > 0:
            growth_rates.append((cumulative - previous) / previous * 100)

    return InvestmentTrends(
        monthly_average=total / months if months > 0 else total,
        average_growth_rate=round(sum(growth_rates) / len(growth_rates), 2) if growth_rates else 0,
        investor_growth=len({entry.investor_id for entry in chronological}),
        time_span_months=round(months, 1),
    )


def group_investors(
    requests: Sequence[FundRequest], profiles: dict[UUID, UserProfile] | None = None
) -> list[InvestorSummary]:
    """One summary per investor in first-seen order."""
    grouped: dict[UUID, list[FundRequest]] = {}
    for entry in requests:
        grouped.setdefault(entry.investor_id, []).append(entry)

    summaries: list[InvestorSummary] = []
    for investor_id, investments in grouped.items():
        funding_types: list[FundingType] = []
        for entry in investments:
            if entry.funding_type not in funding_types:
                funding_types.append(entry.funding_type)
        created = [entry.created_at for entry in investments]
        summaries.append(
            InvestorSummary(
                investor_id=investor_id,
                investor=(profiles or {}).get(investor_id),
                total_invested=sum(entry.amount for entry in investments),
                investments=investments,
                funding_types=funding_types,
                first_investment=min(created),
                last_investment=max(created),
                investment_count=len(investments),
            )
        )
    return summaries


def concentration_level(hhi: float) -> ConcentrationLevel:
    if hhi < LOW_CONCENTRATION_HHI:
        return ConcentrationLevel.LOW
    if hhi < MODERATE_CONCENTRATION_HHI:
        return ConcentrationLevel.MODERATE
    return ConcentrationLevel.HIGH


def calculate_concentration(requests: Sequence[FundRequest]) -> ConcentrationReport:
    """Herfindahl-Hirschman index over investor shares of total investment.

    Shares are percentages rounded to two decimals and the index squares the
    rounded shares, so a 50/50 split scores exactly 5000.
    """
    total = sum(entry.amount for entry in requests)
    amounts: dict[UUID, float] = defaultdict(float)
    for entry in requests:
        amounts[entry.investor_id] += entry.amount

    shares = sorted(
        (
            ConcentrationShare(
                investor_id=investor_id,
                amount=amount,
                percentage=round(amount / total * 100, 2) if total > 0 else 0,
            )
            for investor_id, amount in amounts.items()
        ),
        key=lambda share: share.amount,
        reverse=True,
    )
    hhi = round(sum(share.percentage**2 for share in shares), 2)
    return ConcentrationReport(
        total_investment=total,
        total_investors=len(shares),
        concentration=shares,
        hhi=hhi,
        concentration_level=concentration_level(hhi),
    )
