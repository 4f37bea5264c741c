"""Month-by-month profit/loss projection with break-even detection."""

from __future__ import annotations

from fundbridge.models.startup import Projection, ProjectionMonth
from fundbridge.services.scoring.scorer import round_half_up

DEFAULT_MONTHS = 12


def project_profit_loss(
    monthly_revenue: float = 0,
    monthly_burn: float = 0,
    growth_rate_pct: float | None = 5,
    months: int = DEFAULT_MONTHS,
) -> Projection:
    """Compound revenue monthly at ``growth_rate_pct`` while burn stays flat.

    The break-even month is the first month whose cumulative (rounded) profit
    is non-negative, or ``None`` when that never happens within ``months``.
    """
    growth = (growth_rate_pct or 0) / 100
    revenue = float(monthly_revenue or 0)
    burn = float(monthly_burn or 0)

    monthly: list[ProjectionMonth] = []
    for month in range(1, months + 1):
        monthly.append(
            ProjectionMonth(
                month=month,
                revenue=round_half_up(revenue),
                burn=round_half_up(burn),
                profit=round_half_up(revenue - burn),
            )
        )
        revenue *= 1 + growth

    cumulative = 0
    break_even_month: int | None = None
    for period in monthly:
        cumulative += period.profit
        if cumulative >= 0:
            break_even_month = period.month
            break

    return Projection(monthly=monthly, break_even_month=break_even_month)
