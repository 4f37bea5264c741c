"""Weighted startup viability scoring.

Five components add up to a 0-100 score:

    market   0-30  log10 of the addressable market
    unit     0-30  LTV / CAC ratio, 1x -> 10 points, 5x -> 30 points
    runway   0-20  cash-flow positive, or months of runway against an 18 month target
    comp     0-10  inverse of the competition level
    team     0-10  team experience rating

The total is summed from the unrounded components and rounded once, while the
exposed components are rounded individually, so the displayed parts can be one
point off the total.
"""

from __future__ import annotations

import math

from fundbridge.models.startup import ScoreBreakdown, ScoreComponents, StartupMetrics

MARKET_MAX = 30.0
UNIT_MAX = 30.0
RUNWAY_MAX = 20.0
COMPETITION_MAX = 10.0
TEAM_MAX = 10.0
SAFE_RUNWAY_MONTHS = 18.0
NO_BURN_RUNWAY_SCORE = 10.0
DEFAULT_MIDPOINT = 5


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_market_size(market_usd: float | None) -> float:
    if not market_usd or market_usd <= 0:
        return 0.0
    return clamp(math.log10(market_usd + 1) / 10 * MARKET_MAX, 0, MARKET_MAX)


def score_unit_economics(cac: float | None, ltv: float | None) -> float:
    if not cac or not ltv or cac <= 0:
        return 0.0
    ratio = ltv / cac
    return clamp(((ratio - 1) / 4) * UNIT_MAX + 10, 0, UNIT_MAX)


def score_runway_and_burn(
    runway_months: float | None, monthly_burn: float | None, monthly_revenue: float | None
) -> float:
    if not monthly_burn:
        # nothing burned is treated as cash-flow neutral
        return NO_BURN_RUNWAY_SCORE
    if (monthly_revenue or 0) >= monthly_burn:
        return RUNWAY_MAX
    return clamp(((runway_months or 0) / SAFE_RUNWAY_MONTHS) * RUNWAY_MAX, 0, RUNWAY_MAX)


def score_competition(competition_level: float) -> float:
    return clamp((11 - competition_level) / 10 * COMPETITION_MAX, 0, COMPETITION_MAX)


def score_team(team_rating: float) -> float:
    return clamp((team_rating / 10) * TEAM_MAX, 0, TEAM_MAX)


def compute_final_score(metrics: StartupMetrics) -> ScoreBreakdown:
    """Score a startup; pure and deterministic."""
    raw = {
        "market": score_market_size(metrics.market_size_estimate_usd),
        "unit": score_unit_economics(metrics.cac, metrics.ltv),
        "runway": score_runway_and_burn(
            metrics.runway_months or 0,
            metrics.monthly_burn or 0,
            metrics.monthly_revenue or 0,
        ),
        "comp": score_competition(metrics.competition_level or DEFAULT_MIDPOINT),
        "team": score_team(metrics.team_experience_rating or DEFAULT_MIDPOINT),
    }
    total = round_half_up(clamp(sum(raw.values()), 0, 100))
    components = ScoreComponents(**{key: round_half_up(value) for key, value in raw.items()})
    return ScoreBreakdown(components=components, total=total)
