import pytest

from fundbridge.models.startup import (
    Projection,
    ProjectionMonth,
    ScoreComponents,
    StartupMetrics,
    Verdict,
)
from fundbridge.services.scoring.suggestions import generate_suggestions, verdict_for


def _projection(break_even_month: int | None, months: int = 12) -> Projection:
    return Projection(
        monthly=[ProjectionMonth(month=month, revenue=0, burn=0, profit=0) for month in range(1, months + 1)],
        break_even_month=break_even_month,
    )


@pytest.mark.parametrize(
    ("score", "verdict"),
    [
        (100, Verdict.VIABLE),
        (70, Verdict.VIABLE),
        (69, Verdict.CAUTION),
        (45, Verdict.CAUTION),
        (44, Verdict.RISKY),
        (0, Verdict.RISKY),
    ],
)
def test_verdict_thresholds(score, verdict):
    assert verdict_for(score) is verdict


def test_strong_startup_gets_headline_and_break_even_only():
    suggestions, verdict = generate_suggestions(
        ScoreComponents(market=27, unit=30, runway=20, comp=6, team=8),
        81,
        StartupMetrics(monthly_revenue=10_000, monthly_burn=5_000),
        _projection(1),
    )

    assert verdict is Verdict.VIABLE
    assert suggestions == [
        "✅ Strong potential — focus on execution and scaling",
        "✅ Projected break-even by month 1 — looking good!",
    ]


def test_risky_startup_triggers_every_rule_in_order():
    suggestions, verdict = generate_suggestions(
        ScoreComponents(market=5, unit=10, runway=3, comp=2, team=3),
        23,
        StartupMetrics(
            monthly_revenue=0,
            monthly_burn=1_000,
            runway_months=3,
            competition_level=9,
            team_experience_rating=3,
        ),
        _projection(None),
    )

    assert verdict is Verdict.RISKY
    assert suggestions == [
        "🚨 High risk — significant improvements needed for viability",
        "🔧 Improve unit economics: reduce CAC or increase LTV",
        "🎯 Market size appears small — consider adjacent opportunities",
        "💰 Revenue < burn rate — reduce costs or increase revenue urgently",
        "⏰ Runway <6 months — seek funding or cut costs immediately",
        "🏆 High competition — focus on strong differentiation",
        "👥 Consider strengthening team experience or advisors",
        "📈 No break-even projected within 12 months — review growth strategy",
    ]


def test_late_break_even_is_reported_plainly():
    suggestions, verdict = generate_suggestions(
        ScoreComponents(market=20, unit=20, runway=10, comp=6, team=7),
        63,
        StartupMetrics(monthly_revenue=5_000, monthly_burn=5_000),
        _projection(9),
    )

    assert verdict is Verdict.CAUTION
    assert suggestions[0] == "⚠️ Moderate potential — address key weaknesses before scaling"
    assert suggestions[-1] == "📊 Break-even projected by month 9"


def test_unreported_runway_does_not_trigger_runway_warning():
    suggestions, _ = generate_suggestions(
        ScoreComponents(market=20, unit=20, runway=10, comp=6, team=7),
        63,
        StartupMetrics(runway_months=None),
        _projection(1),
    )

    assert not any(entry.startswith("⏰") for entry in suggestions)


def test_zero_runway_triggers_runway_warning():
    suggestions, _ = generate_suggestions(
        ScoreComponents(market=20, unit=20, runway=0, comp=6, team=7),
        53,
        StartupMetrics(runway_months=0),
        _projection(1),
    )

    assert "⏰ Runway <6 months — seek funding or cut costs immediately" in suggestions


def test_missing_break_even_names_the_projection_horizon():
    suggestions, _ = generate_suggestions(
        ScoreComponents(market=20, unit=20, runway=10, comp=6, team=7),
        63,
        StartupMetrics(monthly_revenue=1_000, monthly_burn=500, competition_level=5, team_experience_rating=7),
        _projection(None, months=24),
    )

    assert suggestions[-1] == "📈 No break-even projected within 24 months — review growth strategy"
