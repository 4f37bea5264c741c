"""Rule-based improvement suggestions and the viability verdict."""

from __future__ import annotations

from fundbridge.models.startup import Projection, ScoreComponents, StartupMetrics, Verdict

VIABLE_THRESHOLD = 70
CAUTION_THRESHOLD = 45
QUICK_BREAK_EVEN_MONTHS = 6

_HEADLINES = {
    Verdict.VIABLE: "✅ Strong potential — focus on execution and scaling",
    Verdict.CAUTION: "⚠️ Moderate potential — address key weaknesses before scaling",
    Verdict.RISKY: "🚨 High risk — significant improvements needed for viability",
}
MARKET_VALIDATION_FILLER = "📋 Consider conducting market validation and user research"


def verdict_for(total_score: int) -> Verdict:
    if total_score >= VIABLE_THRESHOLD:
        return Verdict.VIABLE
    if total_score >= CAUTION_THRESHOLD:
        return Verdict.CAUTION
    return Verdict.RISKY


def generate_suggestions(
    components: ScoreComponents,
    total_score: int,
    metrics: StartupMetrics,
    projection: Projection,
) -> tuple[list[str], Verdict]:
    """Evaluate the advisory rules in order and prepend the verdict headline."""
    suggestions: list[str] = []

    if components.unit < 15:
        suggestions.append("🔧 Improve unit economics: reduce CAC or increase LTV")
    if components.market < 10:
        suggestions.append("🎯 Market size appears small — consider adjacent opportunities")
    if metrics.monthly_revenue < metrics.monthly_burn:
        suggestions.append("💰 Revenue < burn rate — reduce costs or increase revenue urgently")
    if metrics.runway_months is not None and metrics.runway_months < 6:
        suggestions.append("⏰ Runway <6 months — seek funding or cut costs immediately")
    if metrics.competition_level >= 8:
        suggestions.append("🏆 High competition — focus on strong differentiation")
    if components.team < 6:
        suggestions.append("👥 Consider strengthening team experience or advisors")

    break_even = projection.break_even_month
    if break_even is None:
        suggestions.append(
            f"📈 No break-even projected within {len(projection.monthly)} months — review growth strategy"
        )
    elif break_even <= QUICK_BREAK_EVEN_MONTHS:
        suggestions.append(f"✅ Projected break-even by month {break_even} — looking good!")
    else:
        suggestions.append(f"📊 Break-even projected by month {break_even}")

    verdict = verdict_for(total_score)
    suggestions.insert(0, _HEADLINES[verdict])

    if len(suggestions) == 1:
        suggestions.append(MARKET_VALIDATION_FILLER)

    return suggestions, verdict
