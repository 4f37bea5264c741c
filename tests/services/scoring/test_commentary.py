from types import SimpleNamespace

import openai
import pytest

from fundbridge.models.startup import StartupSubmission
from fundbridge.services.scoring import commentary as commentary_module
from fundbridge.services.scoring.analysis import evaluate_submission
from fundbridge.services.scoring.commentary import (
    CommentaryWriter,
    _extract_response_text,
    fallback_commentary,
    render_commentary_prompt,
)
from tests.helpers.metrics_stub import StubMetrics


class StubCommentaryClient:
    """Deterministic stand-in for the OpenAI client."""

    def __init__(self, response: str | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, object]] = []

    def generate(self, **kwargs: object) -> str:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response or ""


def _submission(**overrides) -> StartupSubmission:
    payload = {
        "name": "Acme Robotics",
        "description": "Warehouse automation",
        "founder_names": ["Ada", "Grace"],
        "market_size_estimate_usd": 5_000_000_000,
        "cac": 200,
        "ltv": 900,
        "runway_months": 14,
        "monthly_burn": 40_000,
        "monthly_revenue": 15_000,
        "competition_level": 6,
        "team_experience_rating": 7,
    }
    payload.update(overrides)
    return StartupSubmission(**payload)


def test_prompt_includes_metrics_and_score():
    submission = _submission()
    _, breakdown, projection = evaluate_submission(submission)

    prompt = render_commentary_prompt(submission, breakdown, projection)

    assert "- Name: Acme Robotics" in prompt
    assert "- Founders: Ada, Grace" in prompt
    assert "- Monthly Burn: $40,000" in prompt
    assert f"CALCULATED SCORE: {breakdown.total}/100" in prompt


def test_writer_returns_generated_text(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(commentary_module, "metrics", stub_metrics)
    client = StubCommentaryClient(response="Solid team, thin margins.")
    submission = _submission()
    _, breakdown, projection = evaluate_submission(submission)

    text = CommentaryWriter(client=client, model="test-model", temperature=0.2).write(
        submission, breakdown, projection
    )

    assert text == "Solid team, thin margins."
    assert client.calls[0]["model"] == "test-model"
    assert client.calls[0]["temperature"] == 0.2
    assert stub_metrics.increment_calls[-1]["metric"] == "commentary.generated"


def test_writer_falls_back_when_upstream_fails(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(commentary_module, "metrics", stub_metrics)
    client = StubCommentaryClient(error=openai.OpenAIError("upstream down"))
    submission = _submission()
    _, breakdown, projection = evaluate_submission(submission)

    text = CommentaryWriter(client=client).write(submission, breakdown, projection)

    assert text.startswith("**AI ANALYSIS TEMPORARILY UNAVAILABLE**")
    assert f"- **Score:** {breakdown.total}/100" in text
    assert stub_metrics.increment_calls[-1]["tags"] == {"reason": "upstream_error"}


def test_writer_falls_back_when_unconfigured(monkeypatch):
    monkeypatch.setattr(commentary_module.settings, "openai_api_key", None)
    submission = _submission()
    _, breakdown, projection = evaluate_submission(submission)

    text = CommentaryWriter().write(submission, breakdown, projection)

    assert text == fallback_commentary(submission, breakdown, projection)


def test_fallback_reports_cash_flow_and_break_even():
    positive = _submission(monthly_revenue=50_000, monthly_burn=10_000)
    _, breakdown, projection = evaluate_submission(positive)
    text = fallback_commentary(positive, breakdown, projection)
    assert "Positive Cash Flow" in text
    assert "Month 1" in text

    negative = _submission(monthly_revenue=1_000, monthly_burn=50_000, expected_monthly_growth_pct=0)
    _, breakdown, projection = evaluate_submission(negative)
    text = fallback_commentary(negative, breakdown, projection)
    assert "Negative Cash Flow" in text
    assert "Beyond 12 months" in text


def test_extract_response_text_reads_output_chunks():
    response = SimpleNamespace(
        output_text=None,
        output=[SimpleNamespace(content=[SimpleNamespace(type="output_text", text=" Looks good ")])],
    )
    assert _extract_response_text(response) == "Looks good"


def test_extract_response_text_rejects_empty_response():
    with pytest.raises(ValueError):
        _extract_response_text(SimpleNamespace(output_text="", output=[]))


def test_break_even_text_follows_projection_horizon():
    losing = _submission(monthly_revenue=1_000, monthly_burn=50_000, expected_monthly_growth_pct=0)
    _, breakdown, projection = evaluate_submission(losing, months=6)

    assert "Beyond 6 months" in fallback_commentary(losing, breakdown, projection)
    assert "None within 6 months" in render_commentary_prompt(losing, breakdown, projection)
