"""Investor-style commentary on a scored startup, backed by the OpenAI Responses API."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from openai import OpenAI
from openai import OpenAIError

from fundbridge.config import settings
from fundbridge.models.startup import Projection, ScoreBreakdown, StartupSubmission
from fundbridge.observability.metrics import metrics

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an experienced startup investor analyzing a new venture. "
    "Please provide a concise professional assessment."
)


class CommentaryClient(Protocol):
    """Minimal contract for a text generation backend."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        ...


class OpenAIResponseClient(CommentaryClient):
    """Thin wrapper around the official OpenAI Responses API."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required for commentary.")
        self._client = OpenAI(api_key=api_key)

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        response = self._client.responses.create(
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            input=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        return _extract_response_text(response)


def _extract_response_text(response: Any) -> str:
    """Normalize OpenAI responses across SDK versions."""
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    text_chunks: list[str] = []
    for item in getattr(response, "output", None) or []:
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                text_chunks.append(getattr(content, "text", ""))
    if text_chunks:
        return "".join(text_chunks).strip()
    raise ValueError("OpenAI response did not include text output.")


def _money(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"${value:,.0f}"


def render_commentary_prompt(
    submission: StartupSubmission, breakdown: ScoreBreakdown, projection: Projection
) -> str:
    founders = ", ".join(submission.founder_names) or "Not specified"
    break_even = (
        f"Month {projection.break_even_month}"
        if projection.break_even_month
        else f"None within {len(projection.monthly)} months"
    )
    runway = f"{submission.runway_months:g} months" if submission.runway_months is not None else "N/A"
    return (
        "STARTUP DETAILS:\n"
        f"- Name: {submission.name or 'Not specified'}\n"
        f"- Description: {submission.description or 'Not specified'}\n"
        f"- Founders: {founders}\n"
        f"- Revenue Model: {submission.revenue_model.value}\n"
        "\n"
        "FINANCIAL METRICS:\n"
        f"- Monthly Revenue: {_money(submission.monthly_revenue)}\n"
        f"- Monthly Burn: {_money(submission.monthly_burn)}\n"
        f"- CAC: {_money(submission.cac)}\n"
        f"- LTV: {_money(submission.ltv)}\n"
        f"- Runway: {runway}\n"
        "\n"
        "MARKET & TEAM:\n"
        f"- Market Size: {_money(submission.market_size_estimate_usd)}\n"
        f"- Team Experience: {submission.team_experience_rating}/10\n"
        f"- Competition Level: {submission.competition_level}/10\n"
        "\n"
        f"CALCULATED SCORE: {breakdown.total}/100\n"
        f"Break-even projection: {break_even}\n"
        "\n"
        "Please provide:\n"
        "1. A brief overall assessment (2-3 sentences)\n"
        "2. Top 3 strengths or concerns\n"
        "3. Key recommendation for next steps\n"
        "\n"
        "Keep response under 300 words, professional tone."
    )


def fallback_commentary(
    submission: StartupSubmission, breakdown: ScoreBreakdown, projection: Projection
) -> str:
    """Deterministic assessment used when no generator is configured or it fails."""
    cash_flow = (
        "Positive Cash Flow"
        if submission.monthly_revenue >= submission.monthly_burn
        else "Negative Cash Flow"
    )
    break_even = (
        f"Month {projection.break_even_month}"
        if projection.break_even_month
        else f"Beyond {len(projection.monthly)} months"
    )
    return (
        "**AI ANALYSIS TEMPORARILY UNAVAILABLE**\n"
        "\n"
        "Your startup has been scored using our algorithmic assessment, but personalized "
        "AI recommendations are temporarily unavailable.\n"
        "\n"
        "**Algorithmic Assessment:**\n"
        f"- **Score:** {breakdown.total}/100\n"
        f"- **Financial Health:** {cash_flow}\n"
        f"- **Break-even:** {break_even}\n"
    )


class CommentaryWriter:
    """Produces commentary text, never raising on upstream failures."""

    def __init__(
        self,
        *,
        client: CommentaryClient | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> None:
        self._client = client
        self._model = model or settings.commentary_model
        self._temperature = settings.commentary_temperature if temperature is None else temperature
        self._max_output_tokens = max_output_tokens or settings.commentary_max_output_tokens

    def write(
        self, submission: StartupSubmission, breakdown: ScoreBreakdown, projection: Projection
    ) -> str:
        client = self._ensure_client()
        if client is None:
            metrics.increment("commentary.fallback", tags={"reason": "unconfigured"})
            return fallback_commentary(submission, breakdown, projection)
        try:
            text = client.generate(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=render_commentary_prompt(submission, breakdown, projection),
                model=self._model,
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
            )
        except (OpenAIError, ValueError) as exc:
            metrics.increment("commentary.fallback", tags={"reason": "upstream_error"})
            logger.warning(
                "commentary.upstream_error",
                extra={"startup_name": submission.name, "error": str(exc), "model": self._model},
            )
            return fallback_commentary(submission, breakdown, projection)
        metrics.increment("commentary.generated", tags={"model": self._model})
        return text

    def _ensure_client(self) -> CommentaryClient | None:
        if self._client is None and settings.openai_api_key:
            self._client = OpenAIResponseClient(settings.openai_api_key)
        return self._client
