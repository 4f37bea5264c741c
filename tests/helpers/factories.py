from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from fundbridge.models.fund_request import (
    FundRequest,
    FundRequestDraft,
    FundRequestStatus,
    terms_from_fields,
)
from fundbridge.models.user import UserProfile

PAYMENT_SECRET = "test-payment-secret"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_draft(startup_id: UUID, investor_id: UUID, **overrides: Any) -> FundRequestDraft:
    funding_type = overrides.pop("funding_type", "equity")
    terms = terms_from_fields(
        funding_type,
        equity_percentage=overrides.pop("equity_percentage", 10.0),
        interest_rate=overrides.pop("interest_rate", 12.0),
        loan_tenure=overrides.pop("loan_tenure", "24 months"),
    )
    payload: dict[str, Any] = {
        "startup_id": startup_id,
        "investor_id": investor_id,
        "amount": 500_000,
        "terms": terms,
        "description": "Seed round",
    }
    payload.update(overrides)
    return FundRequestDraft(**payload)


def make_request(
    startup_id: UUID,
    investor_id: UUID,
    *,
    amount: float = 100_000,
    days: float = 0,
    status: FundRequestStatus = FundRequestStatus.COMPLETED,
    **overrides: Any,
) -> FundRequest:
    """A stored fund request created ``days`` after BASE_TIME."""
    draft = make_draft(startup_id, investor_id, amount=amount, **overrides)
    created_at = BASE_TIME + timedelta(days=days)
    return FundRequest(
        **draft.model_dump(),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


def auth_headers(user: UserProfile) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}
