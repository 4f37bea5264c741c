"""Domain models for startup funding requests."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, TypeAdapter, confloat, constr


class FundingType(str, Enum):
    EQUITY = "equity"
    DEBT = "debt"
    GRANT = "grant"
    VENTURE_DEBT = "venture_debt"


class FundRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    # Storable for records edited outside the service; no operation enters or leaves it.
    NEGOTIATING = "negotiating"
    COMPLETED = "completed"


class EquityTerms(BaseModel):
    funding_type: Literal["equity"] = "equity"
    equity_percentage: confloat(ge=0, le=100)  # type: ignore[valid-type]


class DebtTerms(BaseModel):
    funding_type: Literal["debt"] = "debt"
    interest_rate: confloat(ge=0)  # type: ignore[valid-type]
    loan_tenure: constr(strip_whitespace=True, min_length=1)  # type: ignore[valid-type]


class GrantTerms(BaseModel):
    funding_type: Literal["grant"] = "grant"


class VentureDebtTerms(BaseModel):
    funding_type: Literal["venture_debt"] = "venture_debt"


FundingTerms = Annotated[
    Union[EquityTerms, DebtTerms, GrantTerms, VentureDebtTerms],
    Field(discriminator="funding_type"),
]

_TERMS_ADAPTER: TypeAdapter[Any] = TypeAdapter(FundingTerms)


def terms_from_fields(
    funding_type: FundingType | str,
    *,
    equity_percentage: float | None = None,
    interest_rate: float | None = None,
    loan_tenure: str | None = None,
) -> EquityTerms | DebtTerms | GrantTerms | VentureDebtTerms:
    """Build the terms variant for a funding type from flat, nullable fields.

    Fields that do not belong to the variant are dropped. Raises
    ``pydantic.ValidationError`` when a required field is missing.
    """
    kind = FundingType(funding_type)
    payload: dict[str, Any] = {"funding_type": kind.value}
    if kind is FundingType.EQUITY:
        payload["equity_percentage"] = equity_percentage
    elif kind is FundingType.DEBT:
        payload["interest_rate"] = interest_rate
        payload["loan_tenure"] = loan_tenure
    return _TERMS_ADAPTER.validate_python(payload)


class PaymentProof(BaseModel):
    order_id: str
    payment_id: str
    signature: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FundRequestDraft(BaseModel):
    """Everything a startup supplies when asking an investor for funding."""

    startup_id: UUID
    investor_id: UUID
    amount: confloat(gt=0)  # type: ignore[valid-type]
    currency: str = "INR"
    terms: FundingTerms
    description: constr(strip_whitespace=True, min_length=1)  # type: ignore[valid-type]
    use_of_funds: str | None = None
    company_name: str | None = None
    domain: str | None = None
    year_of_establishment: int | None = None
    team_size: int | None = None
    previous_funding: float = 0
    funding_timeline: str | None = None
    milestone: str | None = None


class FundRequest(FundRequestDraft):
    """A funding ask and its position in the approval lifecycle.

    ``amount`` is in whole currency units, never minor units.
    """

    id: UUID = Field(default_factory=uuid4)
    status: FundRequestStatus = FundRequestStatus.PENDING
    rejection_reason: str | None = None
    payment: PaymentProof | None = None
    message_id: UUID | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def funding_type(self) -> FundingType:
        return FundingType(self.terms.funding_type)

    @property
    def equity_percentage(self) -> float | None:
        return self.terms.equity_percentage if isinstance(self.terms, EquityTerms) else None

    @property
    def interest_rate(self) -> float | None:
        return self.terms.interest_rate if isinstance(self.terms, DebtTerms) else None

    @property
    def loan_tenure(self) -> str | None:
        return self.terms.loan_tenure if isinstance(self.terms, DebtTerms) else None

    @classmethod
    def from_draft(cls, draft: FundRequestDraft) -> FundRequest:
        return cls(**draft.model_dump())
