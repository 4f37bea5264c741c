"""SQLModel mapping for stored fund requests."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Float, Integer, String, Text, Uuid
from sqlmodel import Field, SQLModel

from fundbridge.models.fund_request import FundRequest, PaymentProof, terms_from_fields


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class FundRequestRecord(SQLModel, table=True):
    """ORM model for persisted FundRequest rows; terms are flattened into columns."""

    __tablename__ = "fund_requests"
    __table_args__ = (
        sa.Index("ix_fund_requests_startup_investor", "startup_id", "investor_id", "created_at"),
        sa.Index("ix_fund_requests_status", "status", "created_at"),
        sa.Index("ix_fund_requests_startup_status", "startup_id", "status"),
        sa.Index("ix_fund_requests_investor_status", "investor_id", "status"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    startup_id: UUID = Field(sa_column=Column(Uuid(as_uuid=True), nullable=False))
    investor_id: UUID = Field(sa_column=Column(Uuid(as_uuid=True), nullable=False))
    amount: float = Field(sa_column=Column(Float, nullable=False))
    currency: str = Field(sa_column=Column(String(length=8), nullable=False))
    funding_type: str = Field(sa_column=Column(String(length=32), nullable=False))
    equity_percentage: float | None = Field(default=None, sa_column=Column(Float, nullable=True))
    interest_rate: float | None = Field(default=None, sa_column=Column(Float, nullable=True))
    loan_tenure: str | None = Field(default=None, sa_column=Column(String(length=64), nullable=True))
    description: str = Field(sa_column=Column(Text, nullable=False))
    use_of_funds: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    company_name: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    domain: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    year_of_establishment: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    team_size: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    previous_funding: float = Field(default=0, sa_column=Column(Float, nullable=False))
    funding_timeline: str | None = Field(default=None, sa_column=Column(String(length=64), nullable=True))
    milestone: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(sa_column=Column(String(length=32), nullable=False))
    rejection_reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    payment_order_id: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    payment_id: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    payment_signature: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    message_id: UUID | None = Field(default=None, sa_column=Column(Uuid(as_uuid=True), nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    approved_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    rejected_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))

    @classmethod
    def from_fund_request(cls, request: FundRequest) -> FundRequestRecord:
        """Convert a domain FundRequest into a persistence row."""
        payment = request.payment
        return cls(
            id=request.id,
            startup_id=request.startup_id,
            investor_id=request.investor_id,
            amount=request.amount,
            currency=request.currency,
            funding_type=request.funding_type.value,
            equity_percentage=request.equity_percentage,
            interest_rate=request.interest_rate,
            loan_tenure=request.loan_tenure,
            description=request.description,
            use_of_funds=request.use_of_funds,
            company_name=request.company_name,
            domain=request.domain,
            year_of_establishment=request.year_of_establishment,
            team_size=request.team_size,
            previous_funding=request.previous_funding,
            funding_timeline=request.funding_timeline,
            milestone=request.milestone,
            status=request.status.value,
            rejection_reason=request.rejection_reason,
            payment_order_id=payment.order_id if payment else None,
            payment_id=payment.payment_id if payment else None,
            payment_signature=payment.signature if payment else None,
            message_id=request.message_id,
            created_at=request.created_at,
            updated_at=request.updated_at,
            approved_at=request.approved_at,
            rejected_at=request.rejected_at,
            completed_at=request.completed_at,
        )

    def to_fund_request(self) -> FundRequest:
        """Hydrate a FundRequest, rebuilding the terms variant from its columns."""
        payment = None
        if self.payment_order_id and self.payment_id and self.payment_signature:
            payment = PaymentProof(
                order_id=self.payment_order_id,
                payment_id=self.payment_id,
                signature=self.payment_signature,
            )
        return FundRequest(
            id=self.id,
            startup_id=self.startup_id,
            investor_id=self.investor_id,
            amount=self.amount,
            currency=self.currency,
            terms=terms_from_fields(
                self.funding_type,
                equity_percentage=self.equity_percentage,
                interest_rate=self.interest_rate,
                loan_tenure=self.loan_tenure,
            ),
            description=self.description,
            use_of_funds=self.use_of_funds,
            company_name=self.company_name,
            domain=self.domain,
            year_of_establishment=self.year_of_establishment,
            team_size=self.team_size,
            previous_funding=self.previous_funding,
            funding_timeline=self.funding_timeline,
            milestone=self.milestone,
            status=self.status,
            rejection_reason=self.rejection_reason,
            payment=payment,
            message_id=self.message_id,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            approved_at=_as_utc(self.approved_at),
            rejected_at=_as_utc(self.rejected_at),
            completed_at=_as_utc(self.completed_at),
        )


def column_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Translate FundRequest field changes into FundRequestRecord column values."""
    values: dict[str, Any] = {}
    for field, value in changes.items():
        if field == "payment":
            proof: PaymentProof | None = value
            values["payment_order_id"] = proof.order_id if proof else None
            values["payment_id"] = proof.payment_id if proof else None
            values["payment_signature"] = proof.signature if proof else None
        elif field == "status":
            values["status"] = getattr(value, "value", value)
        elif field == "terms":
            raise ValueError("Funding terms are immutable once a request is created.")
        else:
            values[field] = value
    return values
