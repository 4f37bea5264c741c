"""API endpoints for the fund request lifecycle."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from fundbridge.api.deps import get_current_user, raise_api_error
from fundbridge.models.fund_request import (
    FundingType,
    FundRequest,
    FundRequestDraft,
    FundRequestStatus,
    PaymentProof,
    terms_from_fields,
)
from fundbridge.models.user import UserProfile, UserRole
from fundbridge.services.errors import AuthorizationError, FundBridgeError, ValidationError
from fundbridge.services.funding.messaging import ChatMessage
from fundbridge.services.funding.service import FundRequestService, get_fund_request_service

router = APIRouter()
logger = logging.getLogger(__name__)


class FundRequestCreate(BaseModel):
    """Flat request body; terms are rebuilt from ``funding_type``."""

    investor_id: UUID
    startup_id: UUID | None = Field(default=None, description="Defaults to the caller.")
    amount: float
    currency: str = "INR"
    funding_type: FundingType
    equity_percentage: float | None = None
    interest_rate: float | None = None
    loan_tenure: str | None = None
    description: str = ""
    use_of_funds: str | None = None
    company_name: str | None = None
    domain: str | None = None
    year_of_establishment: int | None = None
    team_size: int | None = None
    previous_funding: float = 0
    funding_timeline: str | None = None
    milestone: str | None = None

    def to_draft(self, requester_id: UUID) -> FundRequestDraft:
        try:
            terms = terms_from_fields(
                self.funding_type,
                equity_percentage=self.equity_percentage,
                interest_rate=self.interest_rate,
                loan_tenure=self.loan_tenure,
            )
            return FundRequestDraft(
                startup_id=self.startup_id or requester_id,
                terms=terms,
                **self.model_dump(
                    exclude={
                        "startup_id",
                        "funding_type",
                        "equity_percentage",
                        "interest_rate",
                        "loan_tenure",
                    }
                ),
            )
        except PydanticValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
            raise ValidationError(f"Invalid fund request fields: {fields}.") from exc


class RejectBody(BaseModel):
    reason: str | None = None


class ShareBody(BaseModel):
    receiver_id: UUID


class ShareResponse(BaseModel):
    fund_request: FundRequest
    message: ChatMessage | None = None


@router.post("/fund-requests", response_model=FundRequest, status_code=status.HTTP_201_CREATED)
def create_fund_request(
    payload: FundRequestCreate,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> FundRequest:
    try:
        return service.create(payload.to_draft(user.id), user.id)
    except FundBridgeError as exc:
        raise_api_error(exc, "fund_requests.api_error", user_id=user.id, investor_id=payload.investor_id)


@router.get("/fund-requests", response_model=list[FundRequest])
def list_fund_requests(
    status_filter: FundRequestStatus | None = Query(None, alias="status"),
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> list[FundRequest]:
    """Requests the caller sent or received, newest first."""
    return service.list_for_user(user.id, status=status_filter)


@router.get("/fund-requests/{request_id}", response_model=FundRequest)
def get_fund_request(
    request_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> FundRequest:
    try:
        request = service.get(request_id)
        if user.role is not UserRole.ADMIN and user.id not in (request.startup_id, request.investor_id):
            raise AuthorizationError("Not authorized to view this fund request.")
        return request
    except FundBridgeError as exc:
        raise_api_error(exc, "fund_requests.api_error", fund_request_id=request_id, user_id=user.id)


@router.post("/fund-requests/{request_id}/approve", response_model=FundRequest)
def approve_fund_request(
    request_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> FundRequest:
    try:
        return service.approve(request_id, user.id)
    except FundBridgeError as exc:
        raise_api_error(exc, "fund_requests.api_error", fund_request_id=request_id, user_id=user.id)


@router.post("/fund-requests/{request_id}/reject", response_model=FundRequest)
def reject_fund_request(
    request_id: UUID,
    payload: RejectBody | None = None,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> FundRequest:
    try:
        return service.reject(request_id, user.id, payload.reason if payload else None)
    except FundBridgeError as exc:
        raise_api_error(exc, "fund_requests.api_error", fund_request_id=request_id, user_id=user.id)


@router.post("/fund-requests/{request_id}/complete", response_model=FundRequest)
def complete_fund_request(
    request_id: UUID,
    proof: PaymentProof,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> FundRequest:
    try:
        return service.complete_payment(request_id, user.id, proof)
    except FundBridgeError as exc:
        raise_api_error(
            exc,
            "fund_requests.api_error",
            fund_request_id=request_id,
            user_id=user.id,
            order_id=proof.order_id,
        )


@router.post(
    "/fund-requests/{request_id}/message",
    response_model=ShareResponse,
    status_code=status.HTTP_201_CREATED,
)
def share_fund_request(
    request_id: UUID,
    payload: ShareBody,
    user: UserProfile = Depends(get_current_user),
    service: FundRequestService = Depends(get_fund_request_service),
) -> ShareResponse:
    """Echo the request into the chat with ``receiver_id``."""
    try:
        request, message = service.send_as_message(request_id, user.id, payload.receiver_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "fund_requests.api_error", fund_request_id=request_id, user_id=user.id)
    return ShareResponse(fund_request=request, message=message)
