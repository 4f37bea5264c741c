"""Fund request lifecycle: create, approve, reject, complete payment."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fundbridge.models.fund_request import (
    FundRequest,
    FundRequestDraft,
    FundRequestStatus,
    PaymentProof,
)
from fundbridge.models.user import UserProfile, UserRole
from fundbridge.observability.metrics import metrics
from fundbridge.services.errors import (
    AuthorizationError,
    FundBridgeError,
    InvalidStateTransition,
    NotFoundError,
    PaymentValidationFailed,
    ValidationError,
)
from fundbridge.services.funding.messaging import (
    ChatMessage,
    InMemoryMessagingSink,
    MessagingSink,
    format_fund_request_message,
)
from fundbridge.services.funding.payments import HmacPaymentVerifier, PaymentVerifier
from fundbridge.services.funding.repositories import FundRequestStore, get_fund_request_store
from fundbridge.services.funding.state_machine import FundRequestAction, next_status
from fundbridge.services.funding.users import UserDirectory, get_user_directory

logger = logging.getLogger(__name__)

# message_id writes race with status transitions; retry against the fresh status
MESSAGE_LINK_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FundRequestService:
    """Owns every fund request state change.

    Transitions are validated against the transition table, then written with a
    compare-and-swap on the status the caller observed, so each request is
    approved or rejected once and paid once even under concurrent callers.
    """

    def __init__(
        self,
        *,
        store: FundRequestStore | None = None,
        users: UserDirectory | None = None,
        verifier: PaymentVerifier | None = None,
        messaging: MessagingSink | None = None,
    ) -> None:
        self._store = store or get_fund_request_store()
        self._users = users or get_user_directory()
        self._verifier = verifier or HmacPaymentVerifier()
        self._messaging = messaging if messaging is not None else InMemoryMessagingSink()

    def create(self, draft: FundRequestDraft, requester_id: UUID) -> FundRequest:
        if requester_id != draft.startup_id:
            raise AuthorizationError("Only the requesting startup can create this fund request.")
        if draft.amount <= 0:
            raise ValidationError("amount must be greater than zero.")
        if not draft.description.strip():
            raise ValidationError("description is required.")

        startup = self._users.get(draft.startup_id)
        investor = self._users.get(draft.investor_id)
        if startup is None or investor is None:
            raise NotFoundError("Startup or investor not found.")
        if startup.role is not UserRole.STARTUP:
            raise AuthorizationError("Only startups can create fund requests.")
        if investor.role is not UserRole.INVESTOR:
            raise AuthorizationError("Fund requests can only be sent to investors.")

        request = self._store.create(FundRequest.from_draft(draft))
        metrics.increment(
            "fund_requests.created", tags={"funding_type": request.funding_type.value}
        )
        logger.info(
            "fund_requests.created",
            extra={
                "fund_request_id": str(request.id),
                "startup_id": str(request.startup_id),
                "investor_id": str(request.investor_id),
                "amount": request.amount,
                "funding_type": request.funding_type.value,
            },
        )
        return request

    def get(self, request_id: UUID) -> FundRequest:
        request = self._store.get(request_id)
        if request is None:
            raise NotFoundError("Fund request not found.")
        return request

    def list_for_user(
        self, user_id: UUID, *, status: FundRequestStatus | None = None
    ) -> list[FundRequest]:
        return self._store.list_for_user(user_id, status=status)

    def approve(self, request_id: UUID, actor_id: UUID) -> FundRequest:
        now = _utcnow()
        return self._transition(
            request_id,
            actor_id,
            FundRequestAction.APPROVE,
            {"approved_at": now, "updated_at": now},
        )

    def reject(self, request_id: UUID, actor_id: UUID, reason: str | None = None) -> FundRequest:
        now = _utcnow()
        return self._transition(
            request_id,
            actor_id,
            FundRequestAction.REJECT,
            {"rejection_reason": reason or "", "rejected_at": now, "updated_at": now},
        )

    def complete_payment(
        self, request_id: UUID, actor_id: UUID, proof: PaymentProof
    ) -> FundRequest:
        now = _utcnow()
        return self._transition(
            request_id,
            actor_id,
            FundRequestAction.COMPLETE_PAYMENT,
            {"payment": proof, "completed_at": now, "updated_at": now},
            proof=proof,
        )

    def send_as_message(
        self, request_id: UUID, sender_id: UUID, receiver_id: UUID
    ) -> tuple[FundRequest, ChatMessage | None]:
        """Echo the request into chat; delivery failures never touch request state."""
        request = self.get(request_id)
        if sender_id not in (request.startup_id, request.investor_id):
            raise AuthorizationError("Only a party to the fund request can share it.")

        message = ChatMessage(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=format_fund_request_message(request),
            fund_request_id=request.id,
        )
        try:
            self._messaging.publish(message)
        except Exception as exc:  # noqa: BLE001 - sink is fire-and-forget
            metrics.increment("fund_requests.message.failed")
            logger.warning(
                "fund_requests.message.failed",
                extra={"fund_request_id": str(request.id), "error": str(exc)},
            )
            return request, None

        for _ in range(MESSAGE_LINK_ATTEMPTS):
            updated = self._store.update(
                request.id,
                {"message_id": message.id, "updated_at": _utcnow()},
                expected_status=request.status,
            )
            if updated is not None:
                request = updated
                break
            request = self.get(request.id)
        else:
            logger.warning(
                "fund_requests.message.unlinked",
                extra={"fund_request_id": str(request.id), "message_id": str(message.id)},
            )
        metrics.increment("fund_requests.message.sent")
        logger.info(
            "fund_requests.message.sent",
            extra={"fund_request_id": str(request.id), "message_id": str(message.id)},
        )
        return request, message

    def _transition(
        self,
        request_id: UUID,
        actor_id: UUID,
        action: FundRequestAction,
        changes: dict[str, Any],
        *,
        proof: PaymentProof | None = None,
    ) -> FundRequest:
        tags = {"action": action.value}
        try:
            request = self.get(request_id)
            self._authorize_investor(request, actor_id)
            target = next_status(request.status, action)
            if proof is not None and not self._verifier.verify(
                proof.order_id, proof.payment_id, proof.signature
            ):
                logger.warning(
                    "fund_requests.payment.invalid_signature",
                    extra={"fund_request_id": str(request.id), "order_id": proof.order_id},
                )
                raise PaymentValidationFailed("Payment signature verification failed.")

            updated = self._store.update(
                request.id, {**changes, "status": target}, expected_status=request.status
            )
            if updated is None:
                observed = self._store.get(request.id)
                if observed is None:
                    raise NotFoundError("Fund request not found.")
                logger.warning(
                    "fund_requests.transition.lost_race",
                    extra={
                        "fund_request_id": str(request.id),
                        "action": action.value,
                        "observed": observed.status.value,
                    },
                )
                raise InvalidStateTransition(
                    f"Fund request is already {observed.status.value}.",
                    current=observed.status.value,
                    expected=request.status.value,
                )
        except FundBridgeError as exc:
            metrics.increment("fund_requests.transition.errors", tags={**tags, "code": exc.code})
            raise

        metrics.increment("fund_requests.transition", tags={**tags, "status": target.value})
        logger.info(
            f"fund_requests.{target.value}",
            extra={
                "fund_request_id": str(updated.id),
                "investor_id": str(actor_id),
                "from_status": request.status.value,
                "to_status": target.value,
            },
        )
        return updated

    def _authorize_investor(self, request: FundRequest, actor_id: UUID) -> UserProfile:
        if actor_id != request.investor_id:
            raise AuthorizationError("Only the addressed investor can act on this fund request.")
        actor = self._users.get(actor_id)
        if actor is None or actor.role is not UserRole.INVESTOR:
            raise AuthorizationError("Only investors can act on fund requests.")
        return actor


_SERVICE_INSTANCE: FundRequestService | None = None


def get_fund_request_service() -> FundRequestService:
    """Singleton accessor used by API routes."""
    global _SERVICE_INSTANCE  # noqa: PLW0603
    if _SERVICE_INSTANCE is None:
        _SERVICE_INSTANCE = FundRequestService()
    return _SERVICE_INSTANCE
