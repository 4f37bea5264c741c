"""Fund request lifecycle transitions."""

from __future__ import annotations

from enum import Enum
from typing import Final

from fundbridge.models.fund_request import FundRequestStatus
from fundbridge.services.errors import InvalidStateTransition


class FundRequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE_PAYMENT = "complete_payment"


TRANSITIONS: Final[dict[tuple[FundRequestStatus, FundRequestAction], FundRequestStatus]] = {
    (FundRequestStatus.PENDING, FundRequestAction.APPROVE): FundRequestStatus.APPROVED,
    (FundRequestStatus.PENDING, FundRequestAction.REJECT): FundRequestStatus.REJECTED,
    (FundRequestStatus.APPROVED, FundRequestAction.COMPLETE_PAYMENT): FundRequestStatus.COMPLETED,
}


def required_status(action: FundRequestAction) -> FundRequestStatus:
    """Return the single status from which ``action`` is allowed."""
    for (source, candidate), _ in TRANSITIONS.items():
        if candidate is action:
            return source
    raise KeyError(action)  # pragma: no cover - every action has a source


def next_status(current: FundRequestStatus, action: FundRequestAction) -> FundRequestStatus:
    """Look up the target status, raising InvalidStateTransition when not allowed."""
    target = TRANSITIONS.get((current, action))
    if target is None:
        expected = required_status(action)
        raise InvalidStateTransition(
            f"Cannot {action.value.replace('_', ' ')} a fund request that is {current.value}; "
            f"it must be {expected.value}.",
            current=current.value,
            expected=expected.value,
        )
    return target
