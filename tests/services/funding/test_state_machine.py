import pytest

from fundbridge.models.fund_request import FundRequestStatus
from fundbridge.services.errors import InvalidStateTransition
from fundbridge.services.funding.state_machine import (
    FundRequestAction,
    next_status,
    required_status,
)


@pytest.mark.parametrize(
    ("current", "action", "target"),
    [
        (FundRequestStatus.PENDING, FundRequestAction.APPROVE, FundRequestStatus.APPROVED),
        (FundRequestStatus.PENDING, FundRequestAction.REJECT, FundRequestStatus.REJECTED),
        (FundRequestStatus.APPROVED, FundRequestAction.COMPLETE_PAYMENT, FundRequestStatus.COMPLETED),
    ],
)
def test_allowed_transitions(current, action, target):
    assert next_status(current, action) is target


@pytest.mark.parametrize(
    ("current", "action"),
    [
        (FundRequestStatus.APPROVED, FundRequestAction.APPROVE),
        (FundRequestStatus.REJECTED, FundRequestAction.APPROVE),
        (FundRequestStatus.COMPLETED, FundRequestAction.REJECT),
        (FundRequestStatus.PENDING, FundRequestAction.COMPLETE_PAYMENT),
        (FundRequestStatus.REJECTED, FundRequestAction.COMPLETE_PAYMENT),
        (FundRequestStatus.COMPLETED, FundRequestAction.COMPLETE_PAYMENT),
        (FundRequestStatus.NEGOTIATING, FundRequestAction.APPROVE),
    ],
)
def test_disallowed_transitions_report_current_and_expected(current, action):
    with pytest.raises(InvalidStateTransition) as exc_info:
        next_status(current, action)

    assert exc_info.value.current == current.value
    assert exc_info.value.expected == required_status(action).value
    assert exc_info.value.code == "409_INVALID_STATE_TRANSITION"


def test_required_status_per_action():
    assert required_status(FundRequestAction.APPROVE) is FundRequestStatus.PENDING
    assert required_status(FundRequestAction.REJECT) is FundRequestStatus.PENDING
    assert required_status(FundRequestAction.COMPLETE_PAYMENT) is FundRequestStatus.APPROVED
