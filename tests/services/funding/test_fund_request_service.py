from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest

from fundbridge.models.fund_request import FundRequestStatus, PaymentProof
from fundbridge.services.errors import (
    AuthorizationError,
    InvalidStateTransition,
    NotFoundError,
    PaymentValidationFailed,
)
from fundbridge.services.funding import service as service_module
from fundbridge.services.funding.messaging import InMemoryMessagingSink
from fundbridge.services.funding.payments import HmacPaymentVerifier, sign_payment
from fundbridge.services.funding.repositories import InMemoryFundRequestStore
from fundbridge.services.funding.service import FundRequestService
from fundbridge.services.funding.users import InMemoryUserDirectory
from tests.helpers.factories import PAYMENT_SECRET, make_draft
from tests.helpers.metrics_stub import StubMetrics


class RacingStore(InMemoryFundRequestStore):
    """Lets another writer move the request to ``winner`` right before the next swap."""

    def __init__(self) -> None:
        super().__init__()
        self.winner: FundRequestStatus | None = None

    def update(self, request_id, changes, *, expected_status):
        if self.winner is not None:
            winner, self.winner = self.winner, None
            super().update(request_id, {"status": winner}, expected_status=expected_status)
        return super().update(request_id, changes, expected_status=expected_status)


class BrokenSink:
    def publish(self, message) -> None:
        raise ConnectionError("chat service unavailable")


@pytest.fixture
def stub_metrics(monkeypatch):
    stub = StubMetrics()
    monkeypatch.setattr(service_module, "metrics", stub)
    return stub


def _service(users, *, store=None, messaging=None) -> FundRequestService:
    return FundRequestService(
        store=store or InMemoryFundRequestStore(),
        users=users,
        verifier=HmacPaymentVerifier(secret=PAYMENT_SECRET),
        messaging=messaging if messaging is not None else InMemoryMessagingSink(),
    )


def _proof(order_id: str = "order_1", payment_id: str = "pay_1") -> PaymentProof:
    return PaymentProof(
        order_id=order_id,
        payment_id=payment_id,
        signature=sign_payment(PAYMENT_SECRET, order_id, payment_id),
    )


@pytest.fixture
def users(startup_user, investor_user, other_investor) -> InMemoryUserDirectory:
    return InMemoryUserDirectory([startup_user, investor_user, other_investor])


def test_create_starts_pending(users, startup_user, investor_user, stub_metrics):
    service = _service(users)

    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    assert request.status is FundRequestStatus.PENDING
    assert request.equity_percentage == 10.0
    assert service.get(request.id) == request
    assert stub_metrics.increment_calls[-1]["metric"] == "fund_requests.created"


def test_create_requires_requester_to_be_the_startup(users, startup_user, investor_user):
    service = _service(users)

    with pytest.raises(AuthorizationError):
        service.create(make_draft(startup_user.id, investor_user.id), investor_user.id)


def test_create_rejects_non_investor_target(users, startup_user):
    service = _service(users)
    other_startup = startup_user.model_copy(update={"id": uuid4()})
    users.add(other_startup)

    with pytest.raises(AuthorizationError):
        service.create(make_draft(startup_user.id, other_startup.id), startup_user.id)


def test_create_rejects_investor_as_requester(users, investor_user, other_investor):
    service = _service(users)

    with pytest.raises(AuthorizationError):
        service.create(make_draft(investor_user.id, other_investor.id), investor_user.id)


def test_create_rejects_unknown_users(users, startup_user):
    service = _service(users)

    with pytest.raises(NotFoundError):
        service.create(make_draft(startup_user.id, uuid4()), startup_user.id)


def test_approve_then_complete_payment(users, startup_user, investor_user, stub_metrics):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    approved = service.approve(request.id, investor_user.id)
    assert approved.status is FundRequestStatus.APPROVED
    assert approved.approved_at is not None

    completed = service.complete_payment(request.id, investor_user.id, _proof())
    assert completed.status is FundRequestStatus.COMPLETED
    assert completed.completed_at is not None
    assert completed.payment == _proof()

    transitions = [tags["status"] for tags in stub_metrics.tags_for("fund_requests.transition")]
    assert transitions == ["approved", "completed"]


def test_only_addressed_investor_can_act(users, startup_user, investor_user, other_investor):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    with pytest.raises(AuthorizationError):
        service.approve(request.id, other_investor.id)
    with pytest.raises(AuthorizationError):
        service.reject(request.id, startup_user.id)

    assert service.get(request.id).status is FundRequestStatus.PENDING


def test_approve_twice_is_invalid(users, startup_user, investor_user, stub_metrics):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    service.approve(request.id, investor_user.id)

    with pytest.raises(InvalidStateTransition) as exc_info:
        service.approve(request.id, investor_user.id)

    assert exc_info.value.current == "approved"
    assert stub_metrics.increment_calls[-1]["metric"] == "fund_requests.transition.errors"
    assert stub_metrics.increment_calls[-1]["tags"]["code"] == "409_INVALID_STATE_TRANSITION"


def test_reject_records_reason(users, startup_user, investor_user):
    service = _service(users)
    first = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    second = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    rejected = service.reject(first.id, investor_user.id, "Too early")
    silent = service.reject(second.id, investor_user.id)

    assert rejected.status is FundRequestStatus.REJECTED
    assert rejected.rejection_reason == "Too early"
    assert rejected.rejected_at is not None
    assert silent.rejection_reason == ""


def test_rejected_request_cannot_be_paid(users, startup_user, investor_user):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    service.reject(request.id, investor_user.id)

    with pytest.raises(InvalidStateTransition) as exc_info:
        service.complete_payment(request.id, investor_user.id, _proof())

    assert exc_info.value.current == "rejected"
    assert exc_info.value.expected == "approved"


def test_payment_requires_approval_first(users, startup_user, investor_user):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    with pytest.raises(InvalidStateTransition):
        service.complete_payment(request.id, investor_user.id, _proof())


def test_tampered_signature_leaves_request_approved(users, startup_user, investor_user):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    service.approve(request.id, investor_user.id)
    tampered = _proof().model_copy(update={"payment_id": "pay_forged"})

    with pytest.raises(PaymentValidationFailed):
        service.complete_payment(request.id, investor_user.id, tampered)

    stored = service.get(request.id)
    assert stored.status is FundRequestStatus.APPROVED
    assert stored.payment is None


def test_non_ascii_signature_is_a_validation_failure(users, startup_user, investor_user):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    service.approve(request.id, investor_user.id)
    garbled = PaymentProof(order_id="order_1", payment_id="pay_1", signature="é" * 64)

    with pytest.raises(PaymentValidationFailed):
        service.complete_payment(request.id, investor_user.id, garbled)

    assert service.get(request.id).status is FundRequestStatus.APPROVED


def test_lost_race_reports_winning_status(users, startup_user, investor_user):
    store = RacingStore()
    service = _service(users, store=store)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    store.winner = FundRequestStatus.REJECTED

    with pytest.raises(InvalidStateTransition) as exc_info:
        service.approve(request.id, investor_user.id)

    assert exc_info.value.current == "rejected"
    assert service.get(request.id).status is FundRequestStatus.REJECTED


def test_concurrent_approvals_apply_once(users, startup_user, investor_user):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    workers = 8
    barrier = Barrier(workers)

    def _approve():
        barrier.wait()
        try:
            service.approve(request.id, investor_user.id)
            return "ok"
        except InvalidStateTransition:
            return "conflict"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(lambda _: _approve(), range(workers)))

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == workers - 1


def test_list_for_user_filters_by_status(users, startup_user, investor_user):
    service = _service(users)
    pending = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    approved = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)
    service.approve(approved.id, investor_user.id)

    assert {entry.id for entry in service.list_for_user(investor_user.id)} == {pending.id, approved.id}
    assert [entry.id for entry in service.list_for_user(startup_user.id, status=FundRequestStatus.PENDING)] == [
        pending.id
    ]


def test_send_as_message_links_message(users, startup_user, investor_user, stub_metrics):
    sink = InMemoryMessagingSink()
    service = _service(users, messaging=sink)
    request = service.create(
        make_draft(startup_user.id, investor_user.id, description="Series A bridge"), startup_user.id
    )

    linked, message = service.send_as_message(request.id, startup_user.id, investor_user.id)

    assert message is not None
    assert list(sink.messages) == [message]
    assert message.text == "Fund Request: EQUITY | Amount: ₹500000 | Series A bridge"
    assert linked.message_id == message.id
    assert linked.status is FundRequestStatus.PENDING


def test_send_as_message_failure_keeps_request(users, startup_user, investor_user, stub_metrics):
    service = _service(users, messaging=BrokenSink())
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    unchanged, message = service.send_as_message(request.id, startup_user.id, investor_user.id)

    assert message is None
    assert unchanged.message_id is None
    assert service.get(request.id).status is FundRequestStatus.PENDING
    assert stub_metrics.increment_calls[-1]["metric"] == "fund_requests.message.failed"


def test_send_as_message_requires_party(users, startup_user, investor_user, other_investor):
    service = _service(users)
    request = service.create(make_draft(startup_user.id, investor_user.id), startup_user.id)

    with pytest.raises(AuthorizationError):
        service.send_as_message(request.id, other_investor.id, startup_user.id)
