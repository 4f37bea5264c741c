from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from uuid import UUID, uuid4

import httpx
import pytest

from fundbridge.main import app
from fundbridge.services.funding.messaging import InMemoryMessagingSink
from fundbridge.services.funding.payments import HmacPaymentVerifier, sign_payment
from fundbridge.services.funding.repositories import InMemoryFundRequestStore
from fundbridge.services.funding.service import FundRequestService, get_fund_request_service
from tests.helpers.factories import PAYMENT_SECRET, auth_headers


@contextmanager
def _override_service(service: FundRequestService):
    app.dependency_overrides[get_fund_request_service] = lambda: service
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_fund_request_service, None)


@pytest.fixture
def service(directory):
    fund_service = FundRequestService(
        store=InMemoryFundRequestStore(),
        users=directory,
        verifier=HmacPaymentVerifier(secret=PAYMENT_SECRET),
        messaging=InMemoryMessagingSink(),
    )
    with _override_service(fund_service):
        yield fund_service


def _payload(investor_id, **overrides) -> dict[str, object]:
    payload: dict[str, object] = {
        "investor_id": str(investor_id),
        "amount": 500_000,
        "funding_type": "equity",
        "equity_percentage": 12.5,
        "description": "Seed round",
    }
    payload.update(overrides)
    return payload


def _create(client, startup_user, investor_user, **overrides):
    response = client.post(
        "/api/fund-requests", json=_payload(investor_user.id, **overrides), headers=auth_headers(startup_user)
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_requires_identity(client, service, investor_user):
    response = client.post("/api/fund-requests", json=_payload(investor_user.id))

    assert response.status_code == 401


def test_unknown_user_is_unauthorized(client, service, investor_user):
    response = client.post(
        "/api/fund-requests", json=_payload(investor_user.id), headers={"X-User-Id": str(uuid4())}
    )

    assert response.status_code == 401


def test_full_lifecycle(client, service, startup_user, investor_user):
    created = _create(client, startup_user, investor_user)
    assert created["status"] == "pending"
    assert created["terms"] == {"funding_type": "equity", "equity_percentage": 12.5}

    approved = client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(investor_user))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    proof = {
        "order_id": "order_1",
        "payment_id": "pay_1",
        "signature": sign_payment(PAYMENT_SECRET, "order_1", "pay_1"),
    }
    completed = client.post(
        f"/api/fund-requests/{created['id']}/complete", json=proof, headers=auth_headers(investor_user)
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["payment"]["payment_id"] == "pay_1"


def test_debt_request_requires_debt_terms(client, service, startup_user, investor_user):
    response = client.post(
        "/api/fund-requests",
        json=_payload(investor_user.id, funding_type="debt", equity_percentage=None),
        headers=auth_headers(startup_user),
    )

    assert response.status_code == 422


def test_non_positive_amount_is_rejected(client, service, startup_user, investor_user):
    response = client.post(
        "/api/fund-requests", json=_payload(investor_user.id, amount=0), headers=auth_headers(startup_user)
    )

    assert response.status_code == 422


def test_investor_cannot_create(client, service, investor_user, other_investor):
    response = client.post(
        "/api/fund-requests", json=_payload(other_investor.id), headers=auth_headers(investor_user)
    )

    assert response.status_code == 403


def test_double_approval_conflicts(client, service, startup_user, investor_user):
    created = _create(client, startup_user, investor_user)
    client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(investor_user))

    response = client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(investor_user))

    assert response.status_code == 409


def test_reject_with_and_without_reason(client, service, startup_user, investor_user):
    first = _create(client, startup_user, investor_user)
    second = _create(client, startup_user, investor_user)

    with_reason = client.post(
        f"/api/fund-requests/{first['id']}/reject", json={"reason": "Too early"}, headers=auth_headers(investor_user)
    )
    without_body = client.post(f"/api/fund-requests/{second['id']}/reject", headers=auth_headers(investor_user))

    assert with_reason.json()["rejection_reason"] == "Too early"
    assert without_body.status_code == 200
    assert without_body.json()["rejection_reason"] == ""


def test_tampered_payment_is_bad_request(client, service, startup_user, investor_user):
    created = _create(client, startup_user, investor_user)
    client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(investor_user))

    response = client.post(
        f"/api/fund-requests/{created['id']}/complete",
        json={"order_id": "order_1", "payment_id": "pay_1", "signature": "forged"},
        headers=auth_headers(investor_user),
    )

    assert response.status_code == 400
    assert service.get(UUID(created["id"])).status.value == "approved"


def test_non_ascii_signature_is_bad_request(client, service, startup_user, investor_user):
    created = _create(client, startup_user, investor_user)
    client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(investor_user))

    response = client.post(
        f"/api/fund-requests/{created['id']}/complete",
        json={"order_id": "order_1", "payment_id": "pay_1", "signature": "ü"},
        headers=auth_headers(investor_user),
    )

    assert response.status_code == 400
    assert service.get(UUID(created["id"])).status.value == "approved"


def test_other_investor_cannot_view_or_act(client, service, startup_user, investor_user, other_investor):
    created = _create(client, startup_user, investor_user)

    view = client.get(f"/api/fund-requests/{created['id']}", headers=auth_headers(other_investor))
    approve = client.post(f"/api/fund-requests/{created['id']}/approve", headers=auth_headers(other_investor))

    assert view.status_code == 403
    assert approve.status_code == 403


def test_missing_request_is_not_found(client, service, investor_user):
    response = client.post(f"/api/fund-requests/{uuid4()}/approve", headers=auth_headers(investor_user))

    assert response.status_code == 404


def test_list_filters_by_status(client, service, startup_user, investor_user):
    pending = _create(client, startup_user, investor_user)
    approved = _create(client, startup_user, investor_user)
    client.post(f"/api/fund-requests/{approved['id']}/approve", headers=auth_headers(investor_user))

    everything = client.get("/api/fund-requests", headers=auth_headers(startup_user))
    only_pending = client.get("/api/fund-requests?status=pending", headers=auth_headers(startup_user))

    assert {entry["id"] for entry in everything.json()} == {pending["id"], approved["id"]}
    assert [entry["id"] for entry in only_pending.json()] == [pending["id"]]


def test_share_as_message(client, service, startup_user, investor_user):
    created = _create(client, startup_user, investor_user)

    response = client.post(
        f"/api/fund-requests/{created['id']}/message",
        json={"receiver_id": str(investor_user.id)},
        headers=auth_headers(startup_user),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"]["text"] == "Fund Request: EQUITY | Amount: ₹500000 | Seed round"
    assert body["fund_request"]["message_id"] == body["message"]["id"]


class RendezvousStore(InMemoryFundRequestStore):
    """Listing blocks until ``parties`` listings are in flight at once."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=5)

    def list_for_user(self, user_id, *, status=None):
        self._barrier.wait()
        return super().list_for_user(user_id, status=status)


def test_blocking_store_calls_do_not_serialize_requests(directory, startup_user):
    fund_service = FundRequestService(
        store=RendezvousStore(parties=2),
        users=directory,
        verifier=HmacPaymentVerifier(secret=PAYMENT_SECRET),
        messaging=InMemoryMessagingSink(),
    )

    async def list_twice():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            return await asyncio.gather(
                *(http.get("/api/fund-requests", headers=auth_headers(startup_user)) for _ in range(2))
            )

    with _override_service(fund_service):
        responses = asyncio.run(list_twice())

    assert [response.status_code for response in responses] == [200, 200]
