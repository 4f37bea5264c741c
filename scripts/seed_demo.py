"""Seed deterministic users and fund requests for governance/portfolio smoke tests."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.engine.url import make_url

from fundbridge.config import Settings
from fundbridge.core.database import build_engine, create_schema, session_scope
from fundbridge.models.fund_request import (
    FundRequest,
    FundRequestStatus,
    PaymentProof,
    terms_from_fields,
)
from fundbridge.models.fund_request_record import FundRequestRecord
from fundbridge.models.user import UserProfile, UserRole
from fundbridge.services.funding.payments import sign_payment
from fundbridge.services.funding.repositories import SqlFundRequestStore
from fundbridge.services.funding.users import SqlUserDirectory

logger = logging.getLogger("scripts.seed_demo")

STARTUP_ID = UUID("22222222-0000-0000-0000-000000000001")
INVESTOR_IDS = (
    UUID("33333333-0000-0000-0000-000000000001"),
    UUID("33333333-0000-0000-0000-000000000002"),
)

# (investor index, amount, funding type, days ago, status)
DEMO_REQUESTS: tuple[tuple[int, float, str, int, FundRequestStatus], ...] = (
    (0, 500_000, "equity", 120, FundRequestStatus.COMPLETED),
    (1, 1_500_000, "debt", 75, FundRequestStatus.COMPLETED),
    (0, 250_000, "equity", 30, FundRequestStatus.COMPLETED),
    (1, 800_000, "grant", 10, FundRequestStatus.APPROVED),
    (0, 300_000, "equity", 2, FundRequestStatus.PENDING),
)


def _render_database_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        return "<invalid DATABASE_URL>"


def _demo_users() -> list[UserProfile]:
    users = [
        UserProfile(
            id=STARTUP_ID,
            role=UserRole.STARTUP,
            name="Demo Fintech Labs",
            email="founders@demo-fintech.example",
            domain="Fintech payments",
        )
    ]
    for index, investor_id in enumerate(INVESTOR_IDS, start=1):
        users.append(
            UserProfile(
                id=investor_id,
                role=UserRole.INVESTOR,
                name=f"Demo Investor {index}",
                email=f"investor{index}@demo.example",
            )
        )
    return users


def _demo_requests(now: datetime, secret: str) -> list[FundRequest]:
    requests: list[FundRequest] = []
    for index, (investor_index, amount, funding_type, days_ago, status) in enumerate(DEMO_REQUESTS):
        created_at = now - timedelta(days=days_ago)
        request_id = UUID(f"44444444-0000-0000-0000-{index + 1:012d}")
        payment = None
        completed_at = None
        approved_at = None
        if status in (FundRequestStatus.APPROVED, FundRequestStatus.COMPLETED):
            approved_at = created_at + timedelta(days=1)
        if status is FundRequestStatus.COMPLETED:
            order_id = f"order_demo_{index + 1}"
            payment_id = f"pay_demo_{index + 1}"
            payment = PaymentProof(
                order_id=order_id,
                payment_id=payment_id,
                signature=sign_payment(secret, order_id, payment_id),
            )
            completed_at = created_at + timedelta(days=2)
        requests.append(
            FundRequest(
                id=request_id,
                startup_id=STARTUP_ID,
                investor_id=INVESTOR_IDS[investor_index],
                amount=amount,
                terms=terms_from_fields(
                    funding_type,
                    equity_percentage=5.0,
                    interest_rate=12.0,
                    loan_tenure="24 months",
                ),
                description=f"Demo {funding_type} round #{index + 1}",
                company_name="Demo Fintech Labs",
                domain="Fintech payments",
                status=status,
                payment=payment,
                created_at=created_at,
                updated_at=completed_at or approved_at or created_at,
                approved_at=approved_at,
                completed_at=completed_at,
            )
        )
    return requests


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed FundBridge demo users and fund requests.")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL (falls back to .env).",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create tables before seeding (skip when migrations already ran).",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Delete existing demo fund requests before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    local_settings = Settings()
    database_url = args.database_url or local_settings.database_url
    if not database_url:
        raise RuntimeError("DATABASE_URL is required to seed demo data.")
    logger.info("Using DATABASE_URL=%s", _render_database_url(database_url))

    engine = build_engine(database_url, echo=False)
    try:
        if args.create_schema:
            create_schema(engine)
        directory = SqlUserDirectory(engine)
        for profile in _demo_users():
            directory.add(profile)

        requests = _demo_requests(
            datetime.now(timezone.utc), local_settings.payment_key_secret or "demo-secret"
        )
        if args.force:
            with session_scope(engine) as session:
                session.execute(
                    delete(FundRequestRecord).where(
                        FundRequestRecord.id.in_([request.id for request in requests])
                    )
                )
                session.commit()

        store = SqlFundRequestStore(engine)
        for request in requests:
            store.create(request)
            logger.info(
                "seed_demo.fund_request.persisted",
                extra={
                    "fund_request_id": str(request.id),
                    "status": request.status.value,
                    "amount": request.amount,
                },
            )
    finally:
        engine.dispose()
    logger.info(
        "seed_demo.complete",
        extra={"users": len(INVESTOR_IDS) + 1, "fund_requests": len(DEMO_REQUESTS)},
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
