"""Startup governance analytics derived from completed fund requests."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from fundbridge.api.deps import get_current_user, raise_api_error
from fundbridge.models.fund_request import FundRequest
from fundbridge.models.user import UserProfile
from fundbridge.services.analytics.governance import ConcentrationReport, Timeframe
from fundbridge.services.analytics.service import (
    AnalyticsService,
    GovernanceOverview,
    StatisticsReport,
    get_analytics_service,
)
from fundbridge.services.errors import FundBridgeError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{startup_id}/investors", response_model=GovernanceOverview)
def startup_investors(
    startup_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> GovernanceOverview:
    try:
        return service.startup_investors(user, startup_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "governance.api_error", startup_id=startup_id, user_id=user.id)


@router.get("/{startup_id}/statistics", response_model=StatisticsReport)
def investment_statistics(
    startup_id: UUID,
    timeframe: Timeframe = Query(Timeframe.ALL),
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> StatisticsReport:
    try:
        return service.startup_statistics(user, startup_id, timeframe)
    except FundBridgeError as exc:
        raise_api_error(exc, "governance.api_error", startup_id=startup_id, user_id=user.id)


@router.get("/{startup_id}/timeline", response_model=list[FundRequest])
def funding_timeline(
    startup_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[FundRequest]:
    try:
        return service.funding_timeline(user, startup_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "governance.api_error", startup_id=startup_id, user_id=user.id)


@router.get("/{startup_id}/concentration", response_model=ConcentrationReport)
def investor_concentration(
    startup_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> ConcentrationReport:
    try:
        return service.investor_concentration(user, startup_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "governance.api_error", startup_id=startup_id, user_id=user.id)
