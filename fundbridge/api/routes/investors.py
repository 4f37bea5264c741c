"""Investor portfolio analytics derived from completed fund requests."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from fundbridge.api.deps import get_current_user, raise_api_error
from fundbridge.models.user import UserProfile
from fundbridge.services.analytics.governance import Timeframe
from fundbridge.services.analytics.portfolio import PerformanceMetrics, StartupBreakdown
from fundbridge.services.analytics.service import (
    AnalyticsService,
    PortfolioReport,
    TrendsReport,
    get_analytics_service,
)
from fundbridge.services.errors import FundBridgeError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{investor_id}/portfolio", response_model=PortfolioReport)
def investor_portfolio(
    investor_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PortfolioReport:
    try:
        return service.investor_portfolio(user, investor_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "portfolio.api_error", investor_id=investor_id, user_id=user.id)


@router.get("/{investor_id}/trends", response_model=TrendsReport)
def investment_trends(
    investor_id: UUID,
    timeframe: Timeframe = Query(Timeframe.ALL),
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TrendsReport:
    try:
        return service.investor_trends(user, investor_id, timeframe)
    except FundBridgeError as exc:
        raise_api_error(exc, "portfolio.api_error", investor_id=investor_id, user_id=user.id)


@router.get("/{investor_id}/startups", response_model=list[StartupBreakdown])
def startup_breakdown(
    investor_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[StartupBreakdown]:
    try:
        return service.startup_breakdown(user, investor_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "portfolio.api_error", investor_id=investor_id, user_id=user.id)


@router.get("/{investor_id}/performance", response_model=PerformanceMetrics)
def performance_metrics(
    investor_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PerformanceMetrics:
    try:
        return service.performance(user, investor_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "portfolio.api_error", investor_id=investor_id, user_id=user.id)
