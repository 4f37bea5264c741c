"""Read-side analytics for startups (governance) and investors (portfolio).

Nothing is cached: every call queries the store afresh, so a payment completed
a moment ago is reflected in the next read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel

from fundbridge.models.fund_request import FundRequest, FundRequestStatus
from fundbridge.models.user import UserProfile, UserRole
from fundbridge.observability.metrics import metrics
from fundbridge.services.analytics import governance, portfolio
from fundbridge.services.analytics.governance import (
    ConcentrationReport,
    InvestmentStatistics,
    InvestmentTrends,
    InvestorSummary,
    Timeframe,
)
from fundbridge.services.analytics.portfolio import (
    PerformanceMetrics,
    PortfolioAnalytics,
    PortfolioStatistics,
    PortfolioTrends,
    PortfolioView,
    StartupBreakdown,
)
from fundbridge.services.errors import AuthorizationError
from fundbridge.services.funding.repositories import FundRequestStore, get_fund_request_store
from fundbridge.services.funding.users import UserDirectory, get_user_directory

logger = logging.getLogger(__name__)

COMPLETED = (FundRequestStatus.COMPLETED,)


class GovernanceOverview(BaseModel):
    investors: list[InvestorSummary]
    statistics: InvestmentStatistics


class StatisticsReport(BaseModel):
    statistics: InvestmentStatistics
    trends: InvestmentTrends
    timeframe: Timeframe


class PortfolioReport(BaseModel):
    portfolio: PortfolioStatistics
    analytics: PortfolioAnalytics


class TrendsReport(BaseModel):
    trends: PortfolioTrends
    timeframe: Timeframe


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsService:
    def __init__(
        self,
        *,
        store: FundRequestStore | None = None,
        users: UserDirectory | None = None,
    ) -> None:
        self._store = store or get_fund_request_store()
        self._users = users or get_user_directory()

    # startup governance

    def startup_investors(self, viewer: UserProfile, startup_id: UUID) -> GovernanceOverview:
        self._authorize_startup(viewer, startup_id)
        completed = self._completed_for_startup(startup_id)
        profiles = self._users.get_many(entry.investor_id for entry in completed)
        return GovernanceOverview(
            investors=governance.group_investors(completed, profiles),
            statistics=governance.calculate_investment_statistics(completed),
        )

    def startup_statistics(
        self, viewer: UserProfile, startup_id: UUID, timeframe: Timeframe = Timeframe.ALL
    ) -> StatisticsReport:
        self._authorize_startup(viewer, startup_id)
        since = governance.timeframe_start(timeframe, _utcnow())
        windowed = self._completed_for_startup(startup_id, since=since)
        history = windowed if since is None else self._completed_for_startup(startup_id)
        return StatisticsReport(
            statistics=governance.calculate_investment_statistics(windowed),
            trends=governance.calculate_investment_trends(history),
            timeframe=timeframe,
        )

    def funding_timeline(self, viewer: UserProfile, startup_id: UUID) -> list[FundRequest]:
        """Every request regardless of status, newest first."""
        self._authorize_startup(viewer, startup_id)
        return self._store.list_for_startup(startup_id)

    def investor_concentration(self, viewer: UserProfile, startup_id: UUID) -> ConcentrationReport:
        self._authorize_startup(viewer, startup_id)
        report = governance.calculate_concentration(self._completed_for_startup(startup_id))
        metrics.gauge(
            "governance.hhi", report.hhi, tags={"level": report.concentration_level.value}
        )
        if report.hhi > governance.MODERATE_CONCENTRATION_HHI:
            metrics.alert(
                "governance.hhi.high",
                value=report.hhi,
                threshold=governance.MODERATE_CONCENTRATION_HHI,
                severity="warning",
                tags={"startup_id": str(startup_id)},
            )
        return report

    # investor portfolio

    def investor_portfolio(self, viewer: UserProfile, investor_id: UUID) -> PortfolioReport:
        view = self._portfolio_view(viewer, investor_id)
        return PortfolioReport(
            portfolio=portfolio.calculate_portfolio_statistics(view),
            analytics=portfolio.calculate_portfolio_analytics(view),
        )

    def investor_trends(
        self, viewer: UserProfile, investor_id: UUID, timeframe: Timeframe = Timeframe.ALL
    ) -> TrendsReport:
        since = governance.timeframe_start(timeframe, _utcnow())
        view = self._portfolio_view(viewer, investor_id, since=since)
        return TrendsReport(trends=portfolio.calculate_portfolio_trends(view), timeframe=timeframe)

    def startup_breakdown(self, viewer: UserProfile, investor_id: UUID) -> list[StartupBreakdown]:
        return portfolio.calculate_startup_breakdown(self._portfolio_view(viewer, investor_id))

    def performance(self, viewer: UserProfile, investor_id: UUID) -> PerformanceMetrics:
        return portfolio.calculate_performance_metrics(self._portfolio_view(viewer, investor_id))

    # helpers

    def _completed_for_startup(
        self, startup_id: UUID, *, since: datetime | None = None
    ) -> list[FundRequest]:
        return self._store.list_for_startup(startup_id, statuses=COMPLETED, since=since)

    def _portfolio_view(
        self, viewer: UserProfile, investor_id: UUID, *, since: datetime | None = None
    ) -> PortfolioView:
        self._authorize_investor(viewer, investor_id)
        investments = self._store.list_for_investor(investor_id, statuses=COMPLETED, since=since)
        startups = self._users.get_many(entry.startup_id for entry in investments)
        return PortfolioView(investments, startups)

    @staticmethod
    def _authorize_startup(viewer: UserProfile, startup_id: UUID) -> None:
        if viewer.role is UserRole.STARTUP and viewer.id != startup_id:
            logger.warning(
                "governance.forbidden",
                extra={"viewer_id": str(viewer.id), "startup_id": str(startup_id)},
            )
            raise AuthorizationError("You are not authorized to view this startup's governance data.")

    @staticmethod
    def _authorize_investor(viewer: UserProfile, investor_id: UUID) -> None:
        if viewer.role is UserRole.INVESTOR and viewer.id != investor_id:
            logger.warning(
                "portfolio.forbidden",
                extra={"viewer_id": str(viewer.id), "investor_id": str(investor_id)},
            )
            raise AuthorizationError("You are not authorized to view this portfolio.")


_SERVICE_INSTANCE: AnalyticsService | None = None


def get_analytics_service() -> AnalyticsService:
    """Singleton accessor used by API routes."""
    global _SERVICE_INSTANCE  # noqa: PLW0603
    if _SERVICE_INSTANCE is None:
        _SERVICE_INSTANCE = AnalyticsService()
    return _SERVICE_INSTANCE
