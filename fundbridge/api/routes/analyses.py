"""API endpoints for startup viability analyses."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from fundbridge.api.deps import get_current_user, raise_api_error
from fundbridge.models.startup import StartupAnalysis, StartupSubmission
from fundbridge.models.user import UserProfile
from fundbridge.services.errors import FundBridgeError
from fundbridge.services.scoring.analysis import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    AnalysisPage,
    StartupAnalysisService,
    get_analysis_service,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyses", response_model=StartupAnalysis, status_code=status.HTTP_201_CREATED)
def create_analysis(
    payload: StartupSubmission,
    user: UserProfile = Depends(get_current_user),
    service: StartupAnalysisService = Depends(get_analysis_service),
) -> StartupAnalysis:
    """Score a startup and store the snapshot."""
    try:
        return service.analyze(payload, user.id)
    except FundBridgeError as exc:
        raise_api_error(exc, "analyses.api_error", user_id=user.id)


@router.get("/analyses", response_model=AnalysisPage)
def list_analyses(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: UserProfile = Depends(get_current_user),
    service: StartupAnalysisService = Depends(get_analysis_service),
) -> AnalysisPage:
    """The caller's analyses, newest first."""
    return service.list_for_user(user.id, page=page, limit=limit)


@router.get("/analyses/{analysis_id}", response_model=StartupAnalysis)
def get_analysis(
    analysis_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: StartupAnalysisService = Depends(get_analysis_service),
) -> StartupAnalysis:
    try:
        return service.get(analysis_id)
    except FundBridgeError as exc:
        raise_api_error(exc, "analyses.api_error", analysis_id=analysis_id)


@router.delete("/analyses/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_analysis(
    analysis_id: UUID,
    user: UserProfile = Depends(get_current_user),
    service: StartupAnalysisService = Depends(get_analysis_service),
) -> Response:
    try:
        service.delete(analysis_id, user.id)
    except FundBridgeError as exc:
        raise_api_error(exc, "analyses.api_error", analysis_id=analysis_id, user_id=user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
